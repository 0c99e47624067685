"""Catalog client: lists installable items from the fixed GitHub repositories.

Catalogs (fixed per kind):
- Skills: supercorks/agent-skills, one top-level directory per skill with a SKILL.md
- Subagents: supercorks/subagents, one top-level ``*.agent.md`` file per subagent
"""

import base64
import binascii
import logging
from dataclasses import dataclass

import httpx

from skills_installer.config import Settings, settings as default_settings
from skills_installer.core.auth import GitHubAuth
from skills_installer.core.frontmatter import parse_metadata
from skills_installer.core.patterns import SUBAGENT_SUFFIX
from skills_installer.errors import CatalogFetchError
from skills_installer.models import ItemDescriptor, ItemMetadata, ResourceKind

logger = logging.getLogger("skills-installer.catalog")

LAZY_DESCRIPTION = "Press → to load description"

# Top-level folders of the skills repository that are not skills
EXCLUDED_FOLDERS = frozenset({".github", ".claude", "node_modules"})


@dataclass(frozen=True)
class CatalogSource:
    owner: str
    repo: str
    fence_label: str  # label of the fenced frontmatter form

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


CATALOGS: dict[ResourceKind, CatalogSource] = {
    ResourceKind.SKILL: CatalogSource("supercorks", "agent-skills", "skill"),
    ResourceKind.SUBAGENT: CatalogSource("supercorks", "subagents", "chatagent"),
}


def humanize(identifier: str) -> str:
    """``address-pr-comments`` → ``Address Pr Comments``; drops the agent suffix."""
    if identifier.endswith(SUBAGENT_SUFFIX):
        identifier = identifier[: -len(SUBAGENT_SUFFIX)]
    parts = identifier.replace("_", "-").split("-")
    return " ".join(part[:1].upper() + part[1:] for part in parts if part)


class CatalogClient:
    """Read-only access to the remote catalogs.

    Holds one HTTP client for the run. Use as an async context manager or
    call ``aclose()`` when done.
    """

    def __init__(
        self,
        auth: GitHubAuth | None = None,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._settings = settings or default_settings
        self._auth = auth or GitHubAuth(self._settings)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "CatalogClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def clone_url(self, kind: ResourceKind) -> str:
        source = CATALOGS[kind]
        return f"{self._settings.github_clone_base.rstrip('/')}/{source.full_name}.git"

    async def list_available(self, kind: ResourceKind) -> list[ItemDescriptor]:
        """List the catalog's items in listing order, descriptions loaded lazily."""
        entries = await self._get_json(self._contents_url(kind), what=f"{kind.plural} list")
        if not isinstance(entries, list):
            raise CatalogFetchError(f"Failed to fetch {kind.plural} list: unexpected response shape")

        items: list[ItemDescriptor] = []
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            name = entry.get("name", "")
            entry_type = entry.get("type", "")
            if kind is ResourceKind.SKILL:
                if entry_type != "dir" or name in EXCLUDED_FOLDERS or name.startswith("."):
                    continue
            elif entry_type != "file" or not name.endswith(SUBAGENT_SUFFIX):
                continue
            items.append(
                ItemDescriptor(
                    identifier=name,
                    display_name=humanize(name),
                    description=LAZY_DESCRIPTION,
                )
            )

        logger.info("%s: found %d %s", CATALOGS[kind].full_name, len(items), kind.plural)
        return items

    async def fetch_description(self, kind: ResourceKind, identifier: str) -> ItemMetadata:
        """Fetch one item's descriptor file and extract its metadata."""
        path = f"{identifier}/SKILL.md" if kind is ResourceKind.SKILL else identifier
        data = await self._get_json(
            self._contents_url(kind, path), what=f"{kind.label} metadata"
        )
        try:
            content = base64.b64decode(data.get("content", "")).decode("utf-8")
        except (AttributeError, binascii.Error, UnicodeDecodeError) as e:
            raise CatalogFetchError(f"Failed to decode {kind.label} metadata for {identifier}: {e}") from e
        return parse_metadata(content, CATALOGS[kind].fence_label)

    # ─── HTTP ───────────────────────────────────────────────────────────

    def _contents_url(self, kind: ResourceKind, path: str = "") -> str:
        base = f"{self._settings.github_api_url.rstrip('/')}/repos/{CATALOGS[kind].full_name}/contents"
        return f"{base}/{path}" if path else base

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._settings.request_timeout,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def _get_json(self, url: str, what: str):
        try:
            resp = await self._http().get(url, headers=await self._auth.headers())
        except httpx.HTTPError as e:
            logger.warning("Request to %s failed: %s", url, e)
            raise CatalogFetchError(f"Failed to fetch {what}: {e}", reason=str(e)) from e

        if resp.status_code != 200:
            reason = resp.reason_phrase
            message = f"Failed to fetch {what}: {resp.status_code} {reason}"
            if resp.status_code == 403:
                message += " (GitHub API rate limit? Set GITHUB_TOKEN or GH_TOKEN, or run `gh auth login`)"
            logger.warning("GitHub API error %d for %s", resp.status_code, url)
            raise CatalogFetchError(message, status=resp.status_code, reason=reason)

        try:
            return resp.json()
        except ValueError as e:
            raise CatalogFetchError(f"Failed to fetch {what}: invalid JSON response") from e
