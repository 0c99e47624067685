"""GitHub credential resolution for catalog requests.

Unauthenticated requests work but hit the stricter rate limit (60/hour), so a
token is attached whenever one can be found: environment first, then the
GitHub CLI.
"""

import asyncio
import logging
import shutil

from skills_installer.config import Settings, settings as default_settings

logger = logging.getLogger("skills-installer.auth")


class GitHubAuth:
    """Resolves a GitHub token once and builds request headers.

    One instance is created per run and handed to the catalog client; the
    resolved token is cached on the instance.
    """

    def __init__(self, settings: Settings | None = None):
        self._settings = settings or default_settings
        self._token = ""
        self._resolved = False
        self._lock = asyncio.Lock()

    async def get_token(self) -> str:
        async with self._lock:
            if not self._resolved:
                self._token = _normalize(self._settings.github_token) or await self._token_from_gh_cli()
                self._resolved = True
                if self._token:
                    logger.debug("GitHub token resolved")
                else:
                    logger.debug("No GitHub token available, using unauthenticated requests")
        return self._token

    async def headers(self) -> dict[str, str]:
        """Return GitHub API headers, with Authorization only when a token exists."""
        headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": self._settings.user_agent,
        }
        token = await self.get_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def reset(self) -> None:
        """Forget the resolved token so the next access resolves it again."""
        self._token = ""
        self._resolved = False

    async def _token_from_gh_cli(self) -> str:
        gh_path = self._settings.gh_executable
        if not self._settings.use_gh_cli or not shutil.which(gh_path):
            return ""

        try:
            process = await asyncio.create_subprocess_exec(
                gh_path,
                "auth",
                "token",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                stdin=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            logger.debug("gh auth token failed to start: %s", e)
            return ""

        try:
            stdout, _ = await asyncio.wait_for(
                process.communicate(), timeout=self._settings.gh_timeout
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            logger.warning("gh auth token timed out after %.0fs", self._settings.gh_timeout)
            return ""

        if process.returncode != 0:
            return ""
        return _normalize(stdout.decode(errors="replace"))


def _normalize(raw: str | None) -> str:
    return (raw or "").strip()
