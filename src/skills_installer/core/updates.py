"""Update detection for installed items (advisory only)."""

import logging
from pathlib import Path

from skills_installer.core.git import GitCommandError, GitDriver
from skills_installer.core.patterns import pathspec
from skills_installer.models import ResourceKind

logger = logging.getLogger("skills-installer.updates")


class UpdateChecker:
    """Finds installed items with upstream changes that are not pulled yet."""

    def __init__(self, driver: GitDriver | None = None, remote: str = "origin"):
        self._driver = driver or GitDriver()
        self._remote = remote

    async def check_updates(
        self, path: Path, kind: ResourceKind, identifiers: list[str]
    ) -> set[str]:
        """Return the subset of identifiers whose upstream content differs.

        A failed fetch or branch lookup yields an empty set rather than a
        partial answer. A failed diff for one identifier only drops that one.
        """
        path = Path(path)
        if not identifiers or not self._driver.is_repository(path):
            return set()

        try:
            await self._driver.fetch(path, self._remote)
            branch = await self._driver.current_branch(path)
        except (GitCommandError, OSError) as e:
            logger.info("Update check skipped for %s: %s", path, e)
            return set()

        upstream = f"{self._remote}/{branch}"
        outdated: set[str] = set()
        for identifier in identifiers:
            try:
                changed = await self._driver.changed_paths(
                    path, "HEAD", upstream, pathspec(kind, identifier)
                )
            except (GitCommandError, OSError) as e:
                logger.debug("Update check failed for %s: %s", identifier, e)
                continue
            if changed:
                outdated.add(identifier)

        logger.info("%d of %d %s have updates at %s", len(outdated), len(identifiers), kind.plural, path)
        return outdated
