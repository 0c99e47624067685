"""Local installation inspection: what is already installed at a path."""

import logging
from pathlib import Path

from skills_installer.config import Settings, settings as default_settings
from skills_installer.core.git import GitDriver
from skills_installer.core.patterns import parse_pattern_file
from skills_installer.models import (
    Detection,
    ExistingInstallation,
    InstalledState,
    ResourceKind,
)

logger = logging.getLogger("skills-installer.inspector")


def installed_state(path: Path, kind: ResourceKind, driver: GitDriver | None = None) -> InstalledState:
    """Decode the identifiers included by the working copy at path.

    Raises OSError / UnicodeDecodeError if the pattern file cannot be read.
    """
    driver = driver or GitDriver()
    text = driver.read_patterns(path)
    return InstalledState(installed_identifiers=parse_pattern_file(kind, text))


def detect(path: Path, kind: ResourceKind, driver: GitDriver | None = None) -> Detection:
    """Report whether path holds an installation of kind, and what it includes.

    A repository whose pattern file is missing, empty, or holds nothing of
    this kind counts as not present. Read failures count as not present too.
    """
    driver = driver or GitDriver()
    path = Path(path)
    if not driver.is_repository(path):
        return Detection()
    try:
        state = installed_state(path, kind, driver)
    except (OSError, UnicodeDecodeError) as e:
        logger.debug("Cannot read sparse patterns at %s: %s", path, e)
        return Detection()
    identifiers = state.installed_identifiers
    return Detection(present=bool(identifiers), identifiers=identifiers)


def discover(
    kind: ResourceKind,
    base_dir: Path,
    driver: GitDriver | None = None,
    settings: Settings | None = None,
) -> list[ExistingInstallation]:
    """Find installations of kind at the conventional paths under base_dir."""
    settings = settings or default_settings
    found: list[ExistingInstallation] = []
    for relative in settings.conventional_paths(kind):
        candidate = (Path(base_dir) / relative).resolve()
        detection = detect(candidate, kind, driver)
        if detection.present:
            logger.info("Existing %s installation at %s (%d)", kind.label, candidate, len(detection.identifiers))
            found.append(
                ExistingInstallation(path=candidate, kind=kind, identifiers=detection.identifiers)
            )
    return found
