"""Adds install locations to the project's .gitignore."""

import logging
from pathlib import Path

from skills_installer.models import ResourceKind

logger = logging.getLogger("skills-installer.gitignore")

_HEADERS = {
    ResourceKind.SKILL: "# AI Agent Skills",
    ResourceKind.SUBAGENT: "# AI Agent Subagents",
}


def normalize_entry(install_path: str) -> str:
    """Forward slashes, no leading ./ and no trailing slash."""
    entry = install_path.replace("\\", "/").strip()
    while entry.startswith("./"):
        entry = entry[2:]
    return entry.rstrip("/")


def is_ignored(content: str, install_path: str) -> bool:
    """True if a line of content already ignores install_path."""
    entry = normalize_entry(install_path)
    candidates = {entry, f"{entry}/", f"/{entry}", f"/{entry}/"}
    return any(line.strip() in candidates for line in content.splitlines())


def add_to_gitignore(gitignore_path: Path, install_path: str, kind: ResourceKind) -> bool:
    """Append install_path to .gitignore unless already present.

    Returns True if the file was changed.
    """
    entry = normalize_entry(install_path)
    block = f"{_HEADERS[kind]}\n{entry}/\n"

    if gitignore_path.exists():
        content = gitignore_path.read_text(encoding="utf-8")
        if is_ignored(content, entry):
            logger.info('"%s" is already in %s', entry, gitignore_path)
            return False
        if content:
            # Keep a blank line between existing rules and the new block
            content += "\n" if content.endswith("\n") else "\n\n"
        gitignore_path.write_text(content + block, encoding="utf-8")
    else:
        gitignore_path.write_text(block, encoding="utf-8")

    logger.info('Added "%s/" to %s', entry, gitignore_path)
    return True
