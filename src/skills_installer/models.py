"""Data models for the skills installer."""

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field


class ResourceKind(str, Enum):
    """Kind of installable resource. Decides catalog, paths and pattern shape."""

    SKILL = "skill"
    SUBAGENT = "subagent"

    @property
    def label(self) -> str:
        return "skill" if self is ResourceKind.SKILL else "subagent"

    @property
    def plural(self) -> str:
        return f"{self.label}s"


class Operation(str, Enum):
    """How a selection is applied to a target."""

    MATERIALIZE = "materialize"  # brand-new partial working copy
    RECONCILE = "reconcile"  # rewrite patterns of an existing one


class ItemDescriptor(BaseModel):
    """An installable item as listed by a catalog."""

    identifier: str  # folder name (skill) or filename (subagent)
    display_name: str
    description: str = ""


class ItemMetadata(BaseModel):
    """Metadata extracted from an item's leading frontmatter block."""

    name: str = ""
    description: str = ""


class InstallationTarget(BaseModel):
    """A filesystem location the user wants to install into."""

    path: Path
    kind: ResourceKind
    exists: bool = False
    is_version_controlled: bool = False
    is_empty: bool = True

    @classmethod
    def from_path(cls, path: Path | str, kind: ResourceKind) -> "InstallationTarget":
        """Probe a path and describe it as an installation target."""
        resolved = Path(path).expanduser().resolve()
        exists = resolved.exists()
        is_empty = True
        if exists and resolved.is_dir():
            is_empty = not any(resolved.iterdir())
        elif exists:
            is_empty = False
        return cls(
            path=resolved,
            kind=kind,
            exists=exists,
            is_version_controlled=(resolved / ".git").exists(),
            is_empty=is_empty,
        )


class InstalledState(BaseModel):
    """Identifiers currently included by a working copy's sparse patterns."""

    installed_identifiers: list[str] = Field(default_factory=list)


class Detection(BaseModel):
    """Result of inspecting a path for an existing installation."""

    present: bool = False
    identifiers: list[str] = Field(default_factory=list)


class ExistingInstallation(BaseModel):
    """An installation found at one of the conventional paths."""

    path: Path
    kind: ResourceKind
    identifiers: list[str] = Field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.identifiers)


class SelectionDiff(BaseModel):
    """Partition of old and new selections into added / removed / unchanged."""

    added: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)
    unchanged: list[str] = Field(default_factory=list)

    @property
    def is_noop(self) -> bool:
        return not self.added and not self.removed


class TargetOutcome(BaseModel):
    """What happened at one target, for the final summary."""

    path: Path
    kind: ResourceKind
    operation: Operation
    diff: SelectionDiff
    selected: list[str] = Field(default_factory=list)  # applied, in catalog order
    updated: list[str] = Field(default_factory=list)  # unchanged items pulled with changes
    gitignored: bool = False
