"""Sparse-checkout pattern encoding.

Skills are directory-scoped (``/name/``), subagents are single files
(``/name.agent.md``). Decoding inverts encoding exactly for every valid
identifier; anything else in the pattern file is ignored.
"""

from skills_installer.models import ResourceKind

SUBAGENT_SUFFIX = ".agent.md"

# Characters that carry meaning in gitignore-style sparse patterns
_PATTERN_METACHARS = set("*?[]!#\\")


def is_valid_identifier(identifier: str) -> bool:
    """An identifier must be a single plain path component, not hidden."""
    if not identifier or identifier != identifier.strip():
        return False
    if identifier.startswith("."):
        return False
    if "/" in identifier or any(c in _PATTERN_METACHARS for c in identifier):
        return False
    return True


def encode(kind: ResourceKind, identifier: str) -> str:
    """Encode an identifier as a sparse-checkout pattern line."""
    if not is_valid_identifier(identifier):
        raise ValueError(f"Invalid {kind.label} identifier: {identifier!r}")
    if kind is ResourceKind.SKILL:
        return f"/{identifier}/"
    if not identifier.endswith(SUBAGENT_SUFFIX):
        raise ValueError(f"Subagent identifier must end with {SUBAGENT_SUFFIX}: {identifier!r}")
    return f"/{identifier}"


def decode(kind: ResourceKind, pattern: str) -> str | None:
    """Decode one pattern line back to an identifier, or None if it is not one."""
    line = pattern.strip()
    if not line.startswith("/"):
        return None
    if kind is ResourceKind.SKILL:
        if not line.endswith("/"):
            return None
        identifier = line.strip("/")
    else:
        identifier = line[1:]
        if not identifier.endswith(SUBAGENT_SUFFIX):
            return None
    return identifier if is_valid_identifier(identifier) else None


def render_pattern_file(kind: ResourceKind, identifiers: list[str]) -> str:
    """Render the full pattern file. Output is byte-stable for equal input."""
    return "".join(f"{encode(kind, identifier)}\n" for identifier in identifiers)


def parse_pattern_file(kind: ResourceKind, text: str) -> list[str]:
    """Decode every line of a pattern file, keeping order and dropping repeats."""
    identifiers: list[str] = []
    seen: set[str] = set()
    for line in text.splitlines():
        identifier = decode(kind, line)
        if identifier is None or identifier in seen:
            continue
        seen.add(identifier)
        identifiers.append(identifier)
    return identifiers


def pathspec(kind: ResourceKind, identifier: str) -> str:
    """Repository-relative pathspec covering one item."""
    return f"{identifier}/" if kind is ResourceKind.SKILL else identifier
