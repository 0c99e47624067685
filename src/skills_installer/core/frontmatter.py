"""Leading metadata block parsing for SKILL.md and .agent.md files.

Two stages: isolate the block text, then read it as flat ``key: value`` lines.
Catalog files use one of two wrappings:

    ---                        ```skill
    name: Foo                  ---
    description: Bar           name: Foo
    ---                        ---
                               ```
"""

import re

from skills_installer.models import ItemMetadata

_BARE_BLOCK = re.compile(r"^---[ \t]*\n(.*?)\n---", re.DOTALL)
_KEY_VALUE = re.compile(r"^\s*([A-Za-z0-9_-]+)\s*:\s*(.*?)\s*$")
_QUOTES = "'\""


def _fenced_block(label: str) -> re.Pattern[str]:
    return re.compile(
        rf"```{re.escape(label)}[ \t]*\n---[ \t]*\n(.*?)\n---",
        re.DOTALL,
    )


def extract_block(content: str, fence_label: str) -> str | None:
    """Return the raw metadata block, or None if the file has none.

    The fenced form is tried first so that a fence wrapping a dashed block
    yields the inner block.
    """
    content = content.replace("\r\n", "\n").lstrip("\ufeff")
    match = _fenced_block(fence_label).search(content) or _BARE_BLOCK.match(content)
    if match is None:
        return None
    return match.group(1)


def parse_block(block: str) -> dict[str, str]:
    """Parse ``key: value`` lines. The first occurrence of a key wins."""
    values: dict[str, str] = {}
    for line in block.splitlines():
        match = _KEY_VALUE.match(line)
        if not match:
            continue
        key, value = match.group(1), match.group(2)
        if key in values:
            continue
        values[key] = _strip_quotes(value)
    return values


def parse_metadata(content: str, fence_label: str) -> ItemMetadata:
    """Extract name and description. Missing block or keys give empty strings."""
    block = extract_block(content, fence_label)
    if block is None:
        return ItemMetadata()
    values = parse_block(block)
    return ItemMetadata(
        name=values.get("name", ""),
        description=values.get("description", ""),
    )


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] in _QUOTES and value[-1] == value[0]:
        return value[1:-1].strip()
    return value.strip(_QUOTES).strip()
