"""YAML frontmatter parsing utilities."""

from __future__ import annotations

import re
from typing import Any

import yaml
from loguru import logger

# Frontmatter must open on the very first line: ---\n ... \n---
_FRONTMATTER_PATTERN = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)
_EMPTY_FRONTMATTER_PATTERN = re.compile(r"\A---[ \t]*\r?\n---[ \t]*(?:\r?\n|\Z)")


def frontmatter_span(content: str) -> tuple[int, int] | None:
    """Return the ``(start, end)`` offsets of the frontmatter block, if any.

    Args:
        content: Markdown content

    Returns:
        Offsets covering both ``---`` fences, or None without frontmatter
    """
    match = _FRONTMATTER_PATTERN.match(content) or _EMPTY_FRONTMATTER_PATTERN.match(
        content
    )
    if match is None:
        return None
    return match.span()


def split_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """Split markdown content into its frontmatter dict and body.

    Invalid YAML, or YAML that is not a mapping, yields an empty dict; the
    block is still removed from the body.

    Args:
        content: Markdown content potentially with frontmatter

    Returns:
        Tuple of (frontmatter dict, body text)
    """
    span = frontmatter_span(content)
    if span is None:
        return {}, content

    match = _FRONTMATTER_PATTERN.match(content)
    raw = match.group(1) if match else ""
    body = content[span[1] :]

    try:
        data = yaml.safe_load(raw) if raw.strip() else None
    except yaml.YAMLError as e:
        logger.debug(f"Ignoring invalid frontmatter: {e}")
        return {}, body

    if not isinstance(data, dict):
        return {}, body
    return data, body


def parse_frontmatter(content: str) -> dict[str, Any]:
    """Parse just the frontmatter of markdown content."""
    return split_frontmatter(content)[0]


def extract_aliases(frontmatter: dict[str, Any]) -> list[str]:
    """Extract declared aliases from a frontmatter dict.

    ``aliases`` may be a single string or a list; non-string list items
    are ignored, values are trimmed and empty ones dropped.

    Examples:
        >>> extract_aliases({"aliases": "Bob"})
        ['Bob']
        >>> extract_aliases({"aliases": [" Rob ", 3, ""]})
        ['Rob']
    """
    value = frontmatter.get("aliases")
    if isinstance(value, str):
        candidates = [value]
    elif isinstance(value, list):
        candidates = [item for item in value if isinstance(item, str)]
    else:
        return []
    return [alias.strip() for alias in candidates if alias.strip()]
