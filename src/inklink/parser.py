"""Locate link and embed occurrences in markdown text.

Recognized syntax:

- ``![[target|suffix]]`` embeds (EMBED)
- ``[[target|alias]]`` wikilinks (WIKILINK)
- ``![alt](target)`` and ``[text](target)`` markdown links (INLINE)

Links inside the frontmatter block, fenced code blocks and inline code spans
are not reported. Markdown targets may contain one level of balanced
parentheses, as in ``![scan](photo (1).jpg)``, and an optional quoted title
is dropped from the reported link.
"""

from __future__ import annotations

import re
from urllib.parse import unquote

from inklink.constants import MARKDOWN_TITLE_PATTERN
from inklink.types import LinkRange, Occurrence, SyntaxKind
from inklink.utils.frontmatter import frontmatter_span

_LINK_PATTERN = re.compile(
    r"(?P<embed>!\[\[(?P<embed_inner>[^\[\]\n]+)\]\])"
    r"|(?P<wiki>\[\[(?P<wiki_inner>[^\[\]\n]+)\]\])"
    r"|(?P<markdown>!?\[(?P<alt>[^\[\]\n]*)\]\((?P<target>(?:[^()\n]|\([^()\n]*\))*)\))"
)
_FENCE_PATTERN = re.compile(r"^[ ]{0,3}(`{3,}|~{3,})")
_INLINE_CODE_PATTERN = re.compile(r"(`+)[^`\n].*?\1")
_URL_SCHEME_PATTERN = re.compile(r"^[a-z][a-z0-9+.-]*:", re.IGNORECASE)
_TITLE_PATTERN = re.compile(MARKDOWN_TITLE_PATTERN)


def is_external_link(target: str) -> bool:
    """Check whether a link target points outside the vault.

    Examples:
        >>> is_external_link("https://example.com/a.png")
        True
        >>> is_external_link("mailto:someone@example.com")
        True
        >>> is_external_link("assets/a.png")
        False
    """
    return bool(_URL_SCHEME_PATTERN.match(target.strip()))


def _code_ranges(text: str) -> list[LinkRange]:
    """Return spans covered by fenced code blocks and inline code."""
    ranges: list[LinkRange] = []
    fence_char: str | None = None
    fence_count = 0
    block_start = 0
    offset = 0
    prose: list[LinkRange] = []
    prose_start = 0

    for line in text.splitlines(keepends=True):
        match = _FENCE_PATTERN.match(line)
        if match:
            fence = match.group(1)
            if fence_char is None:
                fence_char, fence_count = fence[0], len(fence)
                block_start = offset
                prose.append((prose_start, offset))
            elif fence[0] == fence_char and len(fence) >= fence_count:
                ranges.append((block_start, offset + len(line)))
                fence_char = None
                prose_start = offset + len(line)
        offset += len(line)

    if fence_char is not None:
        # Unclosed fence runs to the end of the document
        ranges.append((block_start, len(text)))
    else:
        prose.append((prose_start, len(text)))

    for start, end in prose:
        for match in _INLINE_CODE_PATTERN.finditer(text, start, end):
            ranges.append(match.span())

    return sorted(ranges)


def _inside(position: int, ranges: list[LinkRange]) -> bool:
    return any(start <= position < end for start, end in ranges)


def _markdown_target(raw: str) -> str:
    target = _TITLE_PATTERN.sub("", raw).strip()
    if target.startswith("<") and target.endswith(">"):
        target = target[1:-1]
    return unquote(target)


def _split_alias(inner: str) -> str | None:
    if "|" not in inner:
        return None
    return inner.split("|", 1)[1]


def parse_occurrences(text: str) -> list[Occurrence]:
    """Find every link and embed occurrence in ``text``.

    Args:
        text: Markdown note content

    Returns:
        Occurrences sorted by start offset
    """
    skipped = _code_ranges(text)
    frontmatter = frontmatter_span(text)
    if frontmatter is not None:
        skipped.append(frontmatter)

    occurrences: list[Occurrence] = []
    for match in _LINK_PATTERN.finditer(text):
        start, end = match.span()
        if _inside(start, skipped):
            continue

        if match.group("embed"):
            inner = match.group("embed_inner")
            occurrences.append(
                Occurrence(
                    link=inner,
                    start=start,
                    end=end,
                    kind=SyntaxKind.EMBED,
                    display_text=_split_alias(inner),
                )
            )
        elif match.group("wiki"):
            inner = match.group("wiki_inner")
            occurrences.append(
                Occurrence(
                    link=inner,
                    start=start,
                    end=end,
                    kind=SyntaxKind.WIKILINK,
                    display_text=_split_alias(inner),
                )
            )
        else:
            occurrences.append(
                Occurrence(
                    link=_markdown_target(match.group("target")),
                    start=start,
                    end=end,
                    kind=SyntaxKind.INLINE,
                    display_text=match.group("alt") or None,
                )
            )

    return occurrences
