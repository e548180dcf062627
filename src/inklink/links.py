"""Rewrite link targets after resources have been replaced.

Given the occurrences found in a note and a mapping from old resource
identity to new resource identity, only the target portion of each matching
occurrence is replaced. Display text, size suffixes such as ``|300x200`` and
the surrounding link syntax are preserved byte for byte.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping

from loguru import logger

from inklink.constants import (
    EMBED_PREFIX,
    LINK_SUFFIX_DELIMITER,
    MARKDOWN_TITLE_PATTERN,
    WIKILINK_PREFIX,
    WIKILINK_SUFFIX,
)
from inklink.splice import apply_edits
from inklink.types import Edit, Occurrence, SyntaxKind

# (bare link target, source identity) -> resource identity or None
LinkResolver = Callable[[str, str], str | None]
# (resource identity, source identity) -> link text usable from the source
LinkTextResolver = Callable[[str, str], str]

# Width of the opening and closing markers around the target
_FIXED_MARKERS: dict[SyntaxKind, tuple[int, int]] = {
    SyntaxKind.EMBED: (len(EMBED_PREFIX), len(WIKILINK_SUFFIX)),
    SyntaxKind.WIKILINK: (len(WIKILINK_PREFIX), len(WIKILINK_SUFFIX)),
}
_TITLE_PATTERN = re.compile(MARKDOWN_TITLE_PATTERN)


def split_link_suffix(link: str) -> tuple[str, str]:
    """Split raw link text into its bare target and ``|suffix``.

    Examples:
        >>> split_link_suffix("photo.heic|300x200")
        ('photo.heic', '|300x200')
        >>> split_link_suffix("photo.heic")
        ('photo.heic', '')
    """
    index = link.find(LINK_SUFFIX_DELIMITER)
    if index == -1:
        return link.strip(), ""
    return link[:index].strip(), link[index:]


def _matching_open_paren(segment: str, close_index: int) -> int | None:
    """Return the index of the ``(`` that balances the ``)`` at ``close_index``."""
    if close_index == -1:
        return None
    depth = 0
    for index in range(close_index, -1, -1):
        char = segment[index]
        if char == ")":
            depth += 1
        elif char == "(":
            depth -= 1
            if depth == 0:
                return index
    return None


def target_span(text: str, occurrence: Occurrence) -> tuple[int, int] | None:
    """Locate the replaceable target inside an occurrence's span.

    Embeds and wikilinks drop their fixed ``![[`` / ``[[`` and ``]]``
    markers. Inline references use the text between the last ``)`` in the span
    and the ``(`` that balances it, so parentheses in the alt text or the
    target stay intact. A trailing quoted title is left out of the span.
    Without such a pair the raw link text is searched for verbatim.

    Returns:
        Absolute ``(start, end)`` offsets, or None if no target can be placed
    """
    markers = _FIXED_MARKERS.get(occurrence.kind)
    if markers is not None:
        start = occurrence.start + markers[0]
        end = occurrence.end - markers[1]
        return (start, end) if start < end else None

    segment = text[occurrence.start : occurrence.end]
    close_index = segment.rfind(")")
    open_index = _matching_open_paren(segment, close_index)
    if open_index is not None:
        inner = segment[open_index + 1 : close_index]
        title = _TITLE_PATTERN.search(inner)
        if title is not None:
            close_index = open_index + 1 + title.start()
        return occurrence.start + open_index + 1, occurrence.start + close_index

    raw_index = segment.find(occurrence.link) if occurrence.link else -1
    if raw_index == -1:
        return None
    start = occurrence.start + raw_index
    return start, start + len(occurrence.link)


def build_link_edits(
    text: str,
    occurrences: Iterable[Occurrence],
    replacements: Mapping[str, str],
    *,
    source: str,
    resolve: LinkResolver,
    to_link_text: LinkTextResolver,
) -> list[Edit]:
    """Compute one edit per occurrence whose resolved target is being replaced."""
    edits: list[Edit] = []
    for occurrence in occurrences:
        bare, suffix = split_link_suffix(occurrence.link)
        if not bare:
            continue

        resolved = resolve(bare, source)
        if resolved is None:
            continue

        new_identity = replacements.get(resolved)
        if new_identity is None:
            continue

        span = target_span(text, occurrence)
        if span is None:
            logger.debug(
                f"No target span for '{occurrence.link}' at offset {occurrence.start}"
            )
            continue

        new_target = f"{to_link_text(new_identity, source)}{suffix}"
        edits.append(Edit(start=span[0], end=span[1], text=new_target))
    return edits


def rewrite_links(
    text: str,
    occurrences: Iterable[Occurrence],
    replacements: Mapping[str, str],
    *,
    source: str,
    resolve: LinkResolver,
    to_link_text: LinkTextResolver,
) -> str:
    """Point every occurrence of a replaced resource at its new identity.

    Args:
        text: Note text the occurrences were parsed from
        occurrences: Occurrences with offsets into ``text``
        replacements: Old resource identity -> new resource identity
        source: Identity of the note being rewritten
        resolve: Resolves a bare link target relative to ``source``
        to_link_text: Expresses a resource as link text relative to ``source``

    Returns:
        Rewritten text. Equal to ``text`` when nothing matched, in which case
        callers should skip writing.
    """
    if not replacements:
        return text

    edits = build_link_edits(
        text,
        occurrences,
        replacements,
        source=source,
        resolve=resolve,
        to_link_text=to_link_text,
    )
    if edits:
        logger.debug(f"[{source}] Rewriting {len(edits)} link target(s)")
    return apply_edits(text, edits)
