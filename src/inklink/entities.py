"""Auto-link known note names in freshly generated text.

The first occurrence of each known note name (or one of its aliases) is
wrapped in a wikilink. Matching is case-insensitive and word bounded, longer
names are tried before shorter ones, each note is linked at most once per
call (notes the text already wikilinks count as linked), and nothing inside
existing link syntax is touched, including links inserted earlier in the
same call.

Each key is searched on its own, so a shorter key can claim an occurrence
that lies before a longer key's match in the text. No unified left-to-right
pass is attempted.
"""

from __future__ import annotations

import bisect
import re
from collections.abc import Iterable, Mapping

from loguru import logger

from inklink.constants import MIN_ENTITY_KEY_LENGTH, WIKILINK_PREFIX, WIKILINK_SUFFIX
from inklink.types import CorpusEntry, LinkRange

# [[...]] wikilinks and ![[...]] embeds, plus [text](target) / ![alt](target)
_LINK_SYNTAX_PATTERN = re.compile(
    r"\[\[[^\]]+\]\]|"
    r"\[[^\[\]\n]*\]\((?:[^()\n]|\([^()\n]*\))*\)"
)
# Target part of an existing [[Target#heading|alias]] or ![[Target]]
_WIKILINK_TARGET_PATTERN = re.compile(r"\[\[([^\]|#\n]+)")


def build_entity_index(
    corpus: Iterable[CorpusEntry],
    exclude: str | None = None,
) -> dict[str, str]:
    """Map lowercase names and aliases to canonical note names.

    The first registration of a lowercase key wins, so a later note whose
    alias collides with an earlier note's name is ignored for that key.

    Args:
        corpus: Notes in enumeration order
        exclude: Identity of the note being written, skipped to avoid self-links

    Returns:
        Lowercase key -> canonical name
    """
    index: dict[str, str] = {}
    for entry in corpus:
        if exclude is not None and entry.path == exclude:
            continue
        index.setdefault(fold_case(entry.name), entry.name)
        for alias in entry.aliases:
            trimmed = alias.strip()
            if trimmed:
                index.setdefault(fold_case(trimmed), entry.name)
    return index


def fold_case(text: str) -> str:
    """Lowercase ``text`` one character at a time without changing its length.

    Characters whose lowercase form is longer (e.g. "İ") are kept as they
    are, so offsets in the folded copy always line up with the original.
    """
    folded = []
    for char in text:
        lower = char.lower()
        folded.append(lower if len(lower) == 1 else char)
    return "".join(folded)


def compute_link_ranges(text: str) -> list[LinkRange]:
    """Return the sorted, non-overlapping spans covered by link syntax."""
    return [match.span() for match in _LINK_SYNTAX_PATTERN.finditer(text)]


def overlaps_link(start: int, end: int, ranges: list[LinkRange]) -> bool:
    """Check whether ``[start, end)`` overlaps any span in sorted ``ranges``."""
    # Rightmost range starting before `end`; earlier ones end before it begins
    position = bisect.bisect_left(ranges, (end, -1)) - 1
    if position < 0:
        return False
    return ranges[position][1] > start


def _is_word_char(char: str) -> bool:
    return char.isalnum()


def _find_first_match(
    lower: str,
    key: str,
    ranges: list[LinkRange],
) -> int | None:
    """Find the first word-bounded occurrence of ``key`` outside link syntax."""
    index = lower.find(key)
    while index != -1:
        end = index + len(key)
        before = lower[index - 1] if index > 0 else ""
        after = lower[end] if end < len(lower) else ""
        if (
            not (before and _is_word_char(before))
            and not (after and _is_word_char(after))
            and not overlaps_link(index, end, ranges)
        ):
            return index
        index = lower.find(key, end)
    return None


def existing_links(index: Mapping[str, str], text: str) -> set[str]:
    """Canonical names the text already wikilinks to."""
    canonical_by_key = {fold_case(name): name for name in index.values()}
    found: set[str] = set()
    for match in _WIKILINK_TARGET_PATTERN.finditer(text):
        key = fold_case(match.group(1).strip())
        canonical = canonical_by_key.get(key) or index.get(key)
        if canonical:
            found.add(canonical)
    return found


def format_wikilink(canonical: str, original: str) -> str:
    """Format a wikilink, keeping the writer's casing as a display alias."""
    if original == canonical:
        return f"{WIKILINK_PREFIX}{canonical}{WIKILINK_SUFFIX}"
    return f"{WIKILINK_PREFIX}{canonical}|{original}{WIKILINK_SUFFIX}"


def annotate(
    index: Mapping[str, str],
    text: str,
    *,
    current: str | None = None,
) -> str:
    """Wikilink the first occurrence of every known entity in ``text``.

    Args:
        index: Lowercase key -> canonical name, see build_entity_index()
        text: Text to annotate
        current: Canonical name of the note being written; never linked

    Returns:
        Annotated text, equal to ``text`` when nothing matched
    """
    keys = sorted(
        (
            key
            for key, canonical in index.items()
            if len(key) >= MIN_ENTITY_KEY_LENGTH and canonical != current
        ),
        key=lambda key: (-len(key), key),
    )
    if not keys:
        return text

    lower = fold_case(text)
    ranges = compute_link_ranges(text)
    linked = existing_links(index, text)
    added: list[str] = []

    for key in keys:
        canonical = index[key]
        if canonical in linked:
            continue

        start = _find_first_match(lower, key, ranges)
        if start is None:
            continue

        end = start + len(key)
        replacement = format_wikilink(canonical, text[start:end])
        text = text[:start] + replacement + text[end:]
        linked.add(canonical)
        added.append(canonical)

        lower = fold_case(text)
        ranges = compute_link_ranges(text)

    if added:
        logger.debug(f"Linked {len(added)} entities: {', '.join(sorted(added))}")
    return text
