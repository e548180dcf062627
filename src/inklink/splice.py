"""Offset-based text splicing.

Applies a batch of ``(start, end, text)`` edits to one snapshot of a string.
Edits are applied from the rightmost span to the leftmost, so an edit that has
already been applied never shifts the offsets of an edit still waiting.
"""

from __future__ import annotations

from collections.abc import Sequence

from loguru import logger

from inklink.types import Edit


def _order_edits(edits: Sequence[Edit]) -> list[Edit]:
    """Sort edits right-to-left, keeping the original order for equal starts."""
    indexed = sorted(enumerate(edits), key=lambda pair: (-pair[1].start, pair[0]))
    return [edit for _, edit in indexed]


def apply_edits(base: str, edits: Sequence[Edit]) -> str:
    """Apply all edits to ``base`` as if simultaneously.

    Offsets of every edit refer to ``base``. Edits that cannot be placed
    unambiguously are skipped:

    - ranges that are reversed or fall outside ``base``
    - a second edit starting at the same offset as one already placed
      (the edit listed first wins)
    - an edit overlapping a span that was already replaced

    Args:
        base: Original text snapshot
        edits: Edits whose offsets refer to ``base``

    Returns:
        The edited text, or ``base`` itself when there is nothing to apply
    """
    if not edits:
        return base

    result = base
    boundary = len(base)  # Start of the leftmost span replaced so far
    last_start: int | None = None

    for edit in _order_edits(edits):
        if edit.start < 0 or edit.end < edit.start or edit.end > len(base):
            logger.debug(f"Skipping out-of-range edit [{edit.start}, {edit.end})")
            continue
        if edit.start == last_start:
            logger.debug(f"Skipping ambiguous edit at offset {edit.start}")
            continue
        if edit.end > boundary:
            logger.debug(
                f"Skipping overlapping edit [{edit.start}, {edit.end}) "
                f"(next edit starts at {boundary})"
            )
            continue

        result = result[: edit.start] + edit.text + result[edit.end :]
        boundary = edit.start
        last_start = edit.start

    return result
