"""Unit tests for offset-based splicing."""

from __future__ import annotations

import itertools

from inklink.splice import apply_edits
from inklink.types import Edit


class TestApplyEdits:
    """Tests for apply_edits function."""

    def test_no_edits_returns_base(self) -> None:
        """An empty batch returns the input unchanged."""
        base = "hello world"
        assert apply_edits(base, []) is base

    def test_single_replacement(self) -> None:
        """A single edit replaces exactly its span."""
        assert apply_edits("hello world", [Edit(6, 11, "there")]) == "hello there"

    def test_offsets_refer_to_original_snapshot(self) -> None:
        """Earlier edits that change length do not shift later ones."""
        base = "aa bb cc"
        edits = [Edit(0, 2, "AAAA"), Edit(6, 8, "C")]
        assert apply_edits(base, edits) == "AAAA bb C"

    def test_insertion_and_deletion(self) -> None:
        """Zero-width edits insert; empty text deletes."""
        base = "abcdef"
        edits = [Edit(3, 3, "-"), Edit(0, 1, "")]
        assert apply_edits(base, edits) == "bc-def"

    def test_permutations_give_same_result(self) -> None:
        """Input order of a non-overlapping batch does not matter."""
        base = "one two three four"
        edits = [Edit(0, 3, "1"), Edit(4, 7, "2"), Edit(8, 13, "3"), Edit(14, 18, "4")]
        expected = "1 2 3 4"
        for permutation in itertools.permutations(edits):
            assert apply_edits(base, list(permutation)) == expected

    def test_same_start_first_listed_wins(self) -> None:
        """A second edit at an already used start offset is skipped."""
        base = "abcdef"
        edits = [Edit(2, 4, "X"), Edit(2, 3, "Y")]
        assert apply_edits(base, edits) == "abXef"

    def test_overlapping_edit_skipped(self) -> None:
        """An edit reaching into an already replaced span is skipped."""
        base = "abcdefgh"
        edits = [Edit(4, 6, "X"), Edit(2, 5, "Y")]
        assert apply_edits(base, edits) == "abcdXgh"

    def test_adjacent_edits_both_apply(self) -> None:
        """Touching spans do not overlap."""
        assert apply_edits("abcd", [Edit(0, 2, "X"), Edit(2, 4, "Y")]) == "XY"

    def test_out_of_range_edits_skipped(self) -> None:
        """Reversed or out-of-bounds ranges are ignored."""
        base = "abc"
        edits = [Edit(-1, 1, "X"), Edit(2, 1, "Y"), Edit(1, 10, "Z"), Edit(0, 1, "A")]
        assert apply_edits(base, edits) == "Abc"

    def test_unicode_offsets(self) -> None:
        """Offsets count characters, not bytes."""
        base = "café ☕ time"
        assert apply_edits(base, [Edit(5, 6, "tea")]) == "café tea time"
