"""Common type definitions for inklink."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class SyntaxKind(str, Enum):
    """How much of an occurrence's span is replaceable target text.

    EMBED is ``![[target|suffix]]`` and WIKILINK is ``[[target|alias]]``: the
    target is the span minus their fixed-width opening and closing markers.
    INLINE covers ``[alt](target)`` and ``![alt](target)``, where the target
    has to be located inside the span.
    """

    EMBED = "embed"
    WIKILINK = "wikilink"
    INLINE = "inline"


@dataclass(frozen=True)
class Occurrence:
    """A located link/embed reference inside a text body."""

    link: str  # Raw link text, may carry a trailing "|suffix"
    start: int  # Offset of the first character of the whole construct
    end: int  # Offset just past the whole construct
    kind: SyntaxKind
    display_text: str | None = None  # Alt text or wikilink alias


@dataclass(frozen=True)
class Edit:
    """Replace ``base[start:end]`` with ``text``."""

    start: int
    end: int
    text: str


@dataclass(frozen=True)
class CorpusEntry:
    """A note in the corpus, as seen by the entity index."""

    name: str  # Canonical name (file stem)
    path: str  # Vault-relative identity
    aliases: tuple[str, ...] = field(default_factory=tuple)


# Offset span already covered by link syntax
LinkRange = tuple[int, int]
