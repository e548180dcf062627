"""Collect the images a note references."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass

from loguru import logger

from inklink.constants import IMAGE_EXTENSIONS
from inklink.links import split_link_suffix
from inklink.parser import is_external_link, parse_occurrences
from inklink.vault import Vault


@dataclass(frozen=True)
class NoteImageRef:
    """An image referenced from a note, resolved to its vault path."""

    path: str
    alt: str | None = None


def is_image_target(target: str) -> bool:
    """Check whether a bare link target names an image file.

    Examples:
        >>> is_image_target("assets/Scan.HEIC")
        True
        >>> is_image_target("Notes/Idea")
        False
    """
    return posixpath.splitext(target.split("#", 1)[0])[1].lower() in IMAGE_EXTENSIONS


def collect_images(vault: Vault, note: str, limit: int) -> list[NoteImageRef]:
    """Collect image references from a note in order of appearance.

    Embeds (``![[img.png|300]]``), wikilinks and markdown links/images that
    resolve to image files in the vault are returned once each, up to
    ``limit`` images.

    Args:
        vault: Vault the note lives in
        note: Vault path of the note
        limit: Maximum number of images to return

    Returns:
        Resolved image references

    Raises:
        NoteNotFoundError: If the note does not exist
    """
    text = vault.read_text(note)
    results: list[NoteImageRef] = []
    seen: set[str] = set()

    for occurrence in parse_occurrences(text):
        if len(results) >= limit:
            break

        bare, _ = split_link_suffix(occurrence.link)
        if not bare or is_external_link(bare) or not is_image_target(bare):
            continue

        resolved = vault.resolve_link(bare, note)
        if resolved is None:
            logger.debug(f"Unresolved image link in {note}: {bare}")
            continue
        if resolved in seen:
            continue

        seen.add(resolved)
        results.append(NoteImageRef(path=resolved, alt=occurrence.display_text or None))

    logger.debug(f"Collected {len(results)} image(s) from {note}")
    return results
