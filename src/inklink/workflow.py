"""Note workflows: HEIC conversion, link rewriting and transcription.

These functions glue the vault, the image pipeline, OCR, the transcriber and
the link engine together. Per-image failures are logged and skipped so one
bad photo never aborts a whole note.
"""

from __future__ import annotations

import asyncio
import posixpath
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from loguru import logger

from inklink.config import InklinkConfig
from inklink.constants import TRANSCRIPTION_SEPARATOR
from inklink.entities import annotate, build_entity_index
from inklink.exceptions import (
    InklinkError,
    NoImagesError,
    OCRError,
    TranscriptionError,
)
from inklink.image import convert_heic_file, is_heic_name, prepare_for_processing
from inklink.links import rewrite_links
from inklink.notes import NoteImageRef, collect_images
from inklink.parser import parse_occurrences
from inklink.transcribe import TranscriptionItem
from inklink.utils.progress import ProgressReporter
from inklink.vault import Vault


class OCRBackend(Protocol):
    async def read_text(self, image: bytes) -> str: ...


class TranscriptionBackend(Protocol):
    async def transcribe(self, items: list[TranscriptionItem]) -> str: ...


@dataclass
class ProcessResult:
    """Outcome of transcribing a note's images."""

    note: str
    images: int  # Images handed to the model
    converted: dict[str, str] = field(default_factory=dict)  # HEIC -> JPEG paths
    ocr_failures: int = 0
    linked: bool = False  # Entity linking changed the transcription
    transcription: str = ""


def note_name(note: str) -> str:
    """Canonical name of a note (its file stem)."""
    return posixpath.splitext(posixpath.basename(note))[0]


def rewrite_note_links(vault: Vault, note: str, replacements: Mapping[str, str]) -> bool:
    """Point a note's links at replaced resources.

    Args:
        vault: Vault the note lives in
        note: Vault path of the note
        replacements: Old vault path -> new vault path

    Returns:
        True if the note was rewritten
    """
    if not replacements:
        return False

    original = vault.read_text(note)
    updated = rewrite_links(
        original,
        parse_occurrences(original),
        replacements,
        source=note,
        resolve=vault.resolve_link,
        to_link_text=vault.link_text,
    )
    if updated == original:
        logger.debug(f"No links to rewrite in {note}")
        return False

    vault.write_text(note, updated)
    logger.info(f"Written {note}: rewrote links for {len(replacements)} resource(s)")
    return True


async def convert_heic_images(
    vault: Vault,
    images: list[NoteImageRef],
    quality: int,
) -> dict[str, str]:
    """Write JPEG copies of every HEIC/HEIF image in ``images``.

    Returns:
        Old vault path -> new JPEG vault path, for the images that converted
    """
    replacements: dict[str, str] = {}
    for ref in images:
        if not is_heic_name(ref.path) or ref.path in replacements:
            continue
        try:
            replacements[ref.path] = await asyncio.to_thread(
                convert_heic_file, vault, ref.path, quality
            )
        except InklinkError as e:
            logger.warning(f"HEIC->JPEG conversion failed for {ref.path}: {e}")
    return replacements


async def _replace_heic_embeds(
    vault: Vault,
    note: str,
    images: list[NoteImageRef],
    config: InklinkConfig,
    progress: ProgressReporter,
) -> tuple[list[NoteImageRef], dict[str, str]]:
    """Convert HEIC images, relink the note and re-collect its images."""
    replacements = await convert_heic_images(vault, images, config.image.jpeg_quality)
    if not replacements:
        return images, replacements

    progress.update("Rewriting HEIC embeds to JPEG")
    rewrite_note_links(vault, note, replacements)
    return collect_images(vault, note, config.image.limit), replacements


async def convert_heic_in_note(
    vault: Vault,
    note: str,
    config: InklinkConfig,
    progress: ProgressReporter | None = None,
) -> int:
    """Convert a note's HEIC images to JPEG and relink the note.

    Returns:
        Number of images converted
    """
    progress = progress or ProgressReporter(enabled=False)
    progress.start_spinner("Scanning images")

    images = collect_images(vault, note, config.image.limit)
    _, replacements = await _replace_heic_embeds(vault, note, images, config, progress)

    if replacements:
        progress.finish(f"Converted {len(replacements)} HEIC image(s) in {note}")
    else:
        progress.finish(f"No HEIC images to convert in {note}")
    return len(replacements)


def link_entities(vault: Vault, note: str, text: str) -> str:
    """Wikilink mentions of other notes (names and aliases) in ``text``."""
    index = build_entity_index(vault.corpus(), exclude=note)
    return annotate(index, text, current=note_name(note))


def format_transcription_block(heading: str, transcription: str, now: datetime) -> str:
    """Heading with timestamp, the transcription and a separator."""
    timestamp = now.strftime("%Y-%m-%d %H:%M:%S")
    return f"## {heading} ({timestamp})\n\n{transcription.strip()}\n\n{TRANSCRIPTION_SEPARATOR}\n\n"


async def process_images_in_note(
    vault: Vault,
    note: str,
    config: InklinkConfig,
    *,
    ocr: OCRBackend,
    transcriber: TranscriptionBackend,
    progress: ProgressReporter | None = None,
    now: datetime | None = None,
) -> ProcessResult:
    """Transcribe every image in a note and prepend the result to it.

    Steps: collect images, optionally convert HEIC and relink, prepare each
    image, OCR it at full resolution, send everything to the vision model in
    one request, optionally wikilink known entities, then write the note.

    Args:
        vault: Vault the note lives in
        note: Vault path of the note
        config: Loaded configuration
        ocr: OCR backend (``read_text(bytes)``)
        transcriber: Transcription backend (``transcribe(items)``)
        progress: Optional progress reporter
        now: Timestamp for the heading (defaults to the current local time)

    Returns:
        ProcessResult describing what was done

    Raises:
        NoImagesError: If the note references no images
        TranscriptionError: If no image could be prepared or the model returned nothing
    """
    progress = progress or ProgressReporter(enabled=False)
    progress.start_spinner("Scanning images")

    images = collect_images(vault, note, config.image.limit)
    if not images:
        raise NoImagesError(note)

    converted: dict[str, str] = {}
    if config.image.replace_heic_embeds:
        images, converted = await _replace_heic_embeds(vault, note, images, config, progress)

    items: list[TranscriptionItem] = []
    ocr_failures = 0
    for position, ref in enumerate(images, start=1):
        name = posixpath.basename(ref.path)
        progress.update(f"Preparing {name}", position, len(images))
        try:
            prepared = await asyncio.to_thread(
                prepare_for_processing,
                vault,
                ref.path,
                config.image.convert_heic,
                config.image.downscale_for_llm,
                jpeg_quality=config.image.jpeg_quality,
                max_edge=config.image.llm_max_edge,
                llm_quality=config.image.llm_quality,
            )
        except (InklinkError, OSError) as e:
            logger.error(f"Failed to prepare image {ref.path}: {e}")
            continue

        ocr_text = ""
        try:
            ocr_text = await ocr.read_text(prepared.ocr_bytes)
        except OCRError as e:
            ocr_failures += 1
            logger.warning(f"OCR failed for {name}, continuing without text: {e}")

        items.append(
            TranscriptionItem(
                file_name=name,
                alt=ref.alt or "",
                ocr_text=ocr_text,
                data_url=prepared.llm_data_url,
            )
        )

    if not any(item.data_url for item in items):
        raise TranscriptionError("Failed to prepare images for model input.")

    progress.update(f"Transcribing {sum(item.usable for item in items)} image(s)")
    transcription = (await transcriber.transcribe(items)).strip()
    if not transcription:
        raise TranscriptionError("Model returned empty result.")

    linked = False
    if config.link.auto_link_entities:
        progress.update("Linking entities")
        try:
            annotated = link_entities(vault, note, transcription)
            linked = annotated != transcription
            transcription = annotated
        except (InklinkError, OSError) as e:
            logger.warning(f"Auto-link entities failed, keeping plain transcription: {e}")

    progress.update("Writing transcription to note")
    block = format_transcription_block(config.output.heading, transcription, now or datetime.now())
    vault.write_text(note, block + vault.read_text(note))

    progress.finish(f"Inserted transcription for {len(items)} image(s) into {note}")
    return ProcessResult(
        note=note,
        images=len(items),
        converted=converted,
        ocr_failures=ocr_failures,
        linked=linked,
        transcription=transcription,
    )
