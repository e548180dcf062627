"""Unit tests for note workflows."""

from __future__ import annotations

from datetime import datetime
from unittest.mock import AsyncMock, patch

import pytest

from inklink.exceptions import (
    ImageProcessingError,
    NoImagesError,
    OCRError,
    TranscriptionError,
)
from inklink.notes import collect_images
from inklink.utils.progress import ProgressReporter
from inklink.workflow import (
    convert_heic_in_note,
    format_transcription_block,
    link_entities,
    note_name,
    process_images_in_note,
    rewrite_note_links,
)

NOTE = "Journal/Today.md"
NOW = datetime(2026, 1, 2, 3, 4, 5)


def _backends(transcription: str = "Met Bob and Rob today.") -> tuple[AsyncMock, AsyncMock]:
    ocr = AsyncMock()
    ocr.read_text.return_value = "ocr text"
    transcriber = AsyncMock()
    transcriber.transcribe.return_value = transcription
    return ocr, transcriber


class TestHelpers:
    """Tests for small workflow helpers."""

    def test_note_name(self) -> None:
        assert note_name("People/Robert Smith.md") == "Robert Smith"

    def test_format_transcription_block(self) -> None:
        block = format_transcription_block("Transcription", "  Hello\n", NOW)
        assert block == "## Transcription (2026-01-02 03:04:05)\n\nHello\n\n---\n\n"


class TestRewriteNoteLinks:
    """Tests for rewrite_note_links function."""

    def test_rewrites_and_saves(self, photo_vault, write_file) -> None:
        write_file("Attachments/photo.jpg", b"jpeg")
        photo_vault.invalidate()

        changed = rewrite_note_links(
            photo_vault, NOTE, {"Attachments/photo.heic": "Attachments/photo.jpg"}
        )

        assert changed
        text = photo_vault.read_text(NOTE)
        assert "![[photo.jpg|300x200]]" in text
        assert "![second page](../Attachments/page.png)" in text

    def test_nothing_to_rewrite(self, photo_vault) -> None:
        before = photo_vault.read_text(NOTE)
        assert not rewrite_note_links(photo_vault, NOTE, {"Other/x.png": "Other/y.png"})
        assert not rewrite_note_links(photo_vault, NOTE, {})
        assert photo_vault.read_text(NOTE) == before


class TestConvertHeicInNote:
    """Tests for convert_heic_in_note function."""

    @pytest.mark.asyncio
    async def test_converts_and_relinks(self, photo_vault, config) -> None:
        progress = ProgressReporter(enabled=False)

        converted = await convert_heic_in_note(photo_vault, NOTE, config, progress)

        assert converted == 1
        assert photo_vault.exists("Attachments/photo.jpg")
        assert photo_vault.exists("Attachments/photo.heic")
        assert "![[photo.jpg|300x200]]" in photo_vault.read_text(NOTE)
        assert progress.messages[-1] == f"Converted 1 HEIC image(s) in {NOTE}"

    @pytest.mark.asyncio
    async def test_no_heic_images(self, vault, write_file, create_test_image, config) -> None:
        write_file("a.png", create_test_image())
        write_file("n.md", "![[a.png]]")

        assert await convert_heic_in_note(vault, "n.md", config) == 0
        assert vault.read_text("n.md") == "![[a.png]]"

    @pytest.mark.asyncio
    async def test_failed_conversion_leaves_link(self, vault, write_file, config) -> None:
        write_file("bad.heic", b"not an image")
        write_file("n.md", "![[bad.heic]]")

        assert await convert_heic_in_note(vault, "n.md", config) == 0
        assert vault.read_text("n.md") == "![[bad.heic]]"

    @pytest.mark.asyncio
    async def test_collision_name_stays_collectable(
        self, vault, write_file, create_test_image, config
    ) -> None:
        write_file("Attachments/photo.heic", create_test_image(fmt="PNG"))
        write_file("Attachments/photo.jpg", create_test_image())
        write_file("n.md", "![scan](Attachments/photo.heic)\n")

        assert await convert_heic_in_note(vault, "n.md", config) == 1

        assert vault.exists("Attachments/photo (1).jpg")
        assert vault.read_text("n.md") == "![scan](photo (1).jpg)\n"
        assert [ref.path for ref in collect_images(vault, "n.md", limit=10)] == [
            "Attachments/photo (1).jpg"
        ]


class TestLinkEntities:
    """Tests for link_entities function."""

    def test_links_other_notes_not_self(self, photo_vault) -> None:
        result = link_entities(photo_vault, NOTE, "Today Bob met Rob.")
        assert result == "Today [[Robert Smith|Bob]] met [[Rob]]."


class TestProcessImagesInNote:
    """Tests for process_images_in_note function."""

    @pytest.mark.asyncio
    async def test_full_run(self, photo_vault, config) -> None:
        ocr, transcriber = _backends()
        config.link.auto_link_entities = True

        result = await process_images_in_note(
            photo_vault, NOTE, config, ocr=ocr, transcriber=transcriber, now=NOW
        )

        assert result.images == 2
        assert result.converted == {"Attachments/photo.heic": "Attachments/photo.jpg"}
        assert result.ocr_failures == 0
        assert result.linked
        assert photo_vault.read_text(NOTE) == (
            "## Transcription (2026-01-02 03:04:05)\n\n"
            "Met [[Robert Smith|Bob]] and [[Rob]] today.\n\n---\n\n"
            "# Today\n\n![[photo.jpg|300x200]]\n\nSome words.\n\n"
            "![second page](../Attachments/page.png)\n"
        )

        items = transcriber.transcribe.await_args.args[0]
        assert [item.file_name for item in items] == ["photo.jpg", "page.png"]
        assert [item.alt for item in items] == ["300x200", "second page"]
        assert all(item.ocr_text == "ocr text" for item in items)
        assert items[0].data_url.startswith("data:image/jpeg;base64,")
        assert ocr.read_text.await_count == 2

    @pytest.mark.asyncio
    async def test_heic_kept_when_replacement_disabled(self, photo_vault, config) -> None:
        ocr, transcriber = _backends("Plain text")
        config.image.replace_heic_embeds = False

        result = await process_images_in_note(
            photo_vault, NOTE, config, ocr=ocr, transcriber=transcriber, now=NOW
        )

        assert result.converted == {}
        assert not result.linked
        assert not photo_vault.exists("Attachments/photo.jpg")
        text = photo_vault.read_text(NOTE)
        assert "![[photo.heic|300x200]]" in text
        assert "\n\nPlain text\n\n---\n\n# Today" in text
        items = transcriber.transcribe.await_args.args[0]
        assert items[0].data_url.startswith("data:image/jpeg;base64,")

    @pytest.mark.asyncio
    async def test_custom_heading(self, photo_vault, config) -> None:
        ocr, transcriber = _backends("Text")
        config.output.heading = "From paper"

        await process_images_in_note(
            photo_vault, NOTE, config, ocr=ocr, transcriber=transcriber, now=NOW
        )

        assert photo_vault.read_text(NOTE).startswith("## From paper (2026-01-02 03:04:05)\n\n")

    @pytest.mark.asyncio
    async def test_ocr_failure_tolerated(self, photo_vault, config) -> None:
        ocr, transcriber = _backends("Text")
        ocr.read_text.side_effect = [OCRError("quota", status_code=429), "second"]

        result = await process_images_in_note(
            photo_vault, NOTE, config, ocr=ocr, transcriber=transcriber, now=NOW
        )

        assert result.ocr_failures == 1
        items = transcriber.transcribe.await_args.args[0]
        assert [item.ocr_text for item in items] == ["", "second"]

    @pytest.mark.asyncio
    async def test_limit(self, photo_vault, config) -> None:
        ocr, transcriber = _backends("Text")
        config.image.limit = 1

        result = await process_images_in_note(
            photo_vault, NOTE, config, ocr=ocr, transcriber=transcriber, now=NOW
        )

        assert result.images == 1

    @pytest.mark.asyncio
    async def test_no_images(self, vault, write_file, config) -> None:
        write_file("n.md", "Just words")
        ocr, transcriber = _backends()

        with pytest.raises(NoImagesError, match="n.md"):
            await process_images_in_note(vault, "n.md", config, ocr=ocr, transcriber=transcriber)

        transcriber.transcribe.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_all_images_unprepared(self, photo_vault, config) -> None:
        ocr, transcriber = _backends()
        config.image.replace_heic_embeds = False
        before = photo_vault.read_text(NOTE)

        with patch(
            "inklink.workflow.prepare_for_processing",
            side_effect=ImageProcessingError("x", "decode failed"),
        ):
            with pytest.raises(TranscriptionError, match="Failed to prepare"):
                await process_images_in_note(
                    photo_vault, NOTE, config, ocr=ocr, transcriber=transcriber
                )

        assert photo_vault.read_text(NOTE) == before

    @pytest.mark.asyncio
    async def test_empty_transcription(self, photo_vault, config) -> None:
        ocr, transcriber = _backends("   ")
        config.image.replace_heic_embeds = False
        before = photo_vault.read_text(NOTE)

        with pytest.raises(TranscriptionError, match="empty"):
            await process_images_in_note(
                photo_vault, NOTE, config, ocr=ocr, transcriber=transcriber
            )

        assert photo_vault.read_text(NOTE) == before

    @pytest.mark.asyncio
    async def test_progress_messages(self, photo_vault, config) -> None:
        ocr, transcriber = _backends("Text")
        progress = ProgressReporter(enabled=False)

        await process_images_in_note(
            photo_vault,
            NOTE,
            config,
            ocr=ocr,
            transcriber=transcriber,
            progress=progress,
            now=NOW,
        )

        assert progress.messages[0] == "Scanning images"
        assert "Preparing photo.jpg (1/2)" in progress.messages
        assert progress.messages[-1] == f"Inserted transcription for 2 image(s) into {NOTE}"
