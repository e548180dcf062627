"""Unit tests for image conversion and preparation."""

from __future__ import annotations

import base64
import io

import pytest
from PIL import Image

from inklink.exceptions import ImageProcessingError
from inklink.image import (
    convert_heic_file,
    convert_to_jpeg,
    downscale,
    guess_image_mime,
    is_heic_name,
    looks_like_heic,
    prepare_for_processing,
    to_data_url,
)


def _open(data: bytes) -> Image.Image:
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


def _data_url_bytes(url: str) -> bytes:
    return base64.b64decode(url.split(",", 1)[1])


class TestDetection:
    """Tests for format detection helpers."""

    def test_is_heic_name(self) -> None:
        assert is_heic_name("Attachments/IMG_1.HEIC")
        assert is_heic_name("x.heif")
        assert not is_heic_name("x.jpg")

    def test_looks_like_heic(self) -> None:
        assert looks_like_heic(b"\x00\x00\x00\x18ftypheic\x00\x00")
        assert looks_like_heic(b"\x00\x00\x00\x1cftypmif1")
        assert not looks_like_heic(b"\x89PNG\r\n\x1a\n")

    def test_mime_from_extension(self) -> None:
        assert guess_image_mime("a.JPG", b"") == "image/jpeg"
        assert guess_image_mime("a.webp", b"") == "image/webp"

    def test_mime_from_magic_bytes(self, create_test_image) -> None:
        assert guess_image_mime("blob", create_test_image(fmt="PNG")) == "image/png"
        assert guess_image_mime("blob", create_test_image(fmt="GIF", mode="P", color=1)) == "image/gif"
        assert guess_image_mime("blob", b"RIFF\x00\x00\x00\x00WEBPVP8 ") == "image/webp"
        assert guess_image_mime("blob", b"\x00\x00\x00\x00\x00\x00\x00\x00WEBP") is None

    def test_to_data_url(self) -> None:
        assert to_data_url(b"abc", "image/png") == "data:image/png;base64,YWJj"


class TestConvertToJpeg:
    """Tests for convert_to_jpeg function."""

    def test_png_to_jpeg(self, create_test_image) -> None:
        jpeg = convert_to_jpeg(create_test_image(fmt="PNG"))
        img = _open(jpeg)
        assert img.format == "JPEG"
        assert img.size == (32, 24)

    def test_transparency_flattened_on_white(self, create_test_image) -> None:
        data = create_test_image(fmt="PNG", mode="RGBA", color=(0, 0, 0, 0))
        img = _open(convert_to_jpeg(data))
        assert img.mode == "RGB"
        assert all(channel > 240 for channel in img.getpixel((5, 5)))

    def test_invalid_data(self) -> None:
        with pytest.raises(ImageProcessingError) as exc_info:
            convert_to_jpeg(b"not an image")
        assert exc_info.value.cause is not None


class TestDownscale:
    """Tests for downscale function."""

    def test_small_image_returned_unchanged(self, create_test_image) -> None:
        data = create_test_image(width=100, height=50)
        assert downscale(data, max_edge=100) is data

    def test_large_image_shrunk_to_jpeg(self, create_test_image) -> None:
        data = create_test_image(width=400, height=200)
        img = _open(downscale(data, max_edge=100))
        assert img.format == "JPEG"
        assert img.size == (100, 50)

    def test_invalid_data(self) -> None:
        with pytest.raises(ImageProcessingError):
            downscale(b"garbage", max_edge=100)


class TestPrepareForProcessing:
    """Tests for prepare_for_processing function."""

    def test_png_passthrough(self, vault, write_file, create_test_image) -> None:
        data = create_test_image(fmt="PNG")
        write_file("a.png", data)

        prepared = prepare_for_processing(vault, "a.png")

        assert prepared.ocr_bytes == data
        assert prepared.llm_data_url == to_data_url(data, "image/png")

    def test_heic_converted_for_both_consumers(self, photo_vault) -> None:
        prepared = prepare_for_processing(photo_vault, "Attachments/photo.heic")

        assert _open(prepared.ocr_bytes).format == "JPEG"
        assert prepared.llm_data_url.startswith("data:image/jpeg;base64,")

    def test_conversion_disabled_keeps_original(self, photo_vault) -> None:
        original = photo_vault.read_bytes("Attachments/photo.heic")
        prepared = prepare_for_processing(photo_vault, "Attachments/photo.heic", convert_heic=False)

        assert prepared.ocr_bytes == original
        # No extension mapping for .heic, so the PNG magic bytes decide
        assert prepared.llm_data_url.startswith("data:image/png;base64,")

    def test_failed_conversion_falls_back(self, vault, write_file) -> None:
        write_file("broken.heic", b"\x00\x00\x00\x18ftypheic-not-really")

        prepared = prepare_for_processing(vault, "broken.heic")

        assert prepared.ocr_bytes == b"\x00\x00\x00\x18ftypheic-not-really"
        assert prepared.llm_data_url.startswith("data:application/octet-stream;base64,")

    def test_downscale_only_affects_llm_copy(self, vault, write_file, create_test_image) -> None:
        data = create_test_image(width=300, height=150)
        write_file("big.png", data)

        prepared = prepare_for_processing(vault, "big.png", downscale_for_llm=True, max_edge=100)

        assert prepared.ocr_bytes == data
        assert prepared.llm_data_url.startswith("data:image/jpeg;base64,")
        assert _open(_data_url_bytes(prepared.llm_data_url)).size == (100, 50)


class TestConvertHeicFile:
    """Tests for convert_heic_file function."""

    def test_writes_jpeg_next_to_original(self, photo_vault) -> None:
        target = convert_heic_file(photo_vault, "Attachments/photo.heic")

        assert target == "Attachments/photo.jpg"
        assert photo_vault.exists("Attachments/photo.heic")
        assert _open(photo_vault.read_bytes(target)).format == "JPEG"

    def test_collision_gets_numbered_name(self, photo_vault, write_file) -> None:
        write_file("Attachments/photo.jpg", b"existing")

        target = convert_heic_file(photo_vault, "Attachments/photo.heic")

        assert target == "Attachments/photo (1).jpg"
        assert photo_vault.read_bytes("Attachments/photo.jpg") == b"existing"

    def test_undecodable_image(self, vault, write_file) -> None:
        write_file("bad.heic", b"nope")
        with pytest.raises(ImageProcessingError, match="bad.heic"):
            convert_heic_file(vault, "bad.heic")
