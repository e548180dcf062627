"""Image conversion and preparation for OCR and vision models.

HEIC/HEIF photos are decoded through the ``pillow-heif`` opener so the rest
of the pipeline only ever sees formats OCR services and vision LLMs accept.
"""

from __future__ import annotations

import base64
import io
import posixpath
from dataclasses import dataclass

from loguru import logger
from PIL import Image
from pillow_heif import register_heif_opener

from inklink.constants import (
    DEFAULT_JPEG_QUALITY,
    DEFAULT_LLM_IMAGE_QUALITY,
    DEFAULT_LLM_MAX_EDGE,
    EXTENSION_TO_MIME,
    HEIC_BRANDS,
    HEIC_EXTENSIONS,
    HEIC_SNIFF_BYTES,
)
from inklink.exceptions import ImageProcessingError
from inklink.vault import Vault

register_heif_opener()

# (magic prefix, offset, mime)
_MAGIC_NUMBERS: tuple[tuple[bytes, int, str], ...] = (
    (b"\x89PNG\r\n\x1a\n", 0, "image/png"),
    (b"\xff\xd8\xff", 0, "image/jpeg"),
    (b"GIF87a", 0, "image/gif"),
    (b"GIF89a", 0, "image/gif"),
    (b"WEBP", 8, "image/webp"),
    (b"BM", 0, "image/bmp"),
)


@dataclass
class PreparedImage:
    """Image bytes ready for OCR and, when usable, a data URL for the LLM."""

    ocr_bytes: bytes
    llm_data_url: str | None = None


def is_heic_name(name: str) -> bool:
    """Check whether a file name has a HEIC/HEIF extension.

    Examples:
        >>> is_heic_name("IMG_0001.HEIC")
        True
        >>> is_heic_name("scan.jpg")
        False
    """
    return posixpath.splitext(name)[1].lower() in HEIC_EXTENSIONS


def looks_like_heic(data: bytes) -> bool:
    """Check the ISO-BMFF ``ftyp`` brand in the file header."""
    head = data[:HEIC_SNIFF_BYTES]
    return any(brand in head for brand in HEIC_BRANDS)


def guess_image_mime(name: str, data: bytes) -> str | None:
    """Guess an image MIME type from the file name, then the magic bytes.

    Examples:
        >>> guess_image_mime("a.PNG", b"")
        'image/png'
        >>> guess_image_mime("blob", b"\\xff\\xd8\\xff\\xe0")
        'image/jpeg'
        >>> guess_image_mime("blob", b"plain text") is None
        True
    """
    by_extension = EXTENSION_TO_MIME.get(posixpath.splitext(name)[1].lower())
    if by_extension:
        return by_extension

    for magic, offset, mime in _MAGIC_NUMBERS:
        if offset and data[:4] != b"RIFF":
            continue
        if data[offset : offset + len(magic)] == magic:
            return mime
    return None


def to_data_url(data: bytes, mime: str) -> str:
    """Encode bytes as a base64 ``data:`` URL."""
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime};base64,{encoded}"


def _flatten_to_rgb(img: Image.Image) -> Image.Image:
    """Drop alpha onto a white background; JPEG has no transparency."""
    if img.mode == "P":
        img = img.convert("RGBA")
    if img.mode in ("RGBA", "LA"):
        background = Image.new("RGB", img.size, (255, 255, 255))
        background.paste(img, mask=img.split()[-1])
        return background
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


def _encode_jpeg(img: Image.Image, quality: int) -> bytes:
    buffer = io.BytesIO()
    _flatten_to_rgb(img).save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


def convert_to_jpeg(data: bytes, quality: int = DEFAULT_JPEG_QUALITY) -> bytes:
    """Decode any Pillow-readable image (HEIC included) and encode it as JPEG.

    Args:
        data: Raw image bytes
        quality: JPEG quality (1-100)

    Returns:
        JPEG bytes

    Raises:
        ImageProcessingError: If the image cannot be decoded or encoded
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            return _encode_jpeg(img, quality)
    except (OSError, ValueError) as e:
        raise ImageProcessingError("<bytes>", "JPEG conversion failed", cause=e) from e


def downscale(
    data: bytes,
    max_edge: int = DEFAULT_LLM_MAX_EDGE,
    quality: int = DEFAULT_LLM_IMAGE_QUALITY,
) -> bytes:
    """Shrink an image so its longest edge is at most ``max_edge``.

    Images already within the limit are returned unchanged (the same bytes
    object); larger ones are resized with LANCZOS and re-encoded as JPEG.

    Raises:
        ImageProcessingError: If the image cannot be decoded
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            width, height = img.size
            if max(width, height) <= max_edge:
                return data
            scaled = img.copy()
            scaled.thumbnail((max_edge, max_edge), Image.Resampling.LANCZOS)
            logger.debug(f"Downscaled {width}x{height} -> {scaled.size[0]}x{scaled.size[1]}")
            return _encode_jpeg(scaled, quality)
    except (OSError, ValueError) as e:
        raise ImageProcessingError("<bytes>", "downscale failed", cause=e) from e


def prepare_for_processing(
    vault: Vault,
    path: str,
    convert_heic: bool = True,
    downscale_for_llm: bool = False,
    *,
    jpeg_quality: int = DEFAULT_JPEG_QUALITY,
    max_edge: int = DEFAULT_LLM_MAX_EDGE,
    llm_quality: int = DEFAULT_LLM_IMAGE_QUALITY,
) -> PreparedImage:
    """Read an image and prepare OCR bytes plus an LLM data URL.

    OCR always receives the full-resolution image (converted to JPEG when it
    is HEIC and conversion is enabled). Only the LLM copy is downscaled.
    Conversion and downscale failures fall back to the original bytes.

    Args:
        vault: Vault containing the image
        path: Vault path of the image
        convert_heic: Convert HEIC/HEIF input to JPEG
        downscale_for_llm: Downscale the LLM copy to ``max_edge``

    Returns:
        PreparedImage; ``llm_data_url`` is None when no data URL could be built

    Raises:
        VaultError: If the image cannot be read
    """
    original = vault.read_bytes(path)
    ocr_bytes = original
    llm_bytes = original
    mime = None

    if convert_heic and (is_heic_name(path) or looks_like_heic(original)):
        try:
            ocr_bytes = llm_bytes = convert_to_jpeg(original, jpeg_quality)
            mime = "image/jpeg"
        except ImageProcessingError as e:
            logger.warning(f"HEIC conversion failed for {path}, using original bytes: {e.cause}")

    if mime is None:
        mime = guess_image_mime(path, original) or "application/octet-stream"

    if downscale_for_llm:
        try:
            scaled = downscale(llm_bytes, max_edge, llm_quality)
            if scaled is not llm_bytes:
                llm_bytes, mime = scaled, "image/jpeg"
        except ImageProcessingError as e:
            logger.warning(f"Downscale failed for {path}, using original for LLM input: {e.cause}")

    return PreparedImage(ocr_bytes=ocr_bytes, llm_data_url=to_data_url(llm_bytes, mime))


def convert_heic_file(vault: Vault, path: str, quality: int = DEFAULT_JPEG_QUALITY) -> str:
    """Write a JPEG copy of a HEIC/HEIF image next to the original.

    The original is kept. Name collisions get a `` (n)`` suffix so no
    existing file is overwritten.

    Returns:
        Vault path of the new JPEG

    Raises:
        ImageProcessingError: If the image cannot be converted
        VaultError: If the image cannot be read or the JPEG written
    """
    data = vault.read_bytes(path)
    try:
        jpeg = convert_to_jpeg(data, quality)
    except ImageProcessingError as e:
        raise ImageProcessingError(path, "JPEG conversion failed", cause=e.cause) from e

    folder = posixpath.dirname(path)
    stem = posixpath.splitext(posixpath.basename(path))[0]
    target = vault.available_path(folder, stem, ".jpg")
    vault.create_bytes(target, jpeg)
    logger.info(f"Converted {path} -> {target}")
    return target
