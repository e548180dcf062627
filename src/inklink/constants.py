"""Centralized constants for inklink.

Defaults referenced by the config models, the image pipeline and the
link engine live here so limits can be read at a glance.
"""

from __future__ import annotations

# =============================================================================
# Configuration
# =============================================================================

CONFIG_FILENAME = "inklink.json"
CONFIG_ENV_VAR = "INKLINK_CONFIG"
LOG_DIR_ENV_VAR = "INKLINK_LOG_DIR"

# =============================================================================
# Image Processing
# =============================================================================

DEFAULT_IMAGE_LIMIT = 10  # Images processed per command
DEFAULT_JPEG_QUALITY = 92  # HEIC -> JPEG conversion quality (1-100)
DEFAULT_LLM_MAX_EDGE = 2048  # Longest edge for downscaled LLM input (px)
DEFAULT_LLM_IMAGE_QUALITY = 90  # JPEG quality for downscaled LLM input

# Extensions treated as images when collecting note references
IMAGE_EXTENSIONS = frozenset(
    {".png", ".jpg", ".jpeg", ".webp", ".gif", ".bmp", ".tif", ".tiff", ".heic", ".heif"}
)
HEIC_EXTENSIONS = frozenset({".heic", ".heif"})

# ISO-BMFF brands that identify HEIC/HEIF payloads (checked in the first 64 bytes)
HEIC_BRANDS = (b"ftypheic", b"ftypheix", b"ftyphevc", b"ftyphevx", b"ftypmif1", b"ftypmsf1")
HEIC_SNIFF_BYTES = 64

EXTENSION_TO_MIME: dict[str, str] = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".svg": "image/svg+xml",
}

# MIME types accepted by vision LLMs as inline data URLs
LLM_DATA_URL_PATTERN = r"^data:image/(png|jpe?g|webp|gif);"

# =============================================================================
# LLM / OCR
# =============================================================================

DEFAULT_LLM_MODEL = "openai/gpt-4o"
DEFAULT_LLM_API_KEY = "env:OPENAI_API_KEY"
DEFAULT_LLM_MAX_TOKENS = 2048
DEFAULT_LLM_TIMEOUT = 120  # seconds
MAX_PERSONAL_CONTEXT_CHARS = 2000

DEFAULT_OCR_API_KEY = "env:AZURE_VISION_KEY"
DEFAULT_OCR_LANGUAGE = "en"
DEFAULT_OCR_TIMEOUT = 60.0  # seconds
OCR_API_VERSION = "2023-10-01"
OCR_ANALYZE_PATH = "/computervision/imageanalysis:analyze"

# =============================================================================
# Links
# =============================================================================

MIN_ENTITY_KEY_LENGTH = 2  # Shorter entity keys are treated as noise
EMBED_PREFIX = "![["
WIKILINK_PREFIX = "[["
WIKILINK_SUFFIX = "]]"
LINK_SUFFIX_DELIMITER = "|"
# Optional "title" or 'title' after a markdown link target
MARKDOWN_TITLE_PATTERN = r"""\s+(?:"[^"\n]*"|'[^'\n]*')\s*\Z"""
MARKDOWN_EXTENSION = ".md"

# =============================================================================
# Output
# =============================================================================

DEFAULT_TRANSCRIPTION_HEADING = "Transcription"
TRANSCRIPTION_SEPARATOR = "---"

# =============================================================================
# Logging
# =============================================================================

DEFAULT_LOG_LEVEL = "DEBUG"
DEFAULT_LOG_DIR = "~/.inklink/logs"
DEFAULT_LOG_ROTATION = "10 MB"
DEFAULT_LOG_RETENTION = "7 days"
