"""Custom exceptions for inklink.

Error Hierarchy:
    InklinkError (base)
    ├── ConfigurationError
    ├── VaultError
    │   └── NoteNotFoundError
    ├── ImageProcessingError
    ├── OCRError
    ├── TranscriptionError
    └── NoImagesError

The link engine itself never raises; these cover the vault, image and
network layers around it.
"""

from __future__ import annotations


class InklinkError(Exception):
    """Base exception class for inklink."""

    pass


class ConfigurationError(InklinkError):
    """Missing or invalid configuration (endpoints, keys, models)."""

    pass


class VaultError(InklinkError):
    """Error reading or writing vault files."""

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        super().__init__(f"{path}: {message}")


class NoteNotFoundError(VaultError):
    """The requested note does not exist in the vault."""

    def __init__(self, path: str) -> None:
        super().__init__(path, "note not found")


class ImageProcessingError(InklinkError):
    """Error decoding, converting or re-encoding an image."""

    def __init__(self, path: str, message: str, cause: Exception | None = None) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Image processing failed for {path}: {message}")


class OCRError(InklinkError):
    """OCR request failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class TranscriptionError(InklinkError):
    """Transcription could not be produced."""

    pass


class NoImagesError(InklinkError):
    """The note has no image references to process."""

    def __init__(self, note: str) -> None:
        self.note = note
        super().__init__(f"No images found in {note}")
