"""Safe file writing utilities for inklink."""

from __future__ import annotations

import os
import sys
import tempfile
import time
from pathlib import Path

from loguru import logger

# Windows-specific retry settings for file operations
_WINDOWS_RETRY_COUNT = 5
_WINDOWS_RETRY_DELAY = 0.05  # 50ms


def _replace_with_retry(src: str, dst: Path) -> None:
    """Replace file with retry logic for Windows file locking.

    On Windows, os.replace() can fail with PermissionError when the target
    note is briefly locked by another process (sync clients, indexers,
    an editor holding the file open). This function retries the operation.

    Args:
        src: Source file path (temp file)
        dst: Destination file path
    """
    if sys.platform != "win32":
        os.replace(src, dst)
        return

    last_error: OSError | None = None
    for attempt in range(_WINDOWS_RETRY_COUNT):
        try:
            os.replace(src, dst)
            return
        except PermissionError as e:
            last_error = e
            if attempt < _WINDOWS_RETRY_COUNT - 1:
                time.sleep(_WINDOWS_RETRY_DELAY * (attempt + 1))

    if last_error:
        raise last_error


def _atomic_write(path: Path, data: bytes) -> None:
    path = Path(path)
    parent = path.parent
    parent.mkdir(parents=True, exist_ok=True)

    # Temp file in the same directory keeps the rename on one filesystem
    fd, tmp_path = tempfile.mkstemp(
        suffix=".tmp",
        prefix=f".{path.name}.",
        dir=parent,
    )
    fd_closed = False
    try:
        with os.fdopen(fd, "wb") as f:
            fd_closed = True  # fdopen takes ownership of fd
            f.write(data)
        _replace_with_retry(tmp_path, path)
    except Exception:
        if not fd_closed:
            try:
                os.close(fd)
            except OSError:
                pass
        try:
            os.unlink(tmp_path)
        except OSError as e:
            logger.debug(f"Could not remove temp file {tmp_path}: {e}")
        raise


def atomic_write_text(
    path: Path,
    content: str,
    encoding: str = "utf-8",
) -> None:
    """Write text to file atomically using temp file + rename.

    A note is either fully rewritten or left as it was, even if the process
    is interrupted during the write.

    Args:
        path: Target file path
        content: Text content to write
        encoding: Text encoding (default: utf-8)
    """
    # Encoded up front so line endings are written exactly as given
    _atomic_write(path, content.encode(encoding))


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write bytes to file atomically using temp file + rename."""
    _atomic_write(path, data)


def validate_path_within_base(path: Path, base_dir: Path) -> Path:
    """Validate that a path resolves inside ``base_dir``.

    Args:
        path: Path to validate
        base_dir: Base directory the path must stay within

    Returns:
        The resolved path

    Raises:
        ValueError: If the path escapes the base directory
    """
    resolved = path.resolve()
    base_resolved = base_dir.resolve()
    try:
        resolved.relative_to(base_resolved)
    except ValueError:
        raise ValueError(f"Path escapes base directory: {path} -> {resolved}")
    return resolved
