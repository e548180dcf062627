"""Pytest configuration and fixtures."""

from __future__ import annotations

import io
from collections.abc import Callable
from pathlib import Path

import pytest
from PIL import Image

from inklink.config import InklinkConfig
from inklink.vault import Vault

# =============================================================================
# Image Fixtures
# =============================================================================


def make_image_bytes(
    width: int = 32,
    height: int = 24,
    fmt: str = "PNG",
    mode: str = "RGB",
    color: tuple[int, ...] = (200, 30, 30),
) -> bytes:
    """Encode a solid-color test image."""
    img = Image.new(mode, (width, height), color)
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def create_test_image() -> Callable[..., bytes]:
    """Factory fixture returning encoded image bytes."""
    return make_image_bytes


# =============================================================================
# Vault Fixtures
# =============================================================================


@pytest.fixture
def vault_dir(tmp_path: Path) -> Path:
    """Return an empty vault directory."""
    root = tmp_path / "vault"
    root.mkdir()
    return root


@pytest.fixture
def write_file(vault_dir: Path) -> Callable[[str, str | bytes], Path]:
    """Write a text or binary file at a vault-relative path."""

    def _write(relative: str, content: str | bytes) -> Path:
        path = vault_dir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8", newline="")
        return path

    return _write


@pytest.fixture
def vault(vault_dir: Path) -> Vault:
    """Return a Vault over the temporary vault directory."""
    return Vault(vault_dir)


@pytest.fixture
def photo_vault(vault_dir: Path, write_file, create_test_image) -> Vault:
    """A vault with a journal note embedding one HEIC and one PNG image.

    The ``.heic`` file holds PNG data; Pillow detects the real format from
    the content, so conversion works without a HEIF encoder.
    """
    write_file("Attachments/photo.heic", create_test_image(fmt="PNG"))
    write_file("Attachments/page.png", create_test_image(fmt="PNG", color=(0, 0, 255)))
    write_file(
        "Journal/Today.md",
        "# Today\n\n![[photo.heic|300x200]]\n\nSome words.\n\n![second page](../Attachments/page.png)\n",
    )
    write_file("People/Robert Smith.md", "---\naliases: [Bob]\n---\nA friend.\n")
    write_file("People/Rob.md", "Another Rob.\n")
    return Vault(vault_dir)


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def config() -> InklinkConfig:
    """Return a default configuration."""
    return InklinkConfig()


# =============================================================================
# CLI Fixtures
# =============================================================================


@pytest.fixture
def cli_runner():
    """Return a CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
