"""Filesystem-backed markdown vault.

A vault is a folder of markdown notes and attachments. Every file is
identified by its vault-relative POSIX path (e.g. ``Journal/2024-05-01.md``),
which is the resource identity used by the link rewriter and the entity index.
"""

from __future__ import annotations

import posixpath
from collections.abc import Iterator
from pathlib import Path

from loguru import logger

from inklink.constants import MARKDOWN_EXTENSION
from inklink.exceptions import NoteNotFoundError, VaultError
from inklink.parser import is_external_link
from inklink.security import (
    atomic_write_bytes,
    atomic_write_text,
    validate_path_within_base,
)
from inklink.types import CorpusEntry
from inklink.utils.frontmatter import extract_aliases, parse_frontmatter


def _strip_md(path: str) -> str:
    if path.lower().endswith(MARKDOWN_EXTENSION):
        return path[: -len(MARKDOWN_EXTENSION)]
    return path


def _has_extension(path: str) -> bool:
    return bool(posixpath.splitext(posixpath.basename(path))[1])


class Vault:
    """A folder of markdown notes addressed by vault-relative paths."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).expanduser().resolve()
        if not self.root.is_dir():
            raise VaultError(str(root), "vault directory does not exist")
        self._files: list[str] | None = None

    # -------------------------------------------------------------------------
    # Enumeration
    # -------------------------------------------------------------------------

    def files(self) -> list[str]:
        """All files in the vault, sorted, excluding hidden directories."""
        if self._files is None:
            found: list[str] = []
            for path in self.root.rglob("*"):
                relative = path.relative_to(self.root)
                if any(part.startswith(".") for part in relative.parts):
                    continue
                if path.is_file():
                    found.append(relative.as_posix())
            self._files = sorted(found)
        return list(self._files)

    def markdown_files(self) -> list[str]:
        """All markdown notes in the vault, sorted."""
        return [f for f in self.files() if f.lower().endswith(MARKDOWN_EXTENSION)]

    def invalidate(self) -> None:
        """Forget the cached file listing after files change on disk."""
        self._files = None

    def corpus(self) -> Iterator[CorpusEntry]:
        """Yield one entry per note with its name and frontmatter aliases."""
        for path in self.markdown_files():
            aliases: tuple[str, ...] = ()
            try:
                aliases = tuple(extract_aliases(parse_frontmatter(self.read_text(path))))
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Could not read aliases from {path}: {e}")
            yield CorpusEntry(
                name=posixpath.splitext(posixpath.basename(path))[0],
                path=path,
                aliases=aliases,
            )

    # -------------------------------------------------------------------------
    # File access
    # -------------------------------------------------------------------------

    def absolute(self, path: str) -> Path:
        """Map a vault path to an absolute filesystem path inside the vault."""
        try:
            return validate_path_within_base(self.root / path, self.root)
        except ValueError as e:
            raise VaultError(path, str(e)) from e

    def exists(self, path: str) -> bool:
        return self.absolute(path).is_file()

    def read_text(self, path: str) -> str:
        absolute = self.absolute(path)
        if not absolute.is_file():
            raise NoteNotFoundError(path)
        with open(absolute, encoding="utf-8", newline="") as f:
            return f.read()

    def read_bytes(self, path: str) -> bytes:
        absolute = self.absolute(path)
        if not absolute.is_file():
            raise VaultError(path, "file not found")
        return absolute.read_bytes()

    def write_text(self, path: str, content: str) -> None:
        """Atomically replace a note's content."""
        atomic_write_text(self.absolute(path), content)
        self.invalidate()
        logger.debug(f"Written {path} ({len(content)} chars)")

    def create_bytes(self, path: str, data: bytes) -> None:
        """Create a new binary file; never overwrites an existing one."""
        absolute = self.absolute(path)
        if absolute.exists():
            raise VaultError(path, "file already exists")
        atomic_write_bytes(absolute, data)
        self.invalidate()
        logger.debug(f"Created {path} ({len(data)} bytes)")

    def available_path(self, folder: str, stem: str, suffix: str) -> str:
        """Return ``folder/stem.suffix``, adding `` (n)`` until it is free.

        Examples:
            ``photo.jpg`` taken -> ``photo (1).jpg``, then ``photo (2).jpg``
        """
        suffix = suffix if suffix.startswith(".") else f".{suffix}"
        candidate = posixpath.join(folder, f"{stem}{suffix}") if folder else f"{stem}{suffix}"
        counter = 1
        while self.exists(candidate):
            name = f"{stem} ({counter}){suffix}"
            candidate = posixpath.join(folder, name) if folder else name
            counter += 1
        return candidate

    # -------------------------------------------------------------------------
    # Link resolution
    # -------------------------------------------------------------------------

    def resolve_link(self, linkpath: str, source: str) -> str | None:
        """Resolve a link target the way the vault's link system does.

        Order: path relative to the source note's folder, then path from the
        vault root (each also with an implied ``.md``), then a file-name match
        anywhere in the vault preferring the source's folder, then the
        shallowest path, then alphabetical order.

        Args:
            linkpath: Bare link target (no ``|suffix``)
            source: Vault path of the note containing the link

        Returns:
            Vault path of the target file, or None for URLs and missing files
        """
        target = linkpath.strip()
        if not target or is_external_link(target):
            return None

        target = target.split("#", 1)[0].strip()  # Drop #heading / #^block
        if not target:
            return None

        files = self.files()
        known = set(files)
        folder = posixpath.dirname(source)

        candidates: list[str] = []
        if target.startswith("/"):
            candidates.append(posixpath.normpath(target.lstrip("/")))
        else:
            candidates.append(posixpath.normpath(posixpath.join(folder, target)))
            candidates.append(posixpath.normpath(target))

        for candidate in candidates:
            if candidate.startswith(".."):
                continue
            if candidate in known:
                return candidate
            if not _has_extension(candidate) and f"{candidate}{MARKDOWN_EXTENSION}" in known:
                return f"{candidate}{MARKDOWN_EXTENSION}"

        return self._match_by_name(target.lstrip("/"), files, folder)

    @staticmethod
    def _match_by_name(target: str, files: list[str], folder: str) -> str | None:
        wanted = [target]
        if not _has_extension(target):
            wanted.append(f"{target}{MARKDOWN_EXTENSION}")

        matches = [
            f
            for f in files
            if any(f == w or f.endswith(f"/{w}") for w in wanted)
        ]
        if not matches:
            return None
        matches.sort(key=lambda f: (posixpath.dirname(f) != folder, f.count("/"), f))
        return matches[0]

    def link_text(self, target: str, source: str) -> str:
        """Express ``target`` as link text usable from ``source``.

        Uses the bare file name when it is unique in the vault and the full
        vault path otherwise; markdown notes drop their ``.md`` extension.
        ``source`` is accepted for interface symmetry with resolve_link().
        """
        name = posixpath.basename(target)
        same_name = sum(1 for f in self.files() if posixpath.basename(f) == name)
        if same_name <= 1:
            return _strip_md(name)
        return _strip_md(target)
