"""In-memory overlay of every file a recipe run creates or changes.

The ``VirtualFileSystem`` records each write as an entry in an ordered
operation log and keeps the resulting content per path.  Reads of paths the
run has not touched fall through to the real project directory, so modules
can build on files that already exist on disk without copying them first.

Nothing reaches real storage until ``flush()``; ``discard()`` abandons the
run and leaves the disk exactly as it was.  The one exception is
``ensure_directory()``, which creates working directories for external
commands; ``discard()`` removes them again while they are empty.
"""

from __future__ import annotations

import asyncio
import os
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath

STAGING_SUFFIX = ".architech-tmp"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class VFSError(Exception):
    """Raised for invalid paths, closed file systems and storage failures."""

    def __init__(self, message: str, path: str = "") -> None:
        self.path = path
        super().__init__(message)


class VFSFileNotFoundError(VFSError):
    """Raised by ``read`` when a path exists neither in the log nor on disk."""


# ---------------------------------------------------------------------------
# Log entries
# ---------------------------------------------------------------------------


class WriteMode(str, Enum):
    CREATE = "create"
    OVERWRITE = "overwrite"
    APPEND = "append"
    PREPEND = "prepend"


@dataclass(frozen=True)
class VFSOperation:
    """One entry of the operation log.

    ``content`` is the full content of ``path`` after the operation, so the
    state of any path equals the content of its last entry.
    """

    index: int
    path: str
    kind: WriteMode
    content: str


# ---------------------------------------------------------------------------
# VirtualFileSystem
# ---------------------------------------------------------------------------


class VirtualFileSystem:
    """Copy-on-write view of one project directory for one run.

    Attributes:
        root: The real project directory the overlay sits on top of.  It
            does not need to exist until ``flush()``.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self._log: list[VFSOperation] = []
        self._files: dict[str, str] = {}
        self._state = "open"
        self._created_dirs: list[Path] = []

    # -- Paths --------------------------------------------------------------

    def normalize(self, path: str | Path) -> str:
        """Return *path* as a POSIX path relative to ``root``.

        Absolute paths are accepted when they lie inside ``root``.

        Raises:
            VFSError: If the path is empty or escapes the project root.
        """
        raw = Path(path)
        if raw.is_absolute():
            try:
                raw = raw.relative_to(self.root)
            except ValueError:
                raise VFSError(f"Path is outside the project root: {path}", str(path)) from None

        parts: list[str] = []
        for part in PurePosixPath(raw.as_posix()).parts:
            if part in ("", "."):
                continue
            if part == "..":
                if not parts:
                    raise VFSError(f"Path escapes the project root: {path}", str(path))
                parts.pop()
                continue
            parts.append(part)

        if not parts:
            raise VFSError(f"Empty path: {path!r}", str(path))
        return "/".join(parts)

    def real_path(self, path: str | Path) -> Path:
        """Return where *path* lives on real storage."""
        return self.root / self.normalize(path)

    # -- Queries ------------------------------------------------------------

    def exists(self, path: str | Path) -> bool:
        rel = self.normalize(path)
        if rel in self._files:
            return True
        return (self.root / rel).is_file()

    async def read(self, path: str | Path) -> str:
        """Return the current content of *path*.

        Raises:
            VFSFileNotFoundError: If the path is neither logged nor on disk.
            VFSError: If reading the on-disk file fails.
        """
        rel = self.normalize(path)
        if rel in self._files:
            return self._files[rel]

        disk_path = self.root / rel
        if not disk_path.is_file():
            raise VFSFileNotFoundError(f"File not found: {rel}", rel)
        try:
            return await asyncio.to_thread(disk_path.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise VFSError(f"Cannot read {rel}: {exc}", rel) from exc

    def all_files(self) -> list[str]:
        """Every path written during this run, in first-write order."""
        return list(self._files)

    @property
    def operations(self) -> tuple[VFSOperation, ...]:
        return tuple(self._log)

    @property
    def is_open(self) -> bool:
        return self._state == "open"

    # -- Writes -------------------------------------------------------------

    async def write(
        self,
        path: str | Path,
        content: str,
        mode: WriteMode | str = WriteMode.OVERWRITE,
    ) -> bool:
        """Record a write and return whether the path's content changed.

        ``create`` on an existing path (logged or on disk) is a no-op.
        ``append`` and ``prepend`` on a missing path create it.
        """
        self._ensure_open()
        mode = WriteMode(mode)
        rel = self.normalize(path)

        if mode is WriteMode.CREATE:
            if self.exists(rel):
                return False
            new_content = content
        elif mode is WriteMode.OVERWRITE:
            new_content = content
        else:
            existing = await self.read(rel) if self.exists(rel) else ""
            if mode is WriteMode.APPEND:
                new_content = existing + content
            else:
                new_content = content + existing

        self._log.append(VFSOperation(len(self._log), rel, mode, new_content))
        self._files[rel] = new_content
        return True

    # -- External processes -------------------------------------------------

    async def ensure_directory(self, path: str | Path | None = None) -> Path:
        """Create a real directory inside ``root`` for an external command.

        Directories created here are removed again by ``discard()`` as long
        as they are still empty.

        Raises:
            VFSError: If the path escapes the root or is an existing file.
        """
        self._ensure_open()
        target = self.root if path in (None, "", ".") else self.real_path(path)
        if target.exists() and not target.is_dir():
            raise VFSError(f"Not a directory: {target}", str(path or ""))
        self._created_dirs.extend(_missing_dirs(target))
        try:
            await asyncio.to_thread(target.mkdir, parents=True, exist_ok=True)
        except OSError as exc:
            raise VFSError(f"Cannot create directory {target}: {exc}", str(path or "")) from exc
        return target

    # -- Commit / abandon ---------------------------------------------------

    async def flush(self) -> list[Path]:
        """Write every logged path to real storage, all or nothing.

        Every target is checked first, then each file is staged beside its
        target and the staged files are moved into place only once all of
        them were written.  It may run once.

        Returns:
            The real paths that were written.

        Raises:
            VFSError: If a target cannot be written; staged files and
                directories created for them are removed again.
        """
        self._ensure_open()
        self._state = "flushed"
        targets = [(rel, self.root / rel, content) for rel, content in self._files.items()]
        for rel, target, _ in targets:
            problem = _blocking_path(self.root, target)
            if problem:
                self._remove_created_dirs()
                raise VFSError(f"Cannot write {rel}: {problem}", rel)

        staged: list[tuple[Path, Path]] = []
        try:
            for rel, target, content in targets:
                try:
                    staging = await asyncio.to_thread(self._stage_file, target, content)
                except OSError as exc:
                    raise VFSError(f"Cannot write {rel}: {exc}", rel) from exc
                staged.append((staging, target))
        except VFSError:
            for staging, _ in staged:
                staging.unlink(missing_ok=True)
            self._remove_created_dirs()
            raise

        written: list[Path] = []
        for staging, target in staged:
            try:
                await asyncio.to_thread(os.replace, staging, target)
            except OSError as exc:
                raise VFSError(f"Cannot move {staging.name} into place: {exc}", str(target)) from exc
            written.append(target)
        self._created_dirs.clear()
        return written

    def discard(self) -> None:
        """Drop every pending operation; nothing is written.

        Empty directories created for external commands are removed.
        """
        self._log.clear()
        self._files.clear()
        self._state = "discarded"
        self._remove_created_dirs()

    def _ensure_open(self) -> None:
        if self._state != "open":
            raise VFSError(f"Virtual file system already {self._state}")

    def _stage_file(self, target: Path, content: str) -> Path:
        """Write *content* next to *target* and return the staging path."""
        self._created_dirs.extend(_missing_dirs(target.parent))
        target.parent.mkdir(parents=True, exist_ok=True)
        staging = target.with_name(f".{target.name}{STAGING_SUFFIX}")
        staging.write_text(content, encoding="utf-8")
        if target.is_file():
            shutil.copymode(target, staging)
        return staging

    def _remove_created_dirs(self) -> None:
        for directory in sorted(set(self._created_dirs), key=lambda p: len(p.parts), reverse=True):
            if directory.is_dir() and not any(directory.iterdir()):
                directory.rmdir()
        self._created_dirs.clear()


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _missing_dirs(path: Path) -> list[Path]:
    """*path* and its ancestors that do not exist yet, deepest first."""
    missing: list[Path] = []
    current = path
    while not current.exists() and current != current.parent:
        missing.append(current)
        current = current.parent
    return missing


def _blocking_path(root: Path, target: Path) -> str:
    """Describe what prevents writing *target*, or return an empty string."""
    if target.is_dir():
        return f"{target} is a directory"
    current = target.parent
    while current != root and current != current.parent:
        if current.exists() and not current.is_dir():
            return f"{current} is not a directory"
        current = current.parent
    if root.exists() and not root.is_dir():
        return f"{root} is not a directory"
    return ""
