# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox_manager

"""Encoding-aware file access and directory listing under a sandbox root."""

import base64
import binascii
import builtins
import os
import shutil
import stat as stat_module
from datetime import datetime, timezone
from pathlib import Path

import aiofiles  # type: ignore[import-untyped]
import anyio
from loguru import logger

from coreason_sandbox_manager.exceptions import (
    NotADirectoryError,
    NotAFileError,
    NotFoundError,
    ValidationFailedError,
)
from coreason_sandbox_manager.models import (
    DirectoryEntry,
    EntryType,
    FileContent,
    FileEncoding,
    ListDirectoryResult,
    WriteFileRequest,
)
from coreason_sandbox_manager.paths import relative_sandbox_path, resolve_sandbox_path


def _mtime(st: os.stat_result) -> datetime:
    return datetime.fromtimestamp(st.st_mtime, tz=timezone.utc)


def decode_content(content: str, encoding: FileEncoding) -> bytes:
    """Turn wire content into raw bytes.

    Raises:
        ValidationFailedError: If ``content`` is not valid base64.
    """
    if encoding == "base64":
        try:
            return base64.b64decode(content)
        except (binascii.Error, ValueError) as e:
            raise ValidationFailedError(f"Invalid base64 content: {e}") from e
    return content.encode("utf-8")


def encode_content(data: bytes, encoding: FileEncoding) -> str:
    if encoding == "base64":
        return base64.b64encode(data).decode("ascii")
    return data.decode("utf-8", errors="replace")


def _stat_or_none(path: Path) -> os.stat_result | None:
    try:
        return path.stat()
    except FileNotFoundError:
        return None


def _make_parents(directory: Path) -> None:
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except (FileExistsError, builtins.NotADirectoryError) as e:
        raise NotADirectoryError() from e


class FileStore:
    """Reads, writes and deletes files relative to a sandbox root."""

    async def write(self, root: Path, request: WriteFileRequest) -> FileContent:
        """Write a file and return its freshly read-back description.

        Raises:
            PathRequiredError: If the path is empty.
            PathEscapesRootError: If the path leaves the sandbox.
            ValidationFailedError: If base64 content cannot be decoded.
            NotFoundError: If the parent is missing and ``create_directories`` is off.
            NotAFileError: If the target is an existing directory.
        """
        target = resolve_sandbox_path(root, request.path)
        data = decode_content(request.content, request.encoding)

        if target == root or await anyio.to_thread.run_sync(target.is_dir):
            raise NotAFileError()

        parent = target.parent
        if request.create_directories:
            await anyio.to_thread.run_sync(_make_parents, parent)
        elif not await anyio.to_thread.run_sync(parent.is_dir):
            raise NotFoundError(f"Parent directory of {request.path!r} does not exist")

        async with aiofiles.open(target, "wb") as f:
            await f.write(data)

        logger.debug(f"Wrote {len(data)} bytes to {target}")
        return await self.read(root, request.path, request.encoding)

    async def read(self, root: Path, path: str, encoding: FileEncoding = "utf8") -> FileContent:
        """Read a file inside the sandbox.

        Raises:
            NotFoundError: If nothing exists at ``path``.
            NotAFileError: If ``path`` is a directory.
        """
        target = resolve_sandbox_path(root, path)
        st = await anyio.to_thread.run_sync(_stat_or_none, target)
        if st is None:
            raise NotFoundError(f"Path {path!r} was not found in sandbox")
        if not stat_module.S_ISREG(st.st_mode):
            raise NotAFileError()

        async with aiofiles.open(target, "rb") as f:
            data = await f.read()

        return FileContent(
            path=relative_sandbox_path(root, target),
            encoding=encoding,
            content=encode_content(data, encoding),
            size=len(data),
            modified_at=_mtime(st),
        )

    async def delete(self, root: Path, path: str) -> None:
        """Remove a file, symlink or directory tree. Missing paths are ignored.

        Raises:
            ValidationFailedError: If ``path`` refers to the sandbox root itself.
        """
        target = resolve_sandbox_path(root, path)
        if target == root:
            raise ValidationFailedError("Refusing to delete the sandbox root")

        def _remove() -> None:
            if target.is_symlink() or target.is_file():
                target.unlink(missing_ok=True)
            elif target.is_dir():
                shutil.rmtree(target)

        await anyio.to_thread.run_sync(_remove)


class DirectoryLister:
    """Creates and enumerates directories relative to a sandbox root."""

    async def ensure_directory(self, root: Path, path: str) -> ListDirectoryResult:
        target = resolve_sandbox_path(root, path)
        await anyio.to_thread.run_sync(_make_parents, target)
        return await self.list_directory(root, path)

    async def list_directory(self, root: Path, path: str = ".", recursive: bool = False) -> ListDirectoryResult:
        """List the entries of a sandbox directory.

        Args:
            root: The sandbox root.
            path: Directory to list, relative to the root.
            recursive: Walk the whole tree instead of the immediate children.
                Symlinked directories are reported but not descended into.

        Raises:
            NotFoundError: If the directory does not exist.
            NotADirectoryError: If ``path`` exists but is not a directory.
        """
        target = resolve_sandbox_path(root, path)
        st = await anyio.to_thread.run_sync(_stat_or_none, target)
        if st is None:
            raise NotFoundError(f"Path {path!r} was not found in sandbox")
        if not stat_module.S_ISDIR(st.st_mode):
            raise NotADirectoryError()

        entries = await anyio.to_thread.run_sync(self._scan, root, target, recursive)
        return ListDirectoryResult(path=relative_sandbox_path(root, target), entries=entries)

    def _scan(self, root: Path, directory: Path, recursive: bool) -> list[DirectoryEntry]:
        entries: list[DirectoryEntry] = []
        with os.scandir(directory) as it:
            for dirent in it:
                entry = self._to_entry(root, directory / dirent.name, dirent)
                entries.append(entry)
                if recursive and entry.type == "directory":
                    entries.extend(self._scan(root, directory / dirent.name, recursive))
        return entries

    @staticmethod
    def _to_entry(root: Path, entry_path: Path, dirent: os.DirEntry[str]) -> DirectoryEntry:
        kind: EntryType
        if dirent.is_dir(follow_symlinks=False):
            kind = "directory"
        elif dirent.is_symlink():
            kind = "symlink"
        else:
            kind = "file"

        try:
            st = dirent.stat(follow_symlinks=True)
        except FileNotFoundError:
            # Dangling symlink
            st = dirent.stat(follow_symlinks=False)

        return DirectoryEntry(
            name=dirent.name,
            path=relative_sandbox_path(root, entry_path),
            type=kind,
            size=st.st_size if stat_module.S_ISREG(st.st_mode) else None,
            modified_at=_mtime(st),
        )
