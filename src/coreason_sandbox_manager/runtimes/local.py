# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox_manager

import shutil
from pathlib import Path

import anyio
from loguru import logger

from coreason_sandbox_manager.executor import ProcessExecutor
from coreason_sandbox_manager.filestore import DirectoryLister, FileStore
from coreason_sandbox_manager.models import (
    BackendKind,
    ExecRequest,
    ExecResult,
    FileContent,
    FileEncoding,
    ListDirectoryResult,
    SandboxInfo,
    WriteFileRequest,
)


class LocalRuntime:
    """Sandbox backed by a directory on this host.

    Commands are spawned as ordinary child processes with the root as their
    working directory; this is not a security boundary.
    """

    kind: BackendKind = "local"

    def __init__(
        self,
        root: Path,
        executor: ProcessExecutor | None = None,
        files: FileStore | None = None,
        directories: DirectoryLister | None = None,
    ):
        self.root = root
        self.executor = executor or ProcessExecutor()
        self.files = files or FileStore()
        self.directories = directories or DirectoryLister()

    async def exec(self, request: ExecRequest) -> tuple[ExecResult, SandboxInfo | None]:
        return await self.executor.run(self.root, request), None

    async def write_file(self, request: WriteFileRequest) -> tuple[FileContent, SandboxInfo | None]:
        return await self.files.write(self.root, request), None

    async def read_file(self, path: str, encoding: FileEncoding) -> tuple[FileContent, SandboxInfo | None]:
        return await self.files.read(self.root, path, encoding), None

    async def delete_path(self, path: str) -> SandboxInfo | None:
        await self.files.delete(self.root, path)
        return None

    async def ensure_directory(self, path: str) -> tuple[ListDirectoryResult, SandboxInfo | None]:
        return await self.directories.ensure_directory(self.root, path), None

    async def list_directory(self, path: str, recursive: bool) -> tuple[ListDirectoryResult, SandboxInfo | None]:
        return await self.directories.list_directory(self.root, path, recursive), None

    async def touch(self) -> SandboxInfo | None:
        return None

    async def destroy(self) -> None:
        logger.info(f"Removing sandbox root {self.root}")

        def _remove() -> None:
            if self.root.exists():
                shutil.rmtree(self.root)

        await anyio.to_thread.run_sync(_remove)
