# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox_manager

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
from coreason_sandbox_manager.remote.client import RemoteSandboxClient


class RemoteRuntime:
    """Sandbox hosted by the managed sandbox API."""

    kind: BackendKind = "remote"

    def __init__(self, client: RemoteSandboxClient, sandbox_id: str):
        self.client = client
        self.sandbox_id = sandbox_id

    async def exec(self, request: ExecRequest) -> tuple[ExecResult, SandboxInfo | None]:
        return await self.client.exec_sandbox(self.sandbox_id, request)

    async def write_file(self, request: WriteFileRequest) -> tuple[FileContent, SandboxInfo | None]:
        return await self.client.write_file(self.sandbox_id, request)

    async def read_file(self, path: str, encoding: FileEncoding) -> tuple[FileContent, SandboxInfo | None]:
        return await self.client.read_file(self.sandbox_id, path, encoding)

    async def delete_path(self, path: str) -> SandboxInfo | None:
        return await self.client.delete_path(self.sandbox_id, path)

    async def ensure_directory(self, path: str) -> tuple[ListDirectoryResult, SandboxInfo | None]:
        return await self.client.ensure_directory(self.sandbox_id, path)

    async def list_directory(self, path: str, recursive: bool) -> tuple[ListDirectoryResult, SandboxInfo | None]:
        return await self.client.list_directory(self.sandbox_id, path, recursive)

    async def touch(self) -> SandboxInfo | None:
        return await self.client.touch_sandbox(self.sandbox_id)

    async def destroy(self) -> None:
        await self.client.delete_sandbox(self.sandbox_id)
