# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox_manager

from typing import Protocol

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


class SandboxRuntime(Protocol):
    """Capability set shared by the local and remote sandbox backends.

    Every operation returns its value together with the upstream sandbox record
    when the backend reports one (remote), or ``None`` (local). The owning
    :class:`~coreason_sandbox_manager.sandbox.Sandbox` uses the record to
    refresh its cached metadata, or touches itself when there is none.
    """

    kind: BackendKind

    async def exec(self, request: ExecRequest) -> tuple[ExecResult, SandboxInfo | None]:
        """Run a command inside the sandbox.

        Raises:
            ExecutionFailedError: If the command cannot be launched.
            RemoteRequestFailedError: If the remote call fails.
        """
        ...

    async def write_file(self, request: WriteFileRequest) -> tuple[FileContent, SandboxInfo | None]:
        ...

    async def read_file(self, path: str, encoding: FileEncoding) -> tuple[FileContent, SandboxInfo | None]:
        """Read a file.

        Raises:
            NotFoundError: If nothing exists at ``path``.
            NotAFileError: If ``path`` is a directory.
        """
        ...

    async def delete_path(self, path: str) -> SandboxInfo | None:
        ...

    async def ensure_directory(self, path: str) -> tuple[ListDirectoryResult, SandboxInfo | None]:
        ...

    async def list_directory(self, path: str, recursive: bool) -> tuple[ListDirectoryResult, SandboxInfo | None]:
        """List a directory.

        Raises:
            NotADirectoryError: If ``path`` is not a directory.
        """
        ...

    async def touch(self) -> SandboxInfo | None:
        ...

    async def destroy(self) -> None:
        """Release the backing storage. Terminal."""
        ...
