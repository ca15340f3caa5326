# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox_manager

import asyncio
import copy
from datetime import datetime
from pathlib import Path
from typing import Any

from loguru import logger

from coreason_sandbox_manager.exceptions import NotAFileError, SandboxDestroyedError
from coreason_sandbox_manager.executor import ProcessExecutor
from coreason_sandbox_manager.integrations.audit import AuditLogger
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
from coreason_sandbox_manager.runtime import SandboxRuntime
from coreason_sandbox_manager.runtimes.local import LocalRuntime
from coreason_sandbox_manager.runtimes.remote import RemoteRuntime
from coreason_sandbox_manager.ttl import TTLTracker


class Sandbox:
    """Live handle to one sandbox.

    A handle wraps exactly one runtime, either local (a directory on this host)
    or remote (a record in the managed API), chosen at construction and exposed
    as :attr:`kind`. Every successful operation refreshes the cached
    :class:`SandboxInfo`: from the upstream record when the backend returns
    one, otherwise by touching the TTL tracker.

    Concurrent operations on the same handle are not serialized; cached
    metadata reflects whichever operation completed last.
    """

    def __init__(self, info: SandboxInfo, runtime: SandboxRuntime, audit: AuditLogger | None = None):
        self.id = info.id
        self.kind: BackendKind = runtime.kind
        self._runtime = runtime
        self._audit = audit
        self._metadata: dict[str, Any] = copy.deepcopy(info.metadata)
        self._tracker = TTLTracker(info.created_at, info.last_used_at, info.ttl_seconds)
        self._root_path = info.root_path
        self._jurisdiction = info.jurisdiction
        self._keep_alive = info.keep_alive
        self._status = info.status
        self._destroyed = False
        self._destroy_lock = asyncio.Lock()

    @classmethod
    def local(
        cls,
        sandbox_id: str,
        root: Path,
        metadata: dict[str, Any] | None = None,
        ttl_seconds: float | None = None,
        executor: ProcessExecutor | None = None,
        audit: AuditLogger | None = None,
    ) -> "Sandbox":
        tracker = TTLTracker(ttl_seconds=ttl_seconds)
        info = SandboxInfo(
            id=sandbox_id,
            created_at=tracker.created_at,
            last_used_at=tracker.last_used_at,
            ttl_seconds=ttl_seconds,
            metadata=metadata or {},
            backend="local",
            root_path=str(root),
        )
        return cls(info, LocalRuntime(root, executor=executor), audit=audit)

    @classmethod
    def remote(cls, info: SandboxInfo, client: RemoteSandboxClient, audit: AuditLogger | None = None) -> "Sandbox":
        return cls(info, RemoteRuntime(client, info.id), audit=audit)

    @property
    def runtime(self) -> SandboxRuntime:
        return self._runtime

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def last_used_at(self) -> datetime:
        return self._tracker.last_used_at

    @property
    def ttl_seconds(self) -> float | None:
        return self._tracker.ttl_seconds

    def info(self) -> SandboxInfo:
        """Snapshot of the handle's cached metadata."""
        return SandboxInfo(
            id=self.id,
            created_at=self._tracker.created_at,
            last_used_at=self._tracker.last_used_at,
            ttl_seconds=self._tracker.ttl_seconds,
            metadata=copy.deepcopy(self._metadata),
            backend=self.kind,
            root_path=self._root_path,
            jurisdiction=self._jurisdiction,
            keep_alive=self._keep_alive,
            status=self._status,
        )

    def is_expired(self, reference: datetime | None = None) -> bool:
        return self._tracker.is_expired(reference)

    def apply(self, record: SandboxInfo) -> None:
        """Fold an upstream record into the cached metadata.

        Metadata and creation time are fixed at creation; ``last_used_at`` only
        moves forward. Optional fields the record does not carry keep their
        cached values.
        """
        reported = record.model_fields_set
        self._tracker.observe(record.last_used_at)
        if "ttl_seconds" in reported:
            self._tracker.ttl_seconds = record.ttl_seconds
        if "jurisdiction" in reported:
            self._jurisdiction = record.jurisdiction
        if "keep_alive" in reported:
            self._keep_alive = record.keep_alive
        if "status" in reported:
            self._status = record.status

    def _settle(self, record: SandboxInfo | None) -> None:
        if record is not None and record.id == self.id:
            self.apply(record)
        else:
            self._tracker.touch()

    def _ensure_active(self) -> None:
        if self._destroyed:
            raise SandboxDestroyedError(f'Sandbox with id "{self.id}" has been destroyed')

    async def touch(self) -> SandboxInfo:
        """Restart the expiry window. Remote sandboxes are touched upstream too."""
        self._ensure_active()
        record = await self._runtime.touch()
        self._settle(record)
        return self.info()

    async def exec(self, request: ExecRequest) -> ExecResult:
        self._ensure_active()
        if self._audit:
            await self._audit.log_pre_execution(request, self.id)
        result, record = await self._runtime.exec(request)
        self._settle(record)
        return result

    async def write_file(self, request: WriteFileRequest) -> FileContent:
        self._ensure_active()
        file, record = await self._runtime.write_file(request)
        self._settle(record)
        return file

    async def read_file(self, path: str, encoding: FileEncoding = "utf8") -> FileContent:
        self._ensure_active()
        file, record = await self._runtime.read_file(path, encoding)
        self._settle(record)
        return file

    async def delete_path(self, path: str) -> None:
        self._ensure_active()
        record = await self._runtime.delete_path(path)
        self._settle(record)

    async def ensure_directory(self, path: str) -> ListDirectoryResult:
        self._ensure_active()
        directory, record = await self._runtime.ensure_directory(path)
        self._settle(record)
        return directory

    async def list_directory(self, path: str = ".", recursive: bool = False) -> ListDirectoryResult:
        self._ensure_active()
        directory, record = await self._runtime.list_directory(path, recursive)
        self._settle(record)
        return directory

    async def read_path(self, path: str = ".", encoding: FileEncoding = "utf8") -> FileContent | ListDirectoryResult:
        """Read a file, or list the directory when ``path`` is one."""
        try:
            return await self.read_file(path, encoding)
        except NotAFileError:
            return await self.list_directory(path)

    def invalidate(self) -> None:
        """Mark the handle destroyed without touching its backing storage."""
        self._destroyed = True

    async def destroy(self) -> None:
        """Release the backing storage. Idempotent; the handle is unusable afterwards."""
        async with self._destroy_lock:
            if self._destroyed:
                logger.warning(f"Sandbox {self.id} already destroyed")
                return
            await self._runtime.destroy()
            self._destroyed = True
            logger.info(f"Sandbox {self.id} destroyed", sandbox_id=self.id, backend=self.kind)
