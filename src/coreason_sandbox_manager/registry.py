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
from datetime import datetime
from pathlib import Path
from typing import Any
from uuid import uuid4

import anyio
from loguru import logger

from coreason_sandbox_manager.exceptions import (
    AlreadyExistsError,
    NotFoundError,
    RemoteRequestFailedError,
    ValidationFailedError,
)
from coreason_sandbox_manager.executor import ProcessExecutor
from coreason_sandbox_manager.integrations.audit import AuditLogger
from coreason_sandbox_manager.models import BackendKind, PruneReport, SandboxInfo
from coreason_sandbox_manager.remote.client import RemoteSandboxClient
from coreason_sandbox_manager.sandbox import Sandbox
from coreason_sandbox_manager.ttl import utcnow

DEFAULT_CLEANUP_INTERVAL = 60.0


def _check_local_id(sandbox_id: str) -> None:
    if sandbox_id in ("", ".", "..") or "/" in sandbox_id or "\\" in sandbox_id or "\x00" in sandbox_id:
        raise ValidationFailedError(f"Invalid sandbox id for the local backend: {sandbox_id!r}")


class SandboxRegistry:
    """Owns the set of live sandboxes for one backend.

    The registry allocates backing storage on :meth:`create`, hands out
    :class:`Sandbox` handles, and destroys them on :meth:`delete`, on TTL
    expiry (:meth:`prune_expired`, optionally driven by a background task
    started with :meth:`start`) and on :meth:`dispose_all`.

    All map mutations happen synchronously before any await, so a sandbox is
    removed exactly once even when deletes and prune passes interleave.
    """

    def __init__(
        self,
        base_path: str | Path | None = None,
        *,
        backend: BackendKind | None = None,
        client: RemoteSandboxClient | None = None,
        cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL,
        executor: ProcessExecutor | None = None,
        audit: AuditLogger | None = None,
        owns_client: bool = False,
    ):
        """Initializes the SandboxRegistry.

        Args:
            base_path: Directory under which local sandbox roots are created.
                Created if missing. Defaults to ``./sandboxes``.
            backend: ``"local"`` or ``"remote"``. Defaults to remote when a
                client is given, local otherwise.
            client: Adapter for the managed API (remote backend).
            cleanup_interval: Seconds between background prune passes. Zero
                or negative disables the background task.
            executor: Process executor shared by local sandboxes.
            audit: Audit logger for executed commands.
            owns_client: Close ``client`` on :meth:`dispose_all`.
        """
        self.backend: BackendKind = backend or ("remote" if client else "local")
        if self.backend == "remote" and client is None:
            raise ValueError("The remote backend requires a RemoteSandboxClient")

        self.client = client
        self.cleanup_interval = cleanup_interval
        self.executor = executor or ProcessExecutor()
        self.audit = audit
        self.last_prune_report: PruneReport | None = None

        self.base_path: Path | None = None
        if self.backend == "local":
            self.base_path = Path(base_path or "sandboxes").resolve()
            self.base_path.mkdir(parents=True, exist_ok=True)

        self._owns_client = owns_client
        self._sandboxes: dict[str, Sandbox] = {}
        self._reserved: set[str] = set()
        self._teardowns: set[asyncio.Task[None]] = set()
        self._prune_task: asyncio.Task[None] | None = None
        self._closed = False

    async def __aenter__(self) -> "SandboxRegistry":
        await self.start()
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.dispose_all()

    def __len__(self) -> int:
        return len(self._sandboxes)

    def __contains__(self, sandbox_id: object) -> bool:
        return sandbox_id in self._sandboxes

    async def start(self) -> None:
        """Start the background prune task if it is enabled and not running."""
        if self._closed or self.cleanup_interval <= 0:
            return
        if self._prune_task is None or self._prune_task.done():
            self._prune_task = asyncio.create_task(self._prune_loop())

    async def stop(self) -> None:
        """Stop the background prune task and wait for it to finish."""
        if self._prune_task and not self._prune_task.done():
            self._prune_task.cancel()
            try:
                await self._prune_task
            except asyncio.CancelledError:
                pass
        self._prune_task = None

    async def _prune_loop(self) -> None:
        logger.info(f"Sandbox prune loop started (interval: {self.cleanup_interval}s)")
        try:
            while True:
                await asyncio.sleep(self.cleanup_interval)
                try:
                    await self.prune_expired()
                except Exception as e:
                    logger.error(f"Scheduled prune pass failed: {e}")
        except asyncio.CancelledError:
            logger.info("Sandbox prune loop cancelled")

    async def create(
        self,
        sandbox_id: str | None = None,
        metadata: dict[str, Any] | None = None,
        ttl_seconds: float | None = None,
    ) -> Sandbox:
        """Allocate and register a new sandbox.

        Args:
            sandbox_id: Requested id. A UUID is generated when omitted.
            metadata: Opaque metadata, fixed for the sandbox's lifetime.
            ttl_seconds: Seconds of inactivity before the sandbox expires.
                ``None`` never expires.

        Returns:
            Sandbox: The live handle.

        Raises:
            AlreadyExistsError: If the id is already registered.
            ValidationFailedError: If the id or TTL is invalid.
            RemoteRequestFailedError: If the upstream create call fails.
        """
        if self._closed:
            raise RuntimeError("SandboxRegistry has been disposed")
        if ttl_seconds is not None and ttl_seconds < 0:
            raise ValidationFailedError("ttl_seconds must be a positive number")

        sandbox_id = sandbox_id if sandbox_id is not None else str(uuid4())
        if sandbox_id in self._sandboxes or sandbox_id in self._reserved:
            raise AlreadyExistsError(f'Sandbox with id "{sandbox_id}" already exists')

        self._reserved.add(sandbox_id)
        try:
            sandbox = await self._allocate(sandbox_id, metadata, ttl_seconds)
        finally:
            self._reserved.discard(sandbox_id)

        self._sandboxes[sandbox.id] = sandbox
        logger.info(
            f"Sandbox {sandbox.id} created",
            sandbox_id=sandbox.id,
            backend=self.backend,
            ttl_seconds=ttl_seconds,
        )
        return sandbox

    async def _allocate(self, sandbox_id: str, metadata: dict[str, Any] | None, ttl_seconds: float | None) -> Sandbox:
        if self.backend == "remote":
            assert self.client is not None
            info = await self.client.create_sandbox(sandbox_id, metadata, ttl_seconds)
            if info.id != sandbox_id and (info.id in self._sandboxes or info.id in self._reserved):
                raise AlreadyExistsError(f'Sandbox with id "{info.id}" already exists')
            return Sandbox.remote(info, self.client, audit=self.audit)

        _check_local_id(sandbox_id)
        assert self.base_path is not None
        root = self.base_path / sandbox_id
        await anyio.to_thread.run_sync(lambda: root.mkdir(parents=True, exist_ok=True))
        return Sandbox.local(
            sandbox_id,
            root,
            metadata=metadata,
            ttl_seconds=ttl_seconds,
            executor=self.executor,
            audit=self.audit,
        )

    def get(self, sandbox_id: str) -> Sandbox | None:
        return self._sandboxes.get(sandbox_id)

    def require(self, sandbox_id: str) -> Sandbox:
        sandbox = self._sandboxes.get(sandbox_id)
        if sandbox is None:
            raise NotFoundError(f'Sandbox with id "{sandbox_id}" not found')
        return sandbox

    async def fetch(self, sandbox_id: str) -> Sandbox:
        """Return the registered handle, adopting it from upstream if needed.

        On the local backend this is :meth:`require`.

        Raises:
            NotFoundError: If the sandbox exists neither here nor upstream.
        """
        sandbox = self._sandboxes.get(sandbox_id)
        if sandbox is not None or self.backend == "local":
            return self.require(sandbox_id)

        assert self.client is not None
        try:
            info = await self.client.get_sandbox(sandbox_id)
        except RemoteRequestFailedError as e:
            if e.status_code == 404:
                raise NotFoundError(f'Sandbox with id "{sandbox_id}" not found') from e
            raise

        # Another task may have registered it while we were waiting.
        existing = self._sandboxes.get(sandbox_id)
        if existing is not None:
            existing.apply(info)
            return existing

        sandbox = Sandbox.remote(info, self.client, audit=self.audit)
        self._sandboxes[sandbox_id] = sandbox
        logger.info(f"Adopted upstream sandbox {sandbox_id}")
        return sandbox

    async def list(self) -> list[SandboxInfo]:
        """Snapshot of all sandboxes.

        Local: registration order. Remote: upstream order, with cached handles
        refreshed from the listing.
        """
        if self.backend == "local":
            return [sandbox.info() for sandbox in self._sandboxes.values()]

        assert self.client is not None
        infos = []
        for record in await self.client.list_sandboxes():
            sandbox = self._sandboxes.get(record.id)
            if sandbox is not None:
                sandbox.apply(record)
                infos.append(sandbox.info())
            else:
                infos.append(record)
        return infos

    async def delete(self, sandbox_id: str) -> bool:
        """Destroy a sandbox.

        On the remote backend a sandbox that exists upstream but has no cached
        handle here is deleted upstream directly.

        Returns:
            bool: True if a sandbox was removed, False if none existed.
        """
        sandbox = self._sandboxes.pop(sandbox_id, None)
        if sandbox is not None:
            await self._teardown(sandbox)
            return True
        if self.backend == "local" or sandbox_id in self._reserved:
            return False

        assert self.client is not None
        try:
            await self.client.delete_sandbox(sandbox_id)
        except RemoteRequestFailedError as e:
            if e.status_code == 404:
                return False
            raise
        logger.info(f"Sandbox {sandbox_id} deleted upstream", sandbox_id=sandbox_id)
        return True

    async def _teardown(self, sandbox: Sandbox, restore_on_failure: bool = True) -> None:
        task = asyncio.create_task(sandbox.destroy())
        self._teardowns.add(task)
        task.add_done_callback(self._teardowns.discard)
        try:
            await asyncio.shield(task)
        except Exception:
            if restore_on_failure and not self._closed and sandbox.id not in self._sandboxes:
                # Keep the sandbox registered so a later delete or prune can retry.
                self._sandboxes[sandbox.id] = sandbox
            raise

    async def prune_expired(self, reference: datetime | None = None) -> int:
        """Destroy every sandbox that is expired at ``reference``.

        Candidates are fixed when the pass starts; sandboxes created during the
        pass are not considered and sandboxes deleted concurrently are skipped.
        A failed teardown is logged, recorded in :attr:`last_prune_report`, and
        does not stop the pass.

        On the remote backend the upstream prune endpoint does the work; cached
        handles that are expired by their cached record are then dropped.

        Returns:
            int: The number of sandboxes removed.
        """
        reference = reference or utcnow()
        report = PruneReport()

        if self.backend == "remote":
            assert self.client is not None
            report.upstream_removed = await self.client.prune_sandboxes()
            for sandbox_id, sandbox in list(self._sandboxes.items()):
                if sandbox.is_expired(reference):
                    del self._sandboxes[sandbox_id]
                    sandbox.invalidate()
        else:
            candidates = [
                (sandbox_id, sandbox)
                for sandbox_id, sandbox in self._sandboxes.items()
                if sandbox.is_expired(reference)
            ]
            for sandbox_id, sandbox in candidates:
                if self._sandboxes.get(sandbox_id) is not sandbox:
                    continue
                del self._sandboxes[sandbox_id]
                try:
                    await self._teardown(sandbox)
                except Exception as e:
                    logger.error(f"Error destroying expired sandbox {sandbox_id}: {e}")
                    report.failed[sandbox_id] = str(e)
                else:
                    report.removed_ids.append(sandbox_id)

        self.last_prune_report = report
        if report.removed or report.failed:
            logger.info(
                f"Prune pass removed {report.removed} sandboxes",
                removed=report.removed_ids,
                failed=list(report.failed),
            )
        return report.removed

    async def dispose_all(self) -> None:
        """Destroy every sandbox and stop the prune task.

        Waits for all in-flight teardowns, including ones started by
        concurrent deletes, before returning. The registry cannot create
        sandboxes afterwards.
        """
        self._closed = True
        await self.stop()

        sandboxes = list(self._sandboxes.values())
        self._sandboxes.clear()
        logger.info(f"Shutting down SandboxRegistry. Destroying {len(sandboxes)} sandboxes.")

        results = await asyncio.gather(
            *(self._teardown(sandbox, restore_on_failure=False) for sandbox in sandboxes),
            return_exceptions=True,
        )
        for sandbox, result in zip(sandboxes, results):
            if isinstance(result, BaseException):
                logger.error(f"Error destroying sandbox {sandbox.id} during shutdown: {result}")

        if self._teardowns:
            await asyncio.gather(*list(self._teardowns), return_exceptions=True)

        if self._owns_client and self.client is not None:
            await self.client.aclose()


SandboxManager = SandboxRegistry
