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
from datetime import timedelta
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest

from coreason_sandbox_manager.exceptions import AlreadyExistsError, NotFoundError, ValidationFailedError
from coreason_sandbox_manager.models import WriteFileRequest
from coreason_sandbox_manager.registry import SandboxManager, SandboxRegistry
from coreason_sandbox_manager.ttl import utcnow


def later(seconds: float = 3600) -> Any:
    return utcnow() + timedelta(seconds=seconds)


def test_manager_alias() -> None:
    assert SandboxManager is SandboxRegistry


def test_base_path_created(tmp_path: Path) -> None:
    registry = SandboxRegistry(tmp_path / "nested" / "root", cleanup_interval=0)
    assert registry.base_path is not None
    assert registry.base_path.is_dir()
    assert registry.backend == "local"


def test_remote_backend_requires_client() -> None:
    with pytest.raises(ValueError, match="requires a RemoteSandboxClient"):
        SandboxRegistry(backend="remote")


@pytest.mark.asyncio
async def test_create_allocates_directory(registry: SandboxRegistry) -> None:
    sandbox = await registry.create("alpha", metadata={"team": "x"}, ttl_seconds=30)

    assert registry.base_path is not None
    assert (registry.base_path / "alpha").is_dir()
    assert registry.get("alpha") is sandbox
    assert registry.require("alpha") is sandbox
    assert "alpha" in registry
    assert sandbox.info().metadata == {"team": "x"}


@pytest.mark.asyncio
async def test_create_generates_id(registry: SandboxRegistry) -> None:
    first = await registry.create()
    second = await registry.create()
    assert first.id != second.id
    assert len(registry) == 2


@pytest.mark.asyncio
async def test_duplicate_id_rejected(registry: SandboxRegistry) -> None:
    await registry.create("dup")
    with pytest.raises(AlreadyExistsError):
        await registry.create("dup")


@pytest.mark.asyncio
async def test_concurrent_create_same_id(registry: SandboxRegistry) -> None:
    results = await asyncio.gather(registry.create("race"), registry.create("race"), return_exceptions=True)
    errors = [r for r in results if isinstance(r, BaseException)]
    assert len(errors) == 1
    assert isinstance(errors[0], AlreadyExistsError)
    assert len(registry) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("bad_id", ["..", "a/b", "../escape", ""])
async def test_unsafe_local_id_rejected(registry: SandboxRegistry, bad_id: str) -> None:
    with pytest.raises(ValidationFailedError):
        await registry.create(bad_id)
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_negative_ttl_rejected(registry: SandboxRegistry) -> None:
    with pytest.raises(ValidationFailedError):
        await registry.create(ttl_seconds=-1)


@pytest.mark.asyncio
async def test_require_missing(registry: SandboxRegistry) -> None:
    assert registry.get("ghost") is None
    with pytest.raises(NotFoundError, match='Sandbox with id "ghost" not found'):
        registry.require("ghost")
    with pytest.raises(NotFoundError):
        await registry.fetch("ghost")


@pytest.mark.asyncio
async def test_list_in_creation_order(registry: SandboxRegistry) -> None:
    for name in ("c", "a", "b"):
        await registry.create(name)
    assert [info.id for info in await registry.list()] == ["c", "a", "b"]


@pytest.mark.asyncio
async def test_delete(registry: SandboxRegistry) -> None:
    sandbox = await registry.create("gone")
    await sandbox.write_file(WriteFileRequest(path="f.txt", content="x"))

    assert await registry.delete("gone") is True
    assert await registry.delete("gone") is False
    assert sandbox.destroyed
    assert registry.base_path is not None
    assert not (registry.base_path / "gone").exists()
    assert registry.get("gone") is None


@pytest.mark.asyncio
async def test_id_reusable_after_delete(registry: SandboxRegistry) -> None:
    await registry.create("again")
    await registry.delete("again")
    sandbox = await registry.create("again")
    assert not sandbox.destroyed


@pytest.mark.asyncio
async def test_prune_expired(registry: SandboxRegistry) -> None:
    await registry.create("short", ttl_seconds=0.001)
    await registry.create("long", ttl_seconds=3600)
    await registry.create("forever")
    await asyncio.sleep(0.02)

    removed = await registry.prune_expired()

    assert removed == 1
    assert registry.get("short") is None
    assert registry.get("long") is not None
    assert registry.get("forever") is not None
    assert registry.last_prune_report is not None
    assert registry.last_prune_report.removed_ids == ["short"]


@pytest.mark.asyncio
async def test_prune_with_reference_time(registry: SandboxRegistry) -> None:
    await registry.create("a", ttl_seconds=10)
    await registry.create("b", ttl_seconds=100)

    assert await registry.prune_expired(later(5)) == 0
    assert await registry.prune_expired(later(50)) == 1
    assert [info.id for info in await registry.list()] == ["b"]


@pytest.mark.asyncio
async def test_touch_postpones_expiry(registry: SandboxRegistry) -> None:
    sandbox = await registry.create("busy", ttl_seconds=0.3)
    await asyncio.sleep(0.2)
    await sandbox.touch()
    await asyncio.sleep(0.2)
    assert await registry.prune_expired() == 0


@pytest.mark.asyncio
async def test_prune_failure_is_recorded_and_retried(registry: SandboxRegistry) -> None:
    sandbox = await registry.create("stuck", ttl_seconds=1)
    await registry.create("fine", ttl_seconds=1)

    with patch.object(sandbox.runtime, "destroy", AsyncMock(side_effect=OSError("device busy"))):
        removed = await registry.prune_expired(later())

    assert removed == 1
    report = registry.last_prune_report
    assert report is not None
    assert report.removed_ids == ["fine"]
    assert "device busy" in report.failed["stuck"]
    assert registry.get("stuck") is sandbox

    assert await registry.prune_expired(later()) == 1
    assert registry.get("stuck") is None


@pytest.mark.asyncio
async def test_delete_and_prune_remove_once(registry: SandboxRegistry) -> None:
    sandbox = await registry.create("contested", ttl_seconds=1)
    with patch.object(sandbox.runtime, "destroy", wraps=sandbox.runtime.destroy) as destroy:
        deleted, pruned = await asyncio.gather(registry.delete("contested"), registry.prune_expired(later()))

    assert deleted is True
    assert pruned == 0
    assert destroy.await_count == 1


@pytest.mark.asyncio
async def test_background_prune(tmp_path: Path) -> None:
    registry = SandboxRegistry(tmp_path, cleanup_interval=0.02)
    await registry.start()
    try:
        await registry.create("ephemeral", ttl_seconds=0.001)
        for _ in range(100):
            if registry.get("ephemeral") is None:
                break
            await asyncio.sleep(0.02)
        assert registry.get("ephemeral") is None
    finally:
        await registry.dispose_all()


@pytest.mark.asyncio
async def test_background_prune_survives_errors(tmp_path: Path) -> None:
    registry = SandboxRegistry(tmp_path, cleanup_interval=0.01)
    with patch.object(registry, "prune_expired", AsyncMock(side_effect=RuntimeError("boom"))) as prune:
        await registry.start()
        await asyncio.sleep(0.1)
        await registry.stop()
    assert prune.await_count >= 2
    assert registry._prune_task is None


@pytest.mark.asyncio
async def test_dispose_all(registry: SandboxRegistry) -> None:
    sandboxes = [await registry.create(name) for name in ("x", "y", "z")]

    await registry.dispose_all()

    assert len(registry) == 0
    assert all(sb.destroyed for sb in sandboxes)
    assert registry.base_path is not None
    assert list(registry.base_path.iterdir()) == []
    with pytest.raises(RuntimeError, match="disposed"):
        await registry.create()


@pytest.mark.asyncio
async def test_dispose_waits_for_inflight_delete(registry: SandboxRegistry) -> None:
    sandbox = await registry.create("slow")
    release = asyncio.Event()
    original = sandbox.runtime.destroy

    async def slow_destroy() -> None:
        await release.wait()
        await original()

    with patch.object(sandbox.runtime, "destroy", slow_destroy):
        delete_task = asyncio.create_task(registry.delete("slow"))
        await asyncio.sleep(0)
        dispose_task = asyncio.create_task(registry.dispose_all())
        await asyncio.sleep(0.01)
        assert not dispose_task.done()
        release.set()
        await asyncio.gather(delete_task, dispose_task)

    assert sandbox.destroyed


@pytest.mark.asyncio
async def test_async_context_manager(tmp_path: Path) -> None:
    async with SandboxRegistry(tmp_path, cleanup_interval=60) as registry:
        assert registry._prune_task is not None
        sandbox = await registry.create("ctx")
    assert sandbox.destroyed
    assert registry._prune_task is None
