# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox_manager

import json
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

from coreason_sandbox_manager.registry import SandboxRegistry
from coreason_sandbox_manager.remote.client import RemoteSandboxClient


@pytest.fixture
def sandbox_root(tmp_path: Path) -> Path:
    root = (tmp_path / "sandbox").resolve()
    root.mkdir()
    return root


@pytest.fixture
def registry(tmp_path: Path) -> SandboxRegistry:
    return SandboxRegistry(tmp_path / "sandboxes", cleanup_interval=0)


class RecordingTransport:
    """Canned upstream API: routes ``(method, path)`` to a JSON body or a callable."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Any] = {}
        self.requests: list[httpx.Request] = []

    def route(self, method: str, path: str, body: Any = None, status_code: int = 200) -> None:
        self.routes[(method, path)] = (status_code, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"success": False, "errors": [{"message": "no route"}], "result": None})
        status_code, body = route
        if callable(body):
            body = body(request)
        if body is None:
            return httpx.Response(status_code)
        if isinstance(body, str):
            return httpx.Response(status_code, text=body)
        return httpx.Response(status_code, json=body)

    def last_json(self) -> Any:
        return json.loads(self.requests[-1].content)


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def make_client(transport: RecordingTransport) -> Callable[..., RemoteSandboxClient]:
    def _make(account_id: str | None = None) -> RemoteSandboxClient:
        http = httpx.AsyncClient(transport=httpx.MockTransport(transport.handler))
        return RemoteSandboxClient(api_token="tok", account_id=account_id, client=http)

    return _make


def envelope(result: Any) -> dict[str, Any]:
    return {"success": True, "errors": [], "messages": [], "result": result}


def sandbox_record(sandbox_id: str = "sb1", **extra: Any) -> dict[str, Any]:
    record = {"id": sandbox_id, "created_at": "2025-01-01T00:00:00Z", "last_used_at": "2025-01-01T00:00:00Z"}
    record.update(extra)
    return record
