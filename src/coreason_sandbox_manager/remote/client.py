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
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

import httpx
from loguru import logger

from coreason_sandbox_manager.exceptions import (
    NotADirectoryError,
    NotAFileError,
    NotFoundError,
    RemoteRequestFailedError,
)
from coreason_sandbox_manager.filestore import decode_content
from coreason_sandbox_manager.models import (
    ExecRequest,
    ExecResult,
    FileContent,
    FileEncoding,
    ListDirectoryResult,
    SandboxInfo,
    WriteFileRequest,
)
from coreason_sandbox_manager.paths import ensure_relative_path
from coreason_sandbox_manager.remote.wire import (
    first_error_message,
    unwrap_directory,
    unwrap_envelope,
    unwrap_exec,
    unwrap_file,
    unwrap_removed,
    unwrap_sandbox,
    unwrap_sandbox_list,
)
from coreason_sandbox_manager.ttl import utcnow

ACCOUNT_SCOPED_BASE_URL = "https://api.cloudflare.com/client/v4"
TOKEN_SCOPED_BASE_URL = "https://api.cloudflare.com/sandbox/v1"


def _compact(values: dict[str, Any] | None) -> dict[str, Any] | None:
    if values is None:
        return None
    return {key: value for key, value in values.items() if value is not None}


class RemoteSandboxClient:
    """Client for the managed sandbox API.

    The addressing mode is fixed at construction: with an ``account_id`` the
    client talks to the account-scoped API (``PUT/GET/DELETE .../files``,
    ``.../directories``); without one it uses the token-scoped API and its
    ``files/write-file``, ``files/read-file``, ``files/delete-file`` and
    ``files/mkdir`` actions. Every response is unwrapped and normalized into the
    package's own models.
    """

    def __init__(
        self,
        api_token: str,
        account_id: str | None = None,
        base_url: str | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        """Initializes the RemoteSandboxClient.

        Args:
            api_token: Bearer token sent with every request.
            account_id: Account identifier. Selects account-scoped addressing.
            base_url: Override for the API base URL.
            timeout: Request timeout in seconds for an internally created client.
            client: Optional httpx.AsyncClient for connection pooling. It is not
                closed by :meth:`aclose`.
        """
        self.account_id = account_id
        self.api_token = api_token
        default_base = ACCOUNT_SCOPED_BASE_URL if account_id else TOKEN_SCOPED_BASE_URL
        self.base_url = (base_url or default_base).rstrip("/")
        self._internal_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    @property
    def account_scoped(self) -> bool:
        return bool(self.account_id)

    @property
    def sandboxes_path(self) -> str:
        if self.account_id:
            return f"/accounts/{quote(self.account_id, safe='')}/workers/sandboxes"
        return "/sandboxes"

    def _sandbox_path(self, sandbox_id: str, suffix: str = "") -> str:
        return f"{self.sandboxes_path}/{quote(sandbox_id, safe='')}{suffix}"

    async def aclose(self) -> None:
        if self._internal_client:
            await self._client.aclose()

    async def __aenter__(self) -> "RemoteSandboxClient":
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Send a request and return the unwrapped payload.

        Raises:
            RemoteRequestFailedError: On network failure, non-2xx status,
                unparsable body or an envelope reporting ``success: false``.
        """
        url = f"{self.base_url}{path}"
        headers = {"authorization": f"Bearer {self.api_token}"}
        logger.debug(f"Sandbox API {method} {path}")

        try:
            response = await self._client.request(
                method,
                url,
                json=_compact(body),
                params=_compact(params),
                headers=headers,
            )
        except httpx.HTTPError as e:
            logger.error(f"Sandbox API {method} {path} failed: {e}")
            raise RemoteRequestFailedError(f"Sandbox API request failed: {e}") from e

        text = response.text
        parsed: Any = None
        parse_error: ValueError | None = None
        if text:
            try:
                parsed = json.loads(text)
            except ValueError as e:
                parse_error = e

        if not response.is_success:
            message = first_error_message(parsed) or text or f"HTTP {response.status_code} {response.reason_phrase}"
            logger.error(f"Sandbox API {method} {path} returned {response.status_code}: {message}")
            raise RemoteRequestFailedError(
                f"Sandbox API request failed with status {response.status_code}: {message}",
                status_code=response.status_code,
            )

        if parse_error is not None:
            raise RemoteRequestFailedError(
                f"Sandbox API returned an unparsable response body: {parse_error}",
                status_code=response.status_code,
            ) from parse_error

        return unwrap_envelope(parsed)

    async def create_sandbox(
        self,
        sandbox_id: str | None = None,
        metadata: dict[str, Any] | None = None,
        ttl_seconds: float | None = None,
    ) -> SandboxInfo:
        payload = await self._request(
            "POST",
            self.sandboxes_path,
            {"id": sandbox_id, "metadata": metadata, "ttl_seconds": ttl_seconds},
        )
        info = unwrap_sandbox(payload)
        if info is None:
            raise RemoteRequestFailedError("Sandbox API did not return sandbox metadata")
        return info

    async def get_sandbox(self, sandbox_id: str) -> SandboxInfo:
        payload = await self._request("GET", self._sandbox_path(sandbox_id))
        info = unwrap_sandbox(payload)
        if info is None:
            raise NotFoundError(f"Sandbox {sandbox_id} not found")
        return info

    async def list_sandboxes(self) -> list[SandboxInfo]:
        payload = await self._request("GET", self.sandboxes_path)
        return unwrap_sandbox_list(payload)

    async def delete_sandbox(self, sandbox_id: str) -> SandboxInfo:
        payload = await self._request("DELETE", self._sandbox_path(sandbox_id))
        info = unwrap_sandbox(payload)
        if info is None:
            epoch = datetime(1970, 1, 1, tzinfo=timezone.utc)
            return SandboxInfo(id=sandbox_id, created_at=epoch, last_used_at=epoch, backend="remote")
        return info

    async def prune_sandboxes(self) -> int:
        payload = await self._request("POST", f"{self.sandboxes_path}/prune")
        return unwrap_removed(payload)

    async def touch_sandbox(self, sandbox_id: str) -> SandboxInfo | None:
        payload = await self._request("POST", self._sandbox_path(sandbox_id, "/touch"))
        return unwrap_sandbox(payload)

    async def exec_sandbox(self, sandbox_id: str, request: ExecRequest) -> tuple[ExecResult, SandboxInfo | None]:
        payload = await self._request(
            "POST",
            self._sandbox_path(sandbox_id, "/exec"),
            {
                "command": request.command,
                "args": request.args,
                "stdin": request.stdin,
                "timeout_ms": request.timeout_ms,
                "timeout": request.timeout_ms,
                "env": request.env,
                "use_shell": request.use_shell,
            },
        )
        result = unwrap_exec(payload, request.command, request.args)
        if result is None:
            raise RemoteRequestFailedError("Sandbox API did not return execution results")
        return result, unwrap_sandbox(payload)

    async def write_file(self, sandbox_id: str, request: WriteFileRequest) -> tuple[FileContent, SandboxInfo | None]:
        path = ensure_relative_path(request.path)
        size = len(decode_content(request.content, request.encoding))
        if self.account_scoped:
            payload = await self._request(
                "PUT",
                self._sandbox_path(sandbox_id, "/files"),
                {
                    "path": path,
                    "content": request.content,
                    "encoding": request.encoding,
                    "create_directories": request.create_directories,
                },
            )
        else:
            payload = await self._request(
                "POST",
                self._sandbox_path(sandbox_id, "/files/write-file"),
                {
                    "path": path,
                    "content": request.content,
                    "encoding": request.encoding,
                    "recursive": request.create_directories,
                },
            )

        file = unwrap_file(payload)
        if file is None:
            file = FileContent(
                path=path,
                encoding=request.encoding,
                content=request.content,
                size=size,
                modified_at=utcnow(),
            )
        return file, unwrap_sandbox(payload)

    async def read_file(
        self, sandbox_id: str, path: str, encoding: FileEncoding = "utf8"
    ) -> tuple[FileContent, SandboxInfo | None]:
        safe_path = ensure_relative_path(path)
        action = "/files" if self.account_scoped else "/files/read-file"
        payload = await self._request(
            "GET",
            self._sandbox_path(sandbox_id, action),
            params={"path": safe_path, "encoding": encoding},
        )
        file = unwrap_file(payload)
        if file is None:
            raise NotAFileError()
        return file, unwrap_sandbox(payload)

    async def delete_path(self, sandbox_id: str, path: str) -> SandboxInfo | None:
        safe_path = ensure_relative_path(path)
        if self.account_scoped:
            payload = await self._request("DELETE", self._sandbox_path(sandbox_id, "/files"), {"path": safe_path})
        else:
            payload = await self._request(
                "POST", self._sandbox_path(sandbox_id, "/files/delete-file"), {"path": safe_path}
            )
        return unwrap_sandbox(payload)

    async def ensure_directory(self, sandbox_id: str, path: str) -> tuple[ListDirectoryResult, SandboxInfo | None]:
        safe_path = ensure_relative_path(path)
        if self.account_scoped:
            payload = await self._request(
                "POST", self._sandbox_path(sandbox_id, "/directories"), {"path": safe_path}
            )
        else:
            payload = await self._request(
                "POST",
                self._sandbox_path(sandbox_id, "/files/mkdir"),
                {"path": safe_path, "recursive": False},
            )
        directory = unwrap_directory(payload) or ListDirectoryResult(path=safe_path, entries=[])
        return directory, unwrap_sandbox(payload)

    async def list_directory(
        self, sandbox_id: str, path: str = ".", recursive: bool = False
    ) -> tuple[ListDirectoryResult, SandboxInfo | None]:
        safe_path = ensure_relative_path(path)
        params: dict[str, Any] = {"path": safe_path}
        if self.account_scoped:
            action = "/directories"
        else:
            # The token-scoped API answers directory reads on its read-file action.
            action = "/files/read-file"
            params["encoding"] = "utf8"
        if recursive:
            params["recursive"] = "true"

        payload = await self._request("GET", self._sandbox_path(sandbox_id, action), params=params)
        directory = unwrap_directory(payload)
        if directory is None:
            raise NotADirectoryError()
        return directory, unwrap_sandbox(payload)
