# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox_manager

"""Shape detection and field normalization for upstream sandbox API payloads.

The upstream service answers with either a ``{success, errors, messages, result}``
envelope or a bare payload, and the inner payload may nest the record
(``{"sandbox": {...}, "file": {...}}``) or be the record itself. Field names
arrive in snake_case or camelCase. Every unwrapper below checks the known
shapes in a fixed order so parsing is reproducible.
"""

from datetime import datetime
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, ValidationError, model_validator

from coreason_sandbox_manager.exceptions import RemoteRequestFailedError
from coreason_sandbox_manager.models import (
    DirectoryEntry,
    EntryType,
    ExecResult,
    FileContent,
    FileEncoding,
    ListDirectoryResult,
    SandboxInfo,
)
from coreason_sandbox_manager.ttl import as_utc, utcnow

DEFAULT_ERROR_MESSAGE = "Unknown sandbox API error"

_EXEC_MARKERS = ("stdout", "stderr", "exit_code", "exitCode", "success")


class WireModel(BaseModel):
    """Upstream record with spelling-tolerant fields.

    ``field_spellings`` lists, per field, the upstream keys to try in order.
    The first key holding a non-null value wins.
    """

    model_config = ConfigDict(extra="ignore")

    field_spellings: ClassVar[dict[str, tuple[str, ...]]] = {}

    @model_validator(mode="before")
    @classmethod
    def _coalesce_spellings(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        normalized = dict(data)
        for field, spellings in cls.field_spellings.items():
            for key in spellings:
                if data.get(key) is not None:
                    normalized[field] = data[key]
                    break
        return normalized


class WireSandboxRecord(WireModel):
    field_spellings = {
        "created_at": ("created_at", "createdAt"),
        "last_used_at": ("last_used_at", "lastActive", "last_active", "lastUsedAt"),
        "ttl_seconds": ("ttl_seconds", "ttlSeconds"),
        "keep_alive": ("keep_alive", "keepAlive"),
    }

    id: str
    created_at: datetime | None = None
    last_used_at: datetime | None = None
    ttl_seconds: float | None = None
    metadata: dict[str, Any] | None = None
    jurisdiction: str | None = None
    keep_alive: bool | None = None
    status: str | None = None

    def to_info(self) -> SandboxInfo:
        created_at = as_utc(self.created_at) if self.created_at else utcnow()
        last_used_at = as_utc(self.last_used_at) if self.last_used_at else created_at
        # Only fields upstream actually sent end up in ``model_fields_set``.
        reported = {
            field: value
            for field, value in (
                ("ttl_seconds", self.ttl_seconds),
                ("jurisdiction", self.jurisdiction),
                ("keep_alive", self.keep_alive),
                ("status", self.status),
            )
            if value is not None
        }
        return SandboxInfo(
            id=self.id,
            created_at=created_at,
            last_used_at=max(last_used_at, created_at),
            metadata=dict(self.metadata or {}),
            backend="remote",
            **reported,
        )


class WireExecResult(WireModel):
    field_spellings = {
        "exit_code": ("exit_code", "exitCode"),
        "duration_ms": ("duration_ms", "durationMs"),
        "timed_out": ("timed_out", "timedOut"),
        "started_at": ("started_at", "startedAt"),
        "finished_at": ("finished_at", "finishedAt"),
    }

    command: str | None = None
    args: list[str] | None = None
    stdout: str = ""
    stderr: str = ""
    exit_code: int | None = None
    success: bool | None = None
    duration_ms: int | None = None
    timed_out: bool | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None

    def to_result(self, command: str, args: list[str]) -> ExecResult:
        timed_out = bool(self.timed_out)
        success = self.success if self.success is not None else (not timed_out and self.exit_code == 0)
        now = utcnow()
        return ExecResult(
            command=self.command if self.command is not None else command,
            args=self.args if self.args is not None else list(args),
            stdout=self.stdout,
            stderr=self.stderr,
            exit_code=self.exit_code,
            success=success and not timed_out,
            duration_ms=self.duration_ms or 0,
            timed_out=timed_out,
            started_at=as_utc(self.started_at) if self.started_at else now,
            finished_at=as_utc(self.finished_at) if self.finished_at else now,
        )


class WireFileContent(WireModel):
    field_spellings = {"modified_at": ("modified_at", "modifiedAt")}

    path: str
    encoding: FileEncoding
    content: str
    size: int
    modified_at: datetime | None = None

    def to_content(self) -> FileContent:
        return FileContent(
            path=self.path,
            encoding=self.encoding,
            content=self.content,
            size=self.size,
            modified_at=as_utc(self.modified_at) if self.modified_at else utcnow(),
        )


class WireDirectoryEntry(WireModel):
    field_spellings = {"modified_at": ("modified_at", "modifiedAt")}

    name: str
    path: str
    type: EntryType
    size: int | None = None
    modified_at: datetime | None = None

    def to_entry(self) -> DirectoryEntry:
        return DirectoryEntry(
            name=self.name,
            path=self.path,
            type=self.type,
            size=self.size,
            modified_at=as_utc(self.modified_at) if self.modified_at else None,
        )


class WireDirectoryResult(WireModel):
    path: str
    entries: list[WireDirectoryEntry] = []

    def to_listing(self) -> ListDirectoryResult:
        return ListDirectoryResult(path=self.path, entries=[entry.to_entry() for entry in self.entries])


def is_envelope(value: Any) -> bool:
    return isinstance(value, dict) and "success" in value and "result" in value


def first_error_message(value: Any) -> str | None:
    """Pick the most specific error message out of an upstream error body."""
    if not isinstance(value, dict):
        return None

    if is_envelope(value) or "errors" in value:
        errors = value.get("errors") or []
        if errors:
            first = errors[0]
            if isinstance(first, dict) and isinstance(first.get("message"), str):
                return first["message"]
            if isinstance(first, str):
                return first

    for key in ("error", "message"):
        if isinstance(value.get(key), str):
            return value[key]

    return None


def unwrap_envelope(payload: Any) -> Any:
    """Return the ``result`` of an envelope, or the payload when it is not one.

    Raises:
        RemoteRequestFailedError: If the envelope reports ``success: false``.
    """
    if not is_envelope(payload):
        return payload
    if not payload["success"]:
        raise RemoteRequestFailedError(first_error_message(payload) or DEFAULT_ERROR_MESSAGE)
    return payload["result"]


def _nested_or_flat(payload: Any, key: str, flat_keys: tuple[str, ...]) -> dict[str, Any] | None:
    if not isinstance(payload, dict):
        return None
    nested = payload.get(key)
    if isinstance(nested, dict):
        return nested
    if all(flat_key in payload for flat_key in flat_keys):
        return payload
    return None


def _parse(model: type[WireModel], data: dict[str, Any], what: str) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise RemoteRequestFailedError(f"Malformed {what} in sandbox API response: {e}") from e


def unwrap_sandbox(payload: Any) -> SandboxInfo | None:
    """Nested ``sandbox`` first, then a flat record carrying ``id``."""
    data = _nested_or_flat(payload, "sandbox", ("id",))
    if data is None:
        return None
    record: WireSandboxRecord = _parse(WireSandboxRecord, data, "sandbox record")
    return record.to_info()


def unwrap_sandbox_list(payload: Any) -> list[SandboxInfo]:
    if isinstance(payload, list):
        return [_parse(WireSandboxRecord, item, "sandbox record").to_info() for item in payload if isinstance(item, dict)]
    if isinstance(payload, dict) and isinstance(payload.get("sandboxes"), list):
        return unwrap_sandbox_list(payload["sandboxes"])
    single = unwrap_sandbox(payload)
    return [single] if single else []


def unwrap_file(payload: Any) -> FileContent | None:
    """Nested ``file`` first, then a flat record carrying ``content`` and ``encoding``."""
    data = _nested_or_flat(payload, "file", ("content", "encoding"))
    if data is None:
        return None
    record: WireFileContent = _parse(WireFileContent, data, "file record")
    return record.to_content()


def unwrap_directory(payload: Any) -> ListDirectoryResult | None:
    """Nested ``directory`` first, then a flat record carrying ``entries`` and ``path``."""
    data = _nested_or_flat(payload, "directory", ("entries", "path"))
    if data is None:
        return None
    record: WireDirectoryResult = _parse(WireDirectoryResult, data, "directory record")
    return record.to_listing()


def unwrap_exec(payload: Any, command: str, args: list[str]) -> ExecResult | None:
    """Nested ``exec`` first, then a nested ``result`` object, then the payload itself."""
    if not isinstance(payload, dict):
        return None
    data: Any = payload.get("exec")
    if not isinstance(data, dict):
        data = payload.get("result")
    if not isinstance(data, dict):
        if not any(key in payload for key in _EXEC_MARKERS):
            return None
        data = payload
    record: WireExecResult = _parse(WireExecResult, data, "exec result")
    return record.to_result(command, args)


def unwrap_removed(payload: Any) -> int:
    if isinstance(payload, bool):
        return 0
    if isinstance(payload, (int, float)):
        return int(payload)
    if isinstance(payload, dict):
        removed = payload.get("removed")
        if isinstance(removed, (int, float)) and not isinstance(removed, bool):
            return int(removed)
    return 0
