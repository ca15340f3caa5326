# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox_manager

from datetime import datetime, timezone

import pytest

from coreason_sandbox_manager.exceptions import RemoteRequestFailedError
from coreason_sandbox_manager.remote.wire import (
    DEFAULT_ERROR_MESSAGE,
    first_error_message,
    unwrap_directory,
    unwrap_envelope,
    unwrap_exec,
    unwrap_file,
    unwrap_removed,
    unwrap_sandbox,
    unwrap_sandbox_list,
)


def test_unwrap_envelope_success() -> None:
    assert unwrap_envelope({"success": True, "errors": [], "result": {"id": "x"}}) == {"id": "x"}
    assert unwrap_envelope({"id": "bare"}) == {"id": "bare"}


def test_unwrap_envelope_failure_uses_first_error() -> None:
    payload = {"success": False, "errors": [{"code": 1, "message": "quota exceeded"}], "result": None}
    with pytest.raises(RemoteRequestFailedError, match="quota exceeded"):
        unwrap_envelope(payload)


def test_unwrap_envelope_failure_default_message() -> None:
    with pytest.raises(RemoteRequestFailedError, match=DEFAULT_ERROR_MESSAGE):
        unwrap_envelope({"success": False, "errors": [], "result": None})


@pytest.mark.parametrize(
    "body, expected",
    [
        ({"errors": [{"message": "first"}, {"message": "second"}]}, "first"),
        ({"errors": ["plain"]}, "plain"),
        ({"error": "flat error"}, "flat error"),
        ({"message": "flat message"}, "flat message"),
        ("not a dict", None),
        ({}, None),
    ],
)
def test_first_error_message(body: object, expected: str | None) -> None:
    assert first_error_message(body) == expected


def test_sandbox_record_spellings() -> None:
    info = unwrap_sandbox(
        {
            "sandbox": {
                "id": "sb1",
                "createdAt": "2025-01-01T00:00:00Z",
                "lastActive": "2025-01-01T00:05:00Z",
                "ttlSeconds": 60,
                "keepAlive": True,
                "jurisdiction": "eu",
            }
        }
    )
    assert info is not None
    assert info.backend == "remote"
    assert info.created_at == datetime(2025, 1, 1, tzinfo=timezone.utc)
    assert info.last_used_at == datetime(2025, 1, 1, 0, 5, tzinfo=timezone.utc)
    assert info.ttl_seconds == 60
    assert info.keep_alive is True
    assert info.jurisdiction == "eu"


def test_sandbox_record_defaults() -> None:
    info = unwrap_sandbox({"id": "flat", "created_at": "2025-01-01T00:00:00Z"})
    assert info is not None
    assert info.last_used_at == info.created_at
    assert info.metadata == {}
    assert unwrap_sandbox({"nothing": True}) is None


def test_malformed_record() -> None:
    with pytest.raises(RemoteRequestFailedError, match="Malformed sandbox record"):
        unwrap_sandbox({"sandbox": {"id": "x", "created_at": "not-a-date"}})


def test_sandbox_list_shapes() -> None:
    records = [{"id": "a"}, {"id": "b"}]
    assert [i.id for i in unwrap_sandbox_list(records)] == ["a", "b"]
    assert [i.id for i in unwrap_sandbox_list({"sandboxes": records})] == ["a", "b"]
    assert [i.id for i in unwrap_sandbox_list({"sandbox": {"id": "solo"}})] == ["solo"]
    assert unwrap_sandbox_list(None) == []


def test_file_nested_and_flat() -> None:
    nested = unwrap_file({"file": {"path": "a.txt", "encoding": "utf8", "content": "hi", "size": 2}})
    flat = unwrap_file({"path": "a.txt", "encoding": "utf8", "content": "hi", "size": 2, "modifiedAt": None})
    assert nested is not None and flat is not None
    assert nested.content == flat.content == "hi"
    assert unwrap_file({"directory": {}}) is None


def test_directory_nested_and_flat() -> None:
    entry = {"name": "a", "path": "d/a", "type": "file", "size": 1, "modifiedAt": "2025-01-01T00:00:00Z"}
    nested = unwrap_directory({"directory": {"path": "d", "entries": [entry]}})
    flat = unwrap_directory({"path": "d", "entries": [entry]})
    assert nested is not None and flat is not None
    assert nested.entries[0].modified_at == datetime(2025, 1, 1, tzinfo=timezone.utc)
    assert flat.entries[0].path == "d/a"
    assert unwrap_directory({"path": "d"}) is None


def test_exec_shapes() -> None:
    nested = unwrap_exec({"exec": {"stdout": "x", "exitCode": 0}, "sandbox": {"id": "s"}}, "ls", [])
    assert nested is not None
    assert nested.stdout == "x"
    assert nested.exit_code == 0
    assert nested.success

    inner = unwrap_exec({"result": {"stdout": "y", "exit_code": 2}}, "ls", ["-l"])
    assert inner is not None
    assert inner.exit_code == 2
    assert not inner.success
    assert inner.args == ["-l"]

    flat = unwrap_exec({"stdout": "", "stderr": "oops", "success": False, "exitCode": 1}, "ls", [])
    assert flat is not None
    assert flat.stderr == "oops"

    assert unwrap_exec({"sandbox": {"id": "s"}}, "ls", []) is None


def test_exec_timed_out_is_not_success() -> None:
    result = unwrap_exec({"exec": {"success": True, "timedOut": True}}, "sleep", ["9"])
    assert result is not None
    assert result.timed_out
    assert not result.success


@pytest.mark.parametrize("payload, expected", [(3, 3), ({"removed": 2}, 2), ({}, 0), (None, 0), (True, 0)])
def test_unwrap_removed(payload: object, expected: int) -> None:
    assert unwrap_removed(payload) == expected


def test_sandbox_record_reports_only_sent_fields() -> None:
    info = unwrap_sandbox({"id": "sb", "status": "running", "ttlSeconds": None})
    assert info is not None
    assert "status" in info.model_fields_set
    assert "ttl_seconds" not in info.model_fields_set
    assert "jurisdiction" not in info.model_fields_set
