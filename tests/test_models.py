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
from pydantic import ValidationError

from coreason_sandbox_manager.models import ExecRequest, PruneReport, SandboxInfo, WriteFileRequest

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def test_sandbox_info_camel_case_aliases() -> None:
    info = SandboxInfo(id="sb", created_at=T0, last_used_at=T0, ttl_seconds=5)
    dumped = info.model_dump(by_alias=True)
    assert dumped["lastUsedAt"] == T0
    assert dumped["ttlSeconds"] == 5
    assert dumped["backend"] == "local"


def test_models_accept_either_spelling() -> None:
    request = WriteFileRequest.model_validate({"path": "a", "content": "x", "createDirectories": True})
    assert request.create_directories is True
    request = WriteFileRequest(path="a", content="x", create_directories=True)
    assert request.encoding == "utf8"


def test_exec_request_requires_command() -> None:
    with pytest.raises(ValidationError):
        ExecRequest(command="")


def test_prune_report_counts_local_and_upstream() -> None:
    report = PruneReport(removed_ids=["a", "b"], upstream_removed=3, failed={"c": "boom"})
    assert report.removed == 5
