# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox_manager

from datetime import datetime
from typing import Any, Literal

from pydantic import Field

from coreason_sandbox_manager.models.base import SandboxModel

BackendKind = Literal["local", "remote"]


class SandboxInfo(SandboxModel):
    """Identity and lifecycle snapshot of a sandbox.

    Attributes:
        id: Unique sandbox identifier.
        created_at: Creation time (UTC).
        last_used_at: Time of the last successful operation (UTC).
        ttl_seconds: Seconds of inactivity before expiry. ``None`` never expires.
        metadata: Opaque caller metadata, fixed at creation.
        backend: Which backend owns the sandbox.
        root_path: Filesystem root (local backend only).
        jurisdiction: Upstream placement hint (remote backend only).
        keep_alive: Upstream keep-alive flag (remote backend only).
        status: Upstream status string (remote backend only).
    """

    id: str
    created_at: datetime
    last_used_at: datetime
    ttl_seconds: float | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    backend: BackendKind = "local"
    root_path: str | None = None
    jurisdiction: str | None = None
    keep_alive: bool | None = None
    status: str | None = None


class PruneReport(SandboxModel):
    """Outcome of a single prune pass."""

    removed_ids: list[str] = Field(default_factory=list)
    failed: dict[str, str] = Field(default_factory=dict)
    upstream_removed: int = 0

    @property
    def removed(self) -> int:
        return len(self.removed_ids) + self.upstream_removed
