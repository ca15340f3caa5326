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
from typing import Literal

from pydantic import Field

from coreason_sandbox_manager.models.base import SandboxModel

FileEncoding = Literal["utf8", "base64"]
EntryType = Literal["file", "directory", "symlink"]


class WriteFileRequest(SandboxModel):
    path: str
    content: str
    encoding: FileEncoding = "utf8"
    create_directories: bool = False


class FileContent(SandboxModel):
    """Content and stat data of a file inside a sandbox.

    Attributes:
        path: Sandbox-relative, ``/``-separated path.
        encoding: How ``content`` is encoded.
        content: The file body, as text or base64.
        size: Size in bytes.
        modified_at: Last modification time (UTC).
    """

    path: str
    encoding: FileEncoding
    content: str
    size: int
    modified_at: datetime


class DirectoryEntry(SandboxModel):
    name: str
    path: str
    type: EntryType
    size: int | None = None
    modified_at: datetime | None = None


class ListDirectoryResult(SandboxModel):
    """Immediate children (or a full tree walk) of a sandbox directory."""

    path: str
    entries: list[DirectoryEntry] = Field(default_factory=list)
