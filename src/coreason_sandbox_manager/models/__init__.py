# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox_manager

"""
Data models for sandboxes, executions and files.
"""

from .execution import DEFAULT_EXEC_TIMEOUT_MS, ExecRequest, ExecResult
from .files import (
    DirectoryEntry,
    EntryType,
    FileContent,
    FileEncoding,
    ListDirectoryResult,
    WriteFileRequest,
)
from .sandbox import BackendKind, PruneReport, SandboxInfo

__all__ = [
    "DEFAULT_EXEC_TIMEOUT_MS",
    "BackendKind",
    "DirectoryEntry",
    "EntryType",
    "ExecRequest",
    "ExecResult",
    "FileContent",
    "FileEncoding",
    "ListDirectoryResult",
    "PruneReport",
    "SandboxInfo",
    "WriteFileRequest",
]
