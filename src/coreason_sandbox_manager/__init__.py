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
coreason-sandbox-manager
"""

__version__ = "0.1.0"
__author__ = "Gowtham A Rao"
__email__ = "gowtham.rao@coreason.ai"

from .config import SandboxManagerConfig
from .exceptions import (
    AlreadyExistsError,
    ExecutionFailedError,
    NotADirectoryError,
    NotAFileError,
    NotFoundError,
    PathEscapesRootError,
    PathRequiredError,
    RemoteRequestFailedError,
    SandboxDestroyedError,
    SandboxError,
    ValidationFailedError,
)
from .factory import SandboxFactory
from .models import (
    DirectoryEntry,
    ExecRequest,
    ExecResult,
    FileContent,
    ListDirectoryResult,
    PruneReport,
    SandboxInfo,
    WriteFileRequest,
)
from .paths import ensure_relative_path, resolve_sandbox_path
from .registry import SandboxManager, SandboxRegistry
from .remote import RemoteSandboxClient
from .sandbox import Sandbox

__all__ = [
    "AlreadyExistsError",
    "DirectoryEntry",
    "ExecRequest",
    "ExecResult",
    "ExecutionFailedError",
    "FileContent",
    "ListDirectoryResult",
    "NotADirectoryError",
    "NotAFileError",
    "NotFoundError",
    "PathEscapesRootError",
    "PathRequiredError",
    "PruneReport",
    "RemoteRequestFailedError",
    "RemoteSandboxClient",
    "Sandbox",
    "SandboxDestroyedError",
    "SandboxError",
    "SandboxFactory",
    "SandboxInfo",
    "SandboxManager",
    "SandboxManagerConfig",
    "SandboxRegistry",
    "ValidationFailedError",
    "WriteFileRequest",
    "ensure_relative_path",
    "resolve_sandbox_path",
]
