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

from pydantic import Field

from coreason_sandbox_manager.models.base import SandboxModel

DEFAULT_EXEC_TIMEOUT_MS = 30_000


class ExecRequest(SandboxModel):
    """A command to run inside a sandbox.

    Attributes:
        command: Executable (or shell command line when ``use_shell`` is set).
        args: Positional arguments.
        stdin: Text written to the child's stdin before it is closed.
        env: Variables overlaid on the host environment.
        use_shell: Run through the system shell.
        timeout_ms: Timeout in milliseconds. ``None`` uses the executor default;
            zero or a negative value disables the timeout.
    """

    command: str = Field(..., min_length=1)
    args: list[str] = Field(default_factory=list)
    stdin: str | None = None
    env: dict[str, str] | None = None
    use_shell: bool = False
    timeout_ms: int | None = None


class ExecResult(SandboxModel):
    """Outcome of a command execution.

    ``exit_code`` is ``None`` when the process was killed by a signal.
    ``success`` is true only when the process was not timed out and exited with 0.
    """

    command: str
    args: list[str] = Field(default_factory=list)
    stdout: str
    stderr: str
    exit_code: int | None
    success: bool
    duration_ms: int
    timed_out: bool = False
    started_at: datetime
    finished_at: datetime
