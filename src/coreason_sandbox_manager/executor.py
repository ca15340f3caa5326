# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox_manager

import asyncio
import os
import shlex
import signal
from pathlib import Path

from loguru import logger

from coreason_sandbox_manager.exceptions import ExecutionFailedError, ValidationFailedError
from coreason_sandbox_manager.models import DEFAULT_EXEC_TIMEOUT_MS, ExecRequest, ExecResult
from coreason_sandbox_manager.ttl import utcnow

_READ_CHUNK = 64 * 1024
# How long output pipes may stay open after the process exits.
_DRAIN_GRACE_SECONDS = 1.0


async def _drain(stream: asyncio.StreamReader | None, sink: bytearray) -> None:
    if stream is None:
        return
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            break
        sink.extend(chunk)


async def _feed_stdin(process: asyncio.subprocess.Process, data: str | None) -> None:
    stdin = process.stdin
    if stdin is None:
        return
    try:
        if data:
            stdin.write(data.encode("utf-8"))
            await stdin.drain()
    except (BrokenPipeError, ConnectionResetError):
        # Child exited without reading its input.
        pass
    finally:
        stdin.close()


class ProcessExecutor:
    """Runs commands inside a sandbox root.

    stdout and stderr are collected into independent buffers while the process
    runs. When the timeout elapses the whole process group is killed with
    SIGKILL and the result is marked as timed out.
    """

    def __init__(self, default_timeout_ms: int = DEFAULT_EXEC_TIMEOUT_MS):
        self.default_timeout_ms = default_timeout_ms

    def _timeout_seconds(self, request: ExecRequest) -> float | None:
        timeout_ms = self.default_timeout_ms if request.timeout_ms is None else request.timeout_ms
        if timeout_ms <= 0:
            return None
        return timeout_ms / 1000

    @staticmethod
    def _environment(overlay: dict[str, str] | None) -> dict[str, str]:
        env = dict(os.environ)
        if overlay:
            env.update(overlay)
        return env

    async def _spawn(self, root: Path, request: ExecRequest) -> asyncio.subprocess.Process:
        options = {
            "cwd": str(root),
            "env": self._environment(request.env),
            "stdin": asyncio.subprocess.PIPE,
            "stdout": asyncio.subprocess.PIPE,
            "stderr": asyncio.subprocess.PIPE,
            "start_new_session": os.name == "posix",
        }
        if request.use_shell:
            command_line = " ".join([request.command, *(shlex.quote(arg) for arg in request.args)])
            return await asyncio.create_subprocess_shell(command_line, **options)
        return await asyncio.create_subprocess_exec(request.command, *request.args, **options)

    @staticmethod
    def _kill(process: asyncio.subprocess.Process) -> None:
        try:
            if os.name == "posix":
                os.killpg(process.pid, signal.SIGKILL)
            else:
                process.kill()
        except ProcessLookupError:
            pass

    async def _collect(self, process: asyncio.subprocess.Process, readers: list[asyncio.Task[None]]) -> None:
        """Wait for the output readers, killing whatever still holds the pipes open.

        A backgrounded grandchild can keep stdout open after the process itself
        has exited; it shares the process group and is killed with it.
        """
        _, pending = await asyncio.wait(readers, timeout=_DRAIN_GRACE_SECONDS)
        if pending:
            logger.warning(f"Output of pid {process.pid} still open after exit. Killing leftover process group.")
            self._kill(process)
            _, pending = await asyncio.wait(pending, timeout=_DRAIN_GRACE_SECONDS)
            for task in pending:
                task.cancel()
        await asyncio.gather(*readers, return_exceptions=True)

    async def run(self, root: Path, request: ExecRequest) -> ExecResult:
        """Execute ``request`` with ``root`` as the working directory.

        Args:
            root: The sandbox root directory.
            request: The command to run.

        Returns:
            ExecResult: Captured output, exit status and timing.

        Raises:
            ValidationFailedError: If the command is empty.
            ExecutionFailedError: If the process cannot be launched.
        """
        if not request.command or not request.command.strip():
            raise ValidationFailedError("Command is required")

        timeout = self._timeout_seconds(request)
        started_at = utcnow()

        try:
            process = await self._spawn(root, request)
        except OSError as e:
            logger.error(f"Failed to launch {request.command!r}: {e}")
            raise ExecutionFailedError(f"Failed to launch {request.command!r}: {e}") from e

        stdout = bytearray()
        stderr = bytearray()
        readers = [
            asyncio.create_task(_drain(process.stdout, stdout)),
            asyncio.create_task(_drain(process.stderr, stderr)),
        ]
        feeder = asyncio.create_task(_feed_stdin(process, request.stdin))

        timed_out = False
        try:
            returncode = await asyncio.wait_for(process.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            timed_out = True
            logger.warning(f"Execution of {request.command!r} timed out after {timeout}s. Killing process group.")
            self._kill(process)
            returncode = await process.wait()
        except BaseException:
            self._kill(process)
            raise
        finally:
            await self._collect(process, readers)
            if not feeder.done():
                feeder.cancel()
            await asyncio.gather(feeder, return_exceptions=True)

        finished_at = utcnow()
        duration_ms = int((finished_at - started_at).total_seconds() * 1000)
        # Negative return codes mean the process died from a signal.
        exit_code = returncode if returncode is not None and returncode >= 0 else None

        return ExecResult(
            command=request.command,
            args=list(request.args),
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            exit_code=exit_code,
            success=not timed_out and exit_code == 0,
            duration_ms=duration_ms,
            timed_out=timed_out,
            started_at=started_at,
            finished_at=finished_at,
        )
