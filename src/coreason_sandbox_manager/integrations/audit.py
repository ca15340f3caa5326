# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox_manager

import hashlib
import shlex

from loguru import logger

from coreason_sandbox_manager.models import ExecRequest


class AuditLogger:
    """Audit trail for commands executed in sandboxes.

    Logs a SHA-256 fingerprint of each command line before it runs, so the
    command itself (which may embed secrets) never reaches the log.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        if self.enabled:
            logger.info("Sandbox exec audit logging enabled")

    @staticmethod
    def fingerprint(request: ExecRequest) -> str:
        command_line = shlex.join([request.command, *request.args])
        return hashlib.sha256(command_line.encode("utf-8")).hexdigest()

    async def log_pre_execution(self, request: ExecRequest, sandbox_id: str) -> str:
        """Record an execution attempt.

        Args:
            request: The command about to run.
            sandbox_id: The sandbox it runs in.

        Returns:
            str: The SHA-256 fingerprint of the command line.
        """
        digest = self.fingerprint(request)
        if self.enabled:
            logger.info(
                f"AUDIT: Executing command in sandbox {sandbox_id}. Hash: {digest}, Args: {len(request.args)}",
                sandbox_id=sandbox_id,
                use_shell=request.use_shell,
            )
        return digest
