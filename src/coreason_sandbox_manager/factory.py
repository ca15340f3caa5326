# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox_manager

from coreason_sandbox_manager.config import SandboxManagerConfig
from coreason_sandbox_manager.executor import ProcessExecutor
from coreason_sandbox_manager.integrations.audit import AuditLogger
from coreason_sandbox_manager.registry import SandboxRegistry
from coreason_sandbox_manager.remote.client import RemoteSandboxClient


class SandboxFactory:
    """
    Factory to create SandboxRegistry instances based on configuration.
    """

    @staticmethod
    def get_registry(config: SandboxManagerConfig | None = None) -> SandboxRegistry:
        """
        Returns a SandboxRegistry wired for the configured backend.

        The background prune task is not started; call ``start()`` or use the
        registry as an async context manager.
        """
        config = config or SandboxManagerConfig()
        audit = AuditLogger(enabled=config.enable_audit_logging)

        if config.backend == "local":
            return SandboxRegistry(
                config.root_dir,
                backend="local",
                cleanup_interval=config.cleanup_interval,
                executor=ProcessExecutor(default_timeout_ms=config.default_exec_timeout_ms),
                audit=audit,
            )
        elif config.backend == "remote":
            # Validated by SandboxManagerConfig
            assert config.api_token is not None
            client = RemoteSandboxClient(
                api_token=config.api_token,
                account_id=config.account_id,
                base_url=config.api_base_url,
                timeout=config.request_timeout,
            )
            return SandboxRegistry(
                backend="remote",
                client=client,
                cleanup_interval=config.cleanup_interval,
                audit=audit,
                owns_client=True,
            )
        else:
            raise ValueError(f"Unknown backend: {config.backend}")  # pragma: no cover
