# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox_manager

from pathlib import Path
from typing import Any, Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from coreason_sandbox_manager.integrations.vault import VaultIntegrator
from coreason_sandbox_manager.models import DEFAULT_EXEC_TIMEOUT_MS


class VaultSettingsSource(PydanticBaseSettingsSource):
    """
    Custom Pydantic Settings Source that hydrates API credentials from the secret integrator.
    """

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        # Unused because __call__ returns the full dict, but required by the ABC.
        return None, field_name, False  # pragma: no cover

    def __call__(self) -> dict[str, Any]:
        vault = VaultIntegrator()
        secrets: dict[str, Any] = {}

        mapping = {
            "api_token": "CLOUDFLARE_API_TOKEN",
            "account_id": "CLOUDFLARE_ACCOUNT_ID",
        }

        for field, key in mapping.items():
            val = vault.get_secret(key)
            if val:
                secrets[field] = val

        return secrets


class SandboxManagerConfig(BaseSettings):
    """
    Configuration for the sandbox registry and its backend.
    """

    backend: Literal["local", "remote"] = "local"
    root_dir: Path = Path("sandboxes")
    cleanup_interval: float = 60.0  # seconds; <= 0 disables the prune task
    default_exec_timeout_ms: int = DEFAULT_EXEC_TIMEOUT_MS
    enable_audit_logging: bool = True

    # Managed API
    account_id: str | None = None
    api_token: str | None = None
    api_base_url: str | None = None
    request_timeout: float = 30.0

    model_config = SettingsConfigDict(
        env_prefix="COREASON_SANDBOX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _require_token_for_remote(self) -> "SandboxManagerConfig":
        if self.backend == "remote" and not self.api_token:
            raise ValueError("api_token is required when backend is 'remote'")
        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            VaultSettingsSource(settings_cls),
            file_secret_settings,
        )
