# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox_manager

import os

from loguru import logger

ENV_PREFIX = "COREASON_SANDBOX_"


class VaultIntegrator:
    """Standalone secret lookup backed by environment variables.

    Keys are looked up verbatim first (e.g. ``CLOUDFLARE_API_TOKEN``) and then
    with the package prefix (``COREASON_SANDBOX_CLOUDFLARE_API_TOKEN``).
    """

    def __init__(self, environ: dict[str, str] | None = None):
        self._environ = environ

    def _lookup(self, name: str) -> str | None:
        source = self._environ if self._environ is not None else os.environ
        return source.get(name) or None

    def get_secret(self, key: str) -> str | None:
        value = self._lookup(key) or self._lookup(f"{ENV_PREFIX}{key}")
        if not value:
            logger.debug(f"Secret {key} not found in environment.")
        return value
