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
Adapter for the managed sandbox API.
"""

from .client import ACCOUNT_SCOPED_BASE_URL, TOKEN_SCOPED_BASE_URL, RemoteSandboxClient

__all__ = ["ACCOUNT_SCOPED_BASE_URL", "TOKEN_SCOPED_BASE_URL", "RemoteSandboxClient"]
