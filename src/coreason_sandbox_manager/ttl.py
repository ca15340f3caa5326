# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox_manager

from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class TTLTracker:
    """Tracks last use of a sandbox and decides when it has expired.

    ``last_used_at`` never moves backwards: touches and upstream observations
    older than the current value are ignored.
    """

    def __init__(
        self,
        created_at: datetime | None = None,
        last_used_at: datetime | None = None,
        ttl_seconds: float | None = None,
    ):
        self.created_at = as_utc(created_at or utcnow())
        self.last_used_at = max(as_utc(last_used_at or self.created_at), self.created_at)
        self.ttl_seconds = ttl_seconds

    @property
    def expires_at(self) -> datetime | None:
        if self.ttl_seconds is None:
            return None
        return self.last_used_at + timedelta(seconds=self.ttl_seconds)

    def is_expired(self, reference: datetime | None = None) -> bool:
        """Return True when ``reference`` is strictly past ``last_used_at + ttl``."""
        expires_at = self.expires_at
        if expires_at is None:
            return False
        return as_utc(reference or utcnow()) > expires_at

    def touch(self, now: datetime | None = None) -> datetime:
        """Restart the expiry window from ``now``."""
        return self.observe(now or utcnow())

    def observe(self, timestamp: datetime) -> datetime:
        timestamp = as_utc(timestamp)
        if timestamp > self.last_used_at:
            self.last_used_at = timestamp
        return self.last_used_at
