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

from coreason_sandbox_manager.ttl import TTLTracker, as_utc

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def test_no_ttl_never_expires() -> None:
    tracker = TTLTracker(created_at=T0)
    assert tracker.expires_at is None
    assert not tracker.is_expired(T0 + timedelta(days=365))


def test_expiry_is_strict() -> None:
    tracker = TTLTracker(created_at=T0, ttl_seconds=10)
    assert tracker.expires_at == T0 + timedelta(seconds=10)
    assert not tracker.is_expired(T0 + timedelta(seconds=10))
    assert tracker.is_expired(T0 + timedelta(seconds=10, microseconds=1))


def test_touch_restarts_window() -> None:
    tracker = TTLTracker(created_at=T0, ttl_seconds=10)
    tracker.touch(T0 + timedelta(seconds=8))
    assert not tracker.is_expired(T0 + timedelta(seconds=15))
    assert tracker.is_expired(T0 + timedelta(seconds=19))


def test_last_used_never_moves_backwards() -> None:
    tracker = TTLTracker(created_at=T0)
    later = T0 + timedelta(minutes=5)
    tracker.observe(later)
    assert tracker.observe(T0 + timedelta(minutes=1)) == later
    assert tracker.last_used_at == later


def test_last_used_not_before_creation() -> None:
    tracker = TTLTracker(created_at=T0, last_used_at=T0 - timedelta(hours=1))
    assert tracker.last_used_at == T0


def test_naive_datetimes_are_utc() -> None:
    naive = datetime(2025, 1, 1)
    assert as_utc(naive) == T0
    tracker = TTLTracker(created_at=naive, ttl_seconds=1)
    assert tracker.is_expired(datetime(2025, 1, 1, 0, 0, 2))
