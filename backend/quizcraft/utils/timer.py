"""Countdown arithmetic for timed attempts.

Remaining time is always derived from the absolute start timestamp
(`remaining = duration - (now - started_at)`) and never accumulated
tick by tick.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def elapsed_seconds(started_at: datetime, now: datetime | None = None) -> float:
    now = ensure_utc(now) or datetime.now(timezone.utc)
    return max(0.0, (now - ensure_utc(started_at)).total_seconds())


def remaining_seconds(started_at: datetime, duration_seconds: int, now: datetime | None = None) -> int:
    """Whole seconds left on a countdown of `duration_seconds`, clamped at 0."""
    left = duration_seconds - elapsed_seconds(started_at, now)
    return max(0, int(left))


def deadline(started_at: datetime, duration_seconds: int) -> datetime:
    return ensure_utc(started_at) + timedelta(seconds=duration_seconds)


def is_past_deadline(started_at: datetime, duration_seconds: int, grace_seconds: int = 0, now: datetime | None = None) -> bool:
    now = ensure_utc(now) or datetime.now(timezone.utc)
    return now > deadline(started_at, duration_seconds + grace_seconds)
