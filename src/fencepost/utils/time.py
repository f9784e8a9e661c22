"""Time-related helpers."""

from __future__ import annotations

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Return a timezone-aware UTC timestamp at BSON (millisecond) precision."""

    return truncate_to_millis(datetime.now(UTC))


def ensure_utc(value: datetime) -> datetime:
    """Normalize a datetime to UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def truncate_to_millis(value: datetime) -> datetime:
    # MongoDB stores datetimes with millisecond resolution.
    return value.replace(microsecond=value.microsecond // 1000 * 1000)
