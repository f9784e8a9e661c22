"""Shared helpers."""

from .time import ensure_utc, truncate_to_millis, utc_now

__all__ = ["ensure_utc", "truncate_to_millis", "utc_now"]
