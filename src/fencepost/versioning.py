"""Version advancement for optimistic concurrency."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, TypeVar

from fencepost.models import CanAdvanceVersion
from fencepost.utils.time import ensure_utc, truncate_to_millis, utc_now

T = TypeVar("T")


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock UTC time."""

    def now(self) -> datetime:
        return utc_now()


@dataclass(frozen=True, slots=True)
class FixedClock:
    """Clock frozen at a single instant, for deterministic tests."""

    at: datetime

    def now(self) -> datetime:
        return truncate_to_millis(ensure_utc(self.at))


SYSTEM_CLOCK = SystemClock()


def advance_version(
    entity: CanAdvanceVersion[T],
    clock: Clock | None = None,
    current: int | None = None,
) -> T:
    """Return ``entity`` at the next version, stamped with ``clock``'s time.

    The next version is ``current + 1`` when the stored version is known,
    otherwise ``entity.version + 1``.
    """

    base = entity.version if current is None else current
    return entity.with_version((clock or SYSTEM_CLOCK).now(), base + 1)


__all__ = ["Clock", "FixedClock", "SYSTEM_CLOCK", "SystemClock", "advance_version"]
