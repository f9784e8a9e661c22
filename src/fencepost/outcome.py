"""Result-or-error values returned by the safe calling convention."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from .errors import ErrorCode, ErrorInfo

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Outcome(Generic[T]):
    """Either a success payload or a classified error."""

    value: T | None = None
    error: ErrorInfo | None = None

    @classmethod
    def success(cls, value: T) -> Outcome[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: ErrorInfo) -> Outcome[T]:
        return cls(error=error)

    @classmethod
    def fail(cls, code: ErrorCode, message: str, debug_info: str | None = None) -> Outcome[T]:
        return cls(error=ErrorInfo(code=code, message=message, debug_info=debug_info))

    @property
    def is_success(self) -> bool:
        return self.error is None

    @property
    def is_failure(self) -> bool:
        return self.error is not None

    def unwrap(self) -> T:
        """Return the payload or raise the error as a ``FencepostError``."""

        if self.error is not None:
            raise self.error.to_exception()
        return self.value  # type: ignore[return-value]


__all__ = ["Outcome"]
