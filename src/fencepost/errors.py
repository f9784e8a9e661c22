"""Error taxonomy shared by outcomes and raised exceptions."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class ErrorCode(StrEnum):
    """Coarse classification of data-access failures."""

    NOT_FOUND = "not-found"
    RACE_CONDITION = "race-condition"
    DUPLICATION = "duplication"
    DATABASE_TRANSACTION_ERROR = "database-transaction-error"
    MISSING_CONFIGURATION = "missing-configuration"
    INVALID_REQUEST = "invalid-request"


class ErrorInfo(BaseModel):
    """Classified failure carried by a failed outcome."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    code: ErrorCode
    message: str
    debug_info: str | None = None

    def to_exception(self) -> FencepostError:
        error_type = _ERROR_TYPES.get(self.code, FencepostError)
        return error_type(self.message, code=self.code, debug_info=self.debug_info)


class FencepostError(RuntimeError):
    """Base class for every error raised by the data-access layer."""

    default_code = ErrorCode.DATABASE_TRANSACTION_ERROR

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        debug_info: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.debug_info = debug_info

    @property
    def info(self) -> ErrorInfo:
        return ErrorInfo(code=self.code, message=self.message, debug_info=self.debug_info)

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class NotFoundError(FencepostError):
    """Raised when a requested document is missing."""

    default_code = ErrorCode.NOT_FOUND


class ConcurrencyError(FencepostError):
    """Raised when optimistic concurrency fails."""

    default_code = ErrorCode.RACE_CONDITION


class DuplicationError(FencepostError):
    """Raised when an insert collides with an existing identity or unique index."""

    default_code = ErrorCode.DUPLICATION


class TransactionError(FencepostError):
    """Raised when the database rejects or fails to acknowledge an operation."""

    default_code = ErrorCode.DATABASE_TRANSACTION_ERROR


class MissingConfigurationError(FencepostError):
    """Raised when no connection settings can be resolved."""

    default_code = ErrorCode.MISSING_CONFIGURATION


class InvalidRequestError(FencepostError):
    """Raised when caller input cannot be used."""

    default_code = ErrorCode.INVALID_REQUEST


_ERROR_TYPES: dict[ErrorCode, type[FencepostError]] = {
    ErrorCode.NOT_FOUND: NotFoundError,
    ErrorCode.RACE_CONDITION: ConcurrencyError,
    ErrorCode.DUPLICATION: DuplicationError,
    ErrorCode.DATABASE_TRANSACTION_ERROR: TransactionError,
    ErrorCode.MISSING_CONFIGURATION: MissingConfigurationError,
    ErrorCode.INVALID_REQUEST: InvalidRequestError,
}


__all__ = [
    "ConcurrencyError",
    "DuplicationError",
    "ErrorCode",
    "ErrorInfo",
    "FencepostError",
    "InvalidRequestError",
    "MissingConfigurationError",
    "NotFoundError",
    "TransactionError",
]
