"""Classification of raw store responses into outcomes."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from pymongo.errors import DuplicateKeyError, OperationFailure, PyMongoError
from pymongo.results import UpdateResult

from fencepost.errors import ErrorCode, ErrorInfo
from fencepost.outcome import Outcome

T = TypeVar("T")

logger = logging.getLogger(__name__)

# Server error raised when a replacement would change the immutable ``_id``.
IMMUTABLE_FIELD_CODE = 66


def interpret_replace_result(result: UpdateResult) -> ErrorInfo | None:
    """Return the error described by a replace acknowledgment, if any."""

    if not result.acknowledged:
        return ErrorInfo(
            code=ErrorCode.DATABASE_TRANSACTION_ERROR,
            message="Failed to update the data",
            debug_info=repr(result),
        )
    if result.upserted_id is None and result.matched_count == 0 and result.modified_count == 0:
        return ErrorInfo(code=ErrorCode.RACE_CONDITION, message="Data has changed externally")
    return None


def interpret_update_result(data: T, result: UpdateResult) -> Outcome[T]:
    error = interpret_replace_result(result)
    return Outcome.success(data) if error is None else Outcome.failure(error)


def interpret_database_error(exc: PyMongoError) -> ErrorInfo:
    """Map a driver exception onto the error taxonomy without losing its detail."""

    if isinstance(exc, DuplicateKeyError):
        return ErrorInfo(
            code=ErrorCode.DUPLICATION,
            message="Data already exists",
            debug_info=str(exc),
        )
    if isinstance(exc, OperationFailure) and exc.code == IMMUTABLE_FIELD_CODE:
        return ErrorInfo(
            code=ErrorCode.DATABASE_TRANSACTION_ERROR,
            message="Document identity would be overwritten",
            debug_info=str(exc),
        )
    return ErrorInfo(
        code=ErrorCode.DATABASE_TRANSACTION_ERROR,
        message="Database operation failed",
        debug_info=f"{type(exc).__name__}: {exc}",
    )


async def try_execute(
    operation: Callable[[], Awaitable[Outcome[T]]],
    *,
    description: str = "operation",
) -> Outcome[T]:
    """Await ``operation`` and turn driver failures into a failed outcome."""

    try:
        return await operation()
    except PyMongoError as exc:
        error = interpret_database_error(exc)
        logger.warning("%s failed with %s: %s", description, error.code, exc)
        return Outcome.failure(error)


__all__ = [
    "IMMUTABLE_FIELD_CODE",
    "interpret_database_error",
    "interpret_replace_result",
    "interpret_update_result",
    "try_execute",
]
