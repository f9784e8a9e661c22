from __future__ import annotations

import asyncio

import pytest
from pymongo.errors import DuplicateKeyError, OperationFailure, WriteError
from pymongo.results import UpdateResult

from fencepost import (
    ConcurrencyError,
    ErrorCode,
    ErrorInfo,
    FencepostError,
    NotFoundError,
    Outcome,
    TransactionError,
)
from fencepost.results import (
    IMMUTABLE_FIELD_CODE,
    interpret_database_error,
    interpret_replace_result,
    interpret_update_result,
    try_execute,
)


def _result(matched: int, modified: int, upserted: object = None, acknowledged: bool = True) -> UpdateResult:
    raw: dict[str, object] = {"n": matched, "nModified": modified, "ok": 1.0}
    if upserted is not None:
        raw["upserted"] = upserted
        raw["n"] = 1
    return UpdateResult(raw, acknowledged)


def test_replace_result_classification() -> None:
    assert interpret_replace_result(_result(1, 1)) is None
    assert interpret_replace_result(_result(1, 0)) is None
    assert interpret_replace_result(_result(0, 0, upserted="new-id")) is None

    race = interpret_replace_result(_result(0, 0))
    assert race is not None
    assert race.code is ErrorCode.RACE_CONDITION

    unacknowledged = interpret_replace_result(_result(0, 0, acknowledged=False))
    assert unacknowledged is not None
    assert unacknowledged.code is ErrorCode.DATABASE_TRANSACTION_ERROR


def test_update_result_returns_written_entity() -> None:
    assert interpret_update_result("entity", _result(1, 1)).value == "entity"
    assert interpret_update_result("entity", _result(0, 0)).is_failure


def test_database_errors_are_classified() -> None:
    duplicate = interpret_database_error(DuplicateKeyError("E11000 duplicate key", 11000))
    assert duplicate.code is ErrorCode.DUPLICATION
    assert "E11000" in (duplicate.debug_info or "")

    immutable = interpret_database_error(WriteError("_id altered", IMMUTABLE_FIELD_CODE))
    assert immutable.code is ErrorCode.DATABASE_TRANSACTION_ERROR
    assert immutable.message == "Document identity would be overwritten"

    other = interpret_database_error(OperationFailure("not primary", 10107))
    assert other.code is ErrorCode.DATABASE_TRANSACTION_ERROR
    assert other.debug_info is not None
    assert "not primary" in other.debug_info


def test_try_execute_only_absorbs_driver_errors() -> None:
    async def _driver_failure() -> Outcome[int]:
        raise OperationFailure("interrupted", 11601)

    async def _bug() -> Outcome[int]:
        raise KeyError("missing")

    outcome = asyncio.run(try_execute(_driver_failure, description="count"))
    assert outcome.error is not None
    assert outcome.error.code is ErrorCode.DATABASE_TRANSACTION_ERROR

    with pytest.raises(KeyError):
        asyncio.run(try_execute(_bug))


def test_outcome_unwrap_raises_matching_error_type() -> None:
    assert Outcome.success(5).unwrap() == 5
    assert Outcome.success(None).is_success

    with pytest.raises(NotFoundError):
        Outcome.fail(ErrorCode.NOT_FOUND, "Customer not found").unwrap()
    with pytest.raises(ConcurrencyError):
        Outcome.fail(ErrorCode.RACE_CONDITION, "Data has changed externally").unwrap()

    with pytest.raises(TransactionError) as excinfo:
        Outcome.failure(
            ErrorInfo(code=ErrorCode.DATABASE_TRANSACTION_ERROR, message="failed", debug_info="trace")
        ).unwrap()
    assert excinfo.value.debug_info == "trace"
    assert excinfo.value.info == ErrorInfo(
        code=ErrorCode.DATABASE_TRANSACTION_ERROR, message="failed", debug_info="trace"
    )


def test_error_defaults_and_rendering() -> None:
    error = FencepostError("something broke")
    assert error.code is ErrorCode.DATABASE_TRANSACTION_ERROR
    assert str(error) == "[database-transaction-error] something broke"
    assert isinstance(NotFoundError("x"), FencepostError)
    assert NotFoundError("x").code is ErrorCode.NOT_FOUND
