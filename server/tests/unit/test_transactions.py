"""Unit tests for the transaction runner."""

import asyncio

import pytest
from sqlalchemy import select
from sqlalchemy.exc import InvalidRequestError, OperationalError

from reservation_core.core.exceptions import NotFoundError, StorageError, TransactionTimeoutError
from reservation_core.core.transactions import RetryableConflict, is_retryable, run_in_transaction
from reservation_core.models.sequence import ReservationSequence


def test_is_retryable():
    assert is_retryable(RetryableConflict("lost race"))
    assert is_retryable(asyncio.TimeoutError())
    assert is_retryable(OperationalError("UPDATE", {}, Exception("database is locked")))
    assert not is_retryable(OperationalError("UPDATE", {}, Exception("disk I/O error")))
    assert not is_retryable(ValueError("nope"))


@pytest.mark.asyncio
async def test_commits_result(session_factory):
    async def operation(session):
        session.add(ReservationSequence(current_number=7))
        return "done"

    assert await run_in_transaction(session_factory, operation, backoff=0) == "done"

    async with session_factory() as session:
        counter = await session.scalar(select(ReservationSequence))
    assert counter.current_number == 7


@pytest.mark.asyncio
async def test_retries_conflicts_then_succeeds(session_factory):
    calls = []

    async def operation(session, value):
        calls.append(value)
        if len(calls) < 3:
            raise RetryableConflict("lost race")
        return value

    result = await run_in_transaction(session_factory, operation, "ok", attempts=5, backoff=0)

    assert result == "ok"
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_gives_up_after_attempts(session_factory):
    calls = []

    async def operation(session):
        calls.append(1)
        raise RetryableConflict("lost race")

    with pytest.raises(TransactionTimeoutError) as exc_info:
        await run_in_transaction(session_factory, operation, name="always_conflicts", attempts=3, backoff=0)

    assert len(calls) == 3
    assert exc_info.value.status_code == 503
    assert exc_info.value.headers["Retry-After"] == "1"
    assert exc_info.value.problem_details["retryable"] is True


@pytest.mark.asyncio
async def test_times_out_slow_attempts(session_factory):
    async def operation(session):
        await asyncio.sleep(5)

    with pytest.raises(TransactionTimeoutError):
        await run_in_transaction(session_factory, operation, timeout=0.05, attempts=2, backoff=0)


@pytest.mark.asyncio
async def test_domain_errors_roll_back_and_propagate(session_factory):
    calls = []

    async def operation(session):
        calls.append(1)
        session.add(ReservationSequence(current_number=3))
        await session.flush()
        raise NotFoundError(resource_type="booking", resource_id="MXi-0001")

    with pytest.raises(NotFoundError):
        await run_in_transaction(session_factory, operation, attempts=3, backoff=0)

    assert len(calls) == 1
    async with session_factory() as session:
        assert await session.scalar(select(ReservationSequence)) is None


@pytest.mark.asyncio
async def test_other_storage_errors_become_storage_error(session_factory):
    async def operation(session):
        raise InvalidRequestError("broken mapping")

    with pytest.raises(StorageError) as exc_info:
        await run_in_transaction(session_factory, operation, name="broken", backoff=0)
    assert exc_info.value.problem_details["operation"] == "broken"
