"""Unit tests for bounded retry with backoff."""

import asyncio

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from marketplace.core.retry import exponential_backoff, is_transient_db_error, retry


class FakeDriverError(Exception):
    def __init__(self, message: str, sqlstate: str | None = None):
        super().__init__(message)
        self.sqlstate = sqlstate


def no_wait(attempt: int) -> float:
    return 0


@pytest.mark.asyncio
async def test_returns_first_success():
    calls = 0

    async def operation():
        nonlocal calls
        calls += 1
        return "done"

    assert await retry(operation, max_attempts=3, backoff=no_wait) == "done"
    assert calls == 1


@pytest.mark.asyncio
async def test_retries_until_success():
    calls = 0

    async def operation():
        nonlocal calls
        calls += 1
        if calls < 3:
            raise ConnectionError("flaky")
        return calls

    assert await retry(operation, max_attempts=3, backoff=no_wait) == 3


@pytest.mark.asyncio
async def test_raises_last_error_when_attempts_exhausted():
    calls = 0

    async def operation():
        nonlocal calls
        calls += 1
        raise ConnectionError(f"failure {calls}")

    with pytest.raises(ConnectionError, match="failure 4"):
        await retry(operation, max_attempts=4, backoff=no_wait)
    assert calls == 4


@pytest.mark.asyncio
async def test_non_retryable_error_propagates_immediately():
    calls = 0

    async def operation():
        nonlocal calls
        calls += 1
        raise ValueError("business rule")

    with pytest.raises(ValueError):
        await retry(
            operation,
            max_attempts=5,
            backoff=no_wait,
            retry_on=lambda exc: isinstance(exc, ConnectionError),
        )
    assert calls == 1


@pytest.mark.asyncio
async def test_backoff_consulted_between_attempts():
    attempts_seen = []

    def backoff(attempt: int) -> float:
        attempts_seen.append(attempt)
        return 0

    async def operation():
        raise ConnectionError("down")

    with pytest.raises(ConnectionError):
        await retry(operation, max_attempts=3, backoff=backoff)

    # No backoff after the final attempt
    assert attempts_seen == [1, 2]


@pytest.mark.asyncio
async def test_timeout_per_attempt_is_retryable():
    calls = 0

    async def operation():
        nonlocal calls
        calls += 1
        if calls == 1:
            await asyncio.sleep(1)
        return "fast"

    assert await retry(operation, max_attempts=2, backoff=no_wait, timeout=0.01) == "fast"
    assert calls == 2


@pytest.mark.asyncio
async def test_rejects_zero_attempts():
    async def operation():
        return None

    with pytest.raises(ValueError):
        await retry(operation, max_attempts=0)


def test_exponential_backoff_is_capped():
    delay = exponential_backoff(base=0.5, factor=3, max_delay=2.0)
    assert delay(1) == 0.5
    assert delay(2) == 1.5
    assert delay(3) == 2.0
    assert delay(10) == 2.0


@pytest.mark.parametrize(
    "error, expected",
    [
        (OperationalError("INSERT", {}, FakeDriverError("database is locked")), True),
        (OperationalError("INSERT", {}, FakeDriverError("serialization failure", sqlstate="40001")), True),
        (OperationalError("INSERT", {}, FakeDriverError("deadlock detected", sqlstate="40P01")), True),
        (IntegrityError("INSERT", {}, FakeDriverError("CHECK constraint failed", sqlstate="23514")), False),
        (ValueError("not a database error"), False),
    ],
)
def test_is_transient_db_error(error, expected):
    assert is_transient_db_error(error) is expected
