"""Bounded retry with backoff for transient failures."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import DBAPIError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# SQLSTATE codes for serialization failure and deadlock
TRANSIENT_SQLSTATES = frozenset({"40001", "40P01"})


def exponential_backoff(
    base: float = 0.05,
    factor: float = 2.0,
    max_delay: float = 2.0,
) -> Callable[[int], float]:
    """
    Build a backoff function returning the delay in seconds after a failed attempt.

    Attempt numbers start at 1, so the default yields 0.05s, 0.1s, 0.2s, ...
    """

    def delay(attempt: int) -> float:
        return min(max_delay, base * factor ** (attempt - 1))

    return delay


async def retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    backoff: Callable[[int], float] = exponential_backoff(),
    *,
    retry_on: Callable[[BaseException], bool] = lambda exc: True,
    timeout: Optional[float] = None,
) -> T:
    """
    Run ``operation`` until it succeeds or ``max_attempts`` is exhausted.

    Args:
        operation: Zero-argument coroutine function; called once per attempt
        max_attempts: Upper bound on attempts (at least 1)
        backoff: Maps the failed attempt number to a sleep in seconds
        retry_on: Decides whether a failure is worth another attempt;
            failures it rejects propagate immediately
        timeout: Optional per-attempt time limit in seconds. A timed out
            attempt counts as a retryable failure.

    Returns:
        Result of the first successful attempt

    Raises:
        The last failure once attempts are exhausted, or the first
        non-retryable failure.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for attempt in range(1, max_attempts + 1):
        try:
            if timeout is None:
                return await operation()
            return await asyncio.wait_for(operation(), timeout=timeout)
        except asyncio.TimeoutError as e:
            failure: BaseException = e
            retryable = True
        except Exception as e:
            failure = e
            retryable = retry_on(e)

        if not retryable or attempt == max_attempts:
            raise failure

        delay = backoff(attempt)
        logger.warning(
            "Attempt failed, retrying",
            extra={
                "attempt": attempt,
                "max_attempts": max_attempts,
                "delay_seconds": delay,
                "error": str(failure),
            }
        )
        await asyncio.sleep(delay)

    raise AssertionError("unreachable")


def is_transient_db_error(exc: BaseException) -> bool:
    """True for database errors where re-running the same transaction is safe."""
    if not isinstance(exc, DBAPIError):
        return False
    if exc.connection_invalidated:
        return True

    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in TRANSIENT_SQLSTATES:
        return True

    message = str(orig).lower()
    return "database is locked" in message or "could not serialize access" in message
