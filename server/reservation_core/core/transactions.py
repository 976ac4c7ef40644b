"""Serializable transaction runner with bounded retries and a per-attempt timeout."""

import asyncio
import random
from typing import Any, Awaitable, Callable, TypeVar

from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .config import settings
from .exceptions import ProblemDetailsException, StorageError, TransactionTimeoutError
from .observability import get_logger, metrics_collector

logger = get_logger(__name__)

T = TypeVar("T")

# serialization_failure, deadlock_detected, lock_not_available
RETRYABLE_SQLSTATES = {"40001", "40P01", "55P03"}
RETRYABLE_MESSAGES = ("database is locked", "could not serialize", "deadlock")


class RetryableConflict(Exception):
    """Raised inside an operation when it lost a race and should run again from scratch."""


def _sqlstate(error: DBAPIError) -> str | None:
    orig = error.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def is_retryable(error: BaseException) -> bool:
    """Return True for errors a fresh attempt of the same transaction may not hit."""
    if isinstance(error, (RetryableConflict, asyncio.TimeoutError)):
        return True
    if isinstance(error, DBAPIError):
        if error.connection_invalidated:
            return True
        if _sqlstate(error) in RETRYABLE_SQLSTATES:
            return True
        message = str(error.orig or error).lower()
        return any(fragment in message for fragment in RETRYABLE_MESSAGES)
    return False


async def _begin_serializable(session: AsyncSession) -> None:
    # SQLite serializes writers with its database lock and rejects the option.
    if session.bind.dialect.name != "sqlite":
        await session.connection(execution_options={"isolation_level": "SERIALIZABLE"})


async def run_in_transaction(
    session_factory: async_sessionmaker[AsyncSession],
    operation: Callable[..., Awaitable[T]],
    *args: Any,
    name: str | None = None,
    timeout: float | None = None,
    attempts: int | None = None,
    backoff: float | None = None,
) -> T:
    """
    Run ``operation(session, *args)`` in its own serializable transaction.

    Each attempt gets a fresh session and is bounded by ``timeout`` seconds.
    Serialization failures, lock timeouts and ``RetryableConflict`` are retried
    with exponential backoff plus jitter; once attempts run out the caller gets
    ``TransactionTimeoutError``. Domain errors roll back and propagate as is.
    Any other storage failure becomes ``StorageError``.

    Args:
        session_factory: Factory producing one session per attempt
        operation: Coroutine function receiving the session first
        name: Operation name used in logs and metrics
        timeout: Seconds allowed for one attempt
        attempts: Maximum number of attempts
        backoff: Base delay between attempts in seconds

    Returns:
        Whatever ``operation`` returns once committed
    """
    name = name or getattr(operation, "__name__", "transaction")
    timeout = settings.transaction_timeout_seconds if timeout is None else timeout
    attempts = settings.transaction_max_attempts if attempts is None else attempts
    backoff = settings.transaction_retry_backoff_seconds if backoff is None else backoff

    for attempt in range(1, attempts + 1):
        async with session_factory() as session:
            try:
                await _begin_serializable(session)
                result = await asyncio.wait_for(operation(session, *args), timeout)
                await session.commit()
                return result
            except ProblemDetailsException:
                await session.rollback()
                raise
            except (DBAPIError, RetryableConflict, asyncio.TimeoutError) as error:
                await session.rollback()
                if not is_retryable(error):
                    logger.error("Transaction failed", operation=name, error=str(error))
                    raise StorageError(name) from error
                reason = type(error).__name__
                metrics_collector.record_transaction_retry(name, reason)
                if attempt == attempts:
                    logger.warning(
                        "Transaction retries exhausted",
                        operation=name,
                        attempts=attempts,
                        reason=reason,
                    )
                    raise TransactionTimeoutError(name, attempts) from error
                delay = backoff * 2 ** (attempt - 1) + random.uniform(0, backoff)
                logger.info(
                    "Retrying transaction",
                    operation=name,
                    attempt=attempt,
                    reason=reason,
                    delay_seconds=round(delay, 3),
                )
            except SQLAlchemyError as error:
                await session.rollback()
                logger.error("Transaction failed", operation=name, error=str(error))
                raise StorageError(name) from error
        await asyncio.sleep(delay)

    raise TransactionTimeoutError(name, attempts)
