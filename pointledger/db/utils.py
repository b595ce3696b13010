"""
Database utility functions and decorators.

Provides:
- ledger_transaction(): one bounded transaction with error translation
- with_conflict_retry: re-run a whole operation on TransactionConflict
- model_to_dict(): SQLAlchemy row to plain dict
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from functools import wraps
from typing import Any, AsyncGenerator, Callable, Optional, TypeVar

from sqlalchemy.exc import (
    DBAPIError,
    DisconnectionError,
    IntegrityError,
    InterfaceError,
    OperationalError,
)
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import (
    retry,
    stop_after_attempt,
    wait_random_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from pointledger.core.credits.config import get_ledger_config
from pointledger.core.credits.exceptions import PersistenceUnavailable, TransactionConflict
from .connection import db

logger = logging.getLogger(__name__)

T = TypeVar("T")

# serialization_failure, deadlock_detected, lock_not_available
CONFLICT_SQLSTATES = {"40001", "40P01", "55P03"}

CONFLICT_MESSAGES = (
    "database is locked",
    "could not serialize access",
    "deadlock detected",
    "could not obtain lock",
)


def _sqlstate(exc: DBAPIError) -> Optional[str]:
    orig = exc.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def is_conflict_error(exc: BaseException) -> bool:
    """Whether a driver error is transient lock contention."""
    if isinstance(exc, IntegrityError):
        # Two transactions racing to create the same lazily-created row
        return True
    if isinstance(exc, DBAPIError):
        if _sqlstate(exc) in CONFLICT_SQLSTATES:
            return True
        message = str(exc.orig).lower()
        return any(marker in message for marker in CONFLICT_MESSAGES)
    return False


def translate_db_error(exc: BaseException) -> BaseException:
    """Map SQLAlchemy/driver errors onto the ledger's error taxonomy."""
    if is_conflict_error(exc):
        return TransactionConflict(
            message="Ledger transaction conflicted with a concurrent update",
            details={"cause": type(exc).__name__},
        )
    if isinstance(exc, (OperationalError, InterfaceError, DisconnectionError, ConnectionError)):
        return PersistenceUnavailable(
            message="Ledger store is unavailable",
            details={"cause": type(exc).__name__},
        )
    return exc


@asynccontextmanager
async def ledger_transaction() -> AsyncGenerator[AsyncSession, None]:
    """
    Run one ledger transaction with a deadline.

    Everything executed in the block commits together or not at all. The
    block is cancelled and rolled back when the deadline passes.

    Usage:
        async with ledger_transaction() as session:
            balance = await session.scalar(select(...).with_for_update())

    Raises:
        TransactionConflict: Lock contention; safe to retry the operation
        PersistenceUnavailable: Store unreachable or deadline exceeded
    """
    timeout = get_ledger_config().transaction_timeout_seconds
    try:
        async with asyncio.timeout(timeout):
            async with db.session() as session:
                if session is None:
                    raise PersistenceUnavailable("Database is shutting down")
                yield session
    except TimeoutError:
        logger.error(f"Ledger transaction exceeded {timeout}s and was rolled back")
        raise PersistenceUnavailable(
            message="Ledger transaction timed out",
            details={"timeout_seconds": timeout},
        ) from None
    except (DBAPIError, DisconnectionError, ConnectionError) as e:
        translated = translate_db_error(e)
        if translated is e:
            raise
        if isinstance(translated, PersistenceUnavailable):
            logger.error(f"Ledger store error: {e}")
        raise translated from e


def create_conflict_retry(
    max_attempts: int = 5,
    min_wait: float = 0.05,
    max_wait: float = 1.0,
):
    """
    Create a tenacity retry decorator for ledger operations.

    Only TransactionConflict is retried; every other error surfaces on the
    first attempt.

    Args:
        max_attempts: Maximum number of attempts
        min_wait: Multiplier for the randomized exponential backoff (seconds)
        max_wait: Maximum wait time between attempts (seconds)
    """
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_random_exponential(multiplier=min_wait, max=max_wait),
        retry=retry_if_exception_type(TransactionConflict),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


def with_conflict_retry(func: Callable[..., T]) -> Callable[..., T]:
    """
    Decorator re-executing an async ledger operation on TransactionConflict.

    The whole function runs again from the beginning, so it must open its
    own transaction. Retry limits are read from LedgerConfig per call.

    Usage:
        @with_conflict_retry
        async def consume(...):
            async with ledger_transaction() as session:
                ...
    """
    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        config = get_ledger_config()

        @create_conflict_retry(
            max_attempts=config.max_conflict_retries,
            min_wait=config.conflict_retry_min_wait,
            max_wait=config.conflict_retry_max_wait,
        )
        async def inner():
            return await func(*args, **kwargs)

        return await inner()

    return wrapper


def model_to_dict(model: Any, exclude_none: bool = False) -> dict:
    """
    Convert SQLAlchemy model to dictionary.

    Args:
        model: SQLAlchemy model instance
        exclude_none: If True, exclude keys with None values
    """
    from sqlalchemy.inspection import inspect

    result = {}
    for column in inspect(model.__class__).columns:
        value = getattr(model, column.key)
        if isinstance(value, datetime):
            value = value.isoformat()
        if exclude_none and value is None:
            continue
        result[column.key] = value

    return result


__all__ = [
    "CONFLICT_SQLSTATES",
    "is_conflict_error",
    "translate_db_error",
    "ledger_transaction",
    "create_conflict_retry",
    "with_conflict_retry",
    "model_to_dict",
]
