"""Lock-aware retry for SQLite store transactions."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from collections.abc import Awaitable, Callable
from typing import TypeVar

from notifier.errors import PersistenceError
from notifier.shared.constants import DB_RETRY_ATTEMPTS, DB_RETRY_BASE_DELAY

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_lock_error(exc: sqlite3.Error) -> bool:
    return (
        isinstance(exc, sqlite3.OperationalError)
        and "database is locked" in str(exc).lower()
    )


async def with_lock_retry(
    operation: Callable[[], Awaitable[T]],
    target: str,
    attempts: int = DB_RETRY_ATTEMPTS,
    base_delay: float = DB_RETRY_BASE_DELAY,
) -> T:
    """
    Run a store transaction, retrying it while the database is locked.

    The whole transaction is re-run on each attempt, so ``operation`` must
    open its own connection and commit before returning.

    Args:
        operation: Coroutine function performing one full transaction.
        target: Store description used in logs and errors.
        attempts: Maximum attempts.
        base_delay: Linear backoff step in seconds.

    Returns:
        Result of ``operation``.

    Raises:
        PersistenceError: Non-lock failure, or still locked after the last
            attempt.
    """
    attempts = max(1, attempts)
    for attempt in range(attempts):
        try:
            return await operation()
        except sqlite3.Error as exc:
            if is_lock_error(exc) and attempt < attempts - 1:
                logger.debug(
                    "%s is locked, retry %d/%d", target, attempt + 1, attempts - 1
                )
                await asyncio.sleep(base_delay * (attempt + 1))
                continue
            raise PersistenceError(f"SQLite store {target} failed: {exc}") from exc
        except OSError as exc:
            raise PersistenceError(f"SQLite store {target} failed: {exc}") from exc
    raise PersistenceError(f"SQLite store {target} failed")
