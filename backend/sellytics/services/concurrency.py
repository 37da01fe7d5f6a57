# Overview: Row locking and caller-side retry helpers.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import PartialFailure, PersistenceError

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical reads.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def _is_retryable(exc: Exception) -> bool:
    if isinstance(exc, PartialFailure):
        return False
    if isinstance(exc, PersistenceError):
        return exc.transient
    return isinstance(exc, (OperationalError, StaleDataError))


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute an operation with retry on transient storage failures.

    The sales core never calls this itself. Only wrap operations that are
    safe to repeat when nothing was applied (restock, debt payments).
    """
    for attempt in range(attempts):
        try:
            return func()
        except Exception as exc:
            if not _is_retryable(exc) or attempt >= attempts - 1:
                raise
            delay = backoff_base * (2 ** attempt)
            logger.warning("Transient storage failure (attempt %s/%s), retrying in %.2fs: %s",
                           attempt + 1, attempts, delay, exc)
            time.sleep(delay)
