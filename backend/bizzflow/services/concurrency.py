# Overview: Row locking and retry helpers for read-modify-write operations.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    The version_id column on the locked models still catches lost updates.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). func must re-read whatever it validates,
    so every attempt checks its preconditions against fresh state.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            logger.warning(
                "Concurrent update conflict (attempt %d/%d): %s",
                attempt + 1, attempts, exc.__class__.__name__,
            )
            time.sleep(backoff_base * (2 ** attempt))
