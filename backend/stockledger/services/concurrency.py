# Overview: Row locking and retry helpers for read-modify-write units of work.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError


# Lock waits, deadlocks ("database is locked" on SQLite) and optimistic
# version conflicts. Nothing has been committed when these surface.
RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the item's
    version_id column catches the conflict at UPDATE time instead.
    populate_existing() makes a retried read see the fresh row, not the
    identity-map copy from the failed attempt.
    """
    return query.with_for_update().populate_existing()


def run_with_retry(func, *, session, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a unit of work with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). `func` must be safe to re-run from the
    top: it is only retried after its own rollback, never after commit.
    """
    attempts = max(1, attempts)
    for attempt in range(attempts):
        try:
            return func()
        except RETRYABLE_ERRORS:
            session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
