# Overview: Service-layer operations for concurrency; row locks, retries and the atomic unit of work.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts).
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def run_in_transaction(func, *, attempts: int | None = None):
    """
    Run `func` as one unit of work and commit it.

    Any exception rolls back everything `func` flushed (stock movements,
    balance increments, document rows) before it propagates, so a failed
    posting never leaves a partial effect behind. Lock/deadlock failures
    are retried with a fresh transaction.
    """
    if attempts is None:
        attempts = current_app.config.get("POSTING_RETRY_ATTEMPTS", 3)

    def _op():
        try:
            result = func()
            db.session.commit()
            return result
        except Exception:
            db.session.rollback()
            raise

    return run_with_retry(_op, attempts=attempts)
