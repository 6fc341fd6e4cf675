# Overview: Row locking and lock-conflict retry for the order submission transaction.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    SELECT ... FOR UPDATE on the rows the query returns.

    SQLite has no row locks and drops the clause; its single writer lock
    plus the conditional stock UPDATE keep submissions consistent there.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, label: str = "transaction"):
    """
    Run func (a complete transaction) and re-run it on lock conflicts.

    Each failed attempt is rolled back first, so the next one starts from
    committed state. The last failure propagates.
    """
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt >= attempts:
                raise
            current_app.logger.warning(
                "%s hit a lock conflict (attempt %d/%d): %s", label, attempt, attempts, exc.__class__.__name__
            )
            time.sleep(backoff_base * (2 ** (attempt - 1)))
