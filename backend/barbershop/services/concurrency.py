# Overview: Locking, retry and compare-and-set helpers shared by the write paths.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; version_id columns cover it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Business errors propagate immediately.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Concurrent write conflict (attempt %s/%s): %s", attempt + 1, attempts, exc
            )
            time.sleep(backoff_base * (2 ** attempt))


def compare_and_set(model, row_id: int, column, expected, values: dict) -> bool:
    """
    Atomic conditional update: UPDATE ... SET values WHERE id = row_id AND column = expected.

    Returns True if exactly this caller won the transition. Used for state
    transitions that must happen at most once (e.g. open -> closed).
    """
    updated = (
        db.session.query(model)
        .filter(model.id == row_id, column == expected)
        .update(values, synchronize_session=False)
    )
    return updated == 1
