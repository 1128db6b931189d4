# Overview: Unit-of-work helpers; every workflow operation commits or rolls back as one.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    Stock writes do not depend on it: they go through a conditional UPDATE.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Any other exception rolls the session
    back and propagates unchanged, so domain errors are never retried.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise


def run_atomic(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run func() and commit its writes as one transaction.

    func must not commit; it may flush. A failure at any step discards every
    write made inside func.
    """
    def _op():
        result = func()
        db.session.commit()
        return result

    return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)
