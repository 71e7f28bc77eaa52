# Overview: Transaction boundary for ledger operations; one unit of work per call.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_in_transaction(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run `func` as one unit of work and commit everything it staged.

    Stock, customer balance, loyalty points and the sale row are written
    through the same session, so they land together or not at all. Any
    exception rolls the session back before propagating. OperationalError
    (locks, deadlocks) and StaleDataError (version_id conflicts) are
    retried with exponential backoff.
    """
    for attempt in range(attempts):
        try:
            result = func()
            db.session.commit()
            return result
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
