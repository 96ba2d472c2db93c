# Overview: Row locking and retry helpers shared by the stock and checkout services.

from __future__ import annotations

import logging
import time

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for stock-changing operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write() covers it there.
    """
    return query.with_for_update()


def begin_write() -> None:
    """
    Take the database write lock up front on SQLite.

    Without this two SQLite readers can both read the same stock level and
    the second writer fails late with "database is locked".
    """
    if db.engine.dialect.name != "sqlite":
        return
    raw = db.session.connection().connection.dbapi_connection
    # an earlier flush already opened the write transaction
    if getattr(raw, "in_transaction", False):
        return
    db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a unit of work, retrying on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic version_id conflicts). The session is rolled back before each
    retry so func() always starts from fresh rows.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                logger.error("Giving up after %d attempts: %s", attempts, exc)
                raise
            delay = backoff_base * (2 ** attempt)
            logger.warning("Concurrent update conflict (attempt %d/%d), retrying in %.2fs", attempt + 1, attempts, delay)
            time.sleep(delay)
