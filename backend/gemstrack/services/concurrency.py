# Overview: Service-layer operations for concurrency; transaction boundaries and retry on conflicts.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import ConflictError, PersistenceError


RETRY_EXHAUSTED_MESSAGE = "operation failed, please retry"


def begin_write_transaction() -> None:
    """
    Open the transaction for a read-then-write business operation.

    SQLite: BEGIN IMMEDIATE takes the write lock up front so two terminals
    cannot both read a row and then race to write it. Other databases rely
    on the version_id columns (optimistic locking) instead.

    Rows loaded before this point (prechecks, cart lookups) are expired so
    the read phase sees committed state.
    """
    db.session.expire_all()
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def _is_contention(exc: Exception) -> bool:
    if isinstance(exc, StaleDataError):
        return True
    message = str(getattr(exc, "orig", exc)).lower()
    return "locked" in message or "deadlock" in message or "could not serialize" in message


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute one business transaction with retry on concurrency-related failures.

    - StaleDataError (a row read in this transaction changed) and
      OperationalError (locks, deadlocks) roll back and re-run func from the top
    - Any other exception rolls back and propagates unchanged
    - Exhausted contention surfaces as ConflictError, anything else the
      database raised as PersistenceError

    func must have no side effects outside the session before it commits.
    """
    config = current_app.config
    if attempts is None:
        attempts = config.get("TRANSACTION_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = config.get("TRANSACTION_RETRY_BACKOFF", 0.1)
    attempts = max(1, attempts)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                if _is_contention(exc):
                    current_app.logger.warning("Transaction gave up after %d attempts: %s", attempts, exc)
                    raise ConflictError(RETRY_EXHAUSTED_MESSAGE, {"attempts": attempts}) from exc
                current_app.logger.error("Database unavailable: %s", exc)
                raise PersistenceError("database unavailable", {"attempts": attempts}) from exc
            current_app.logger.warning(
                "Transaction conflict (attempt %d/%d), retrying: %s", attempt + 1, attempts, exc
            )
            time.sleep(backoff_base * (2 ** attempt))
        except DBAPIError as exc:
            db.session.rollback()
            if exc.connection_invalidated:
                raise PersistenceError("database connection lost") from exc
            raise
        except Exception:
            db.session.rollback()
            raise
