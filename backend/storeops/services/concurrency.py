# Overview: Service-layer helpers for transactional writes: row locks, write transactions, retry.

from __future__ import annotations

import time

from flask import current_app, has_app_context
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError


RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def begin_write(session) -> None:
    """
    Open the transaction as a writer up front.

    On SQLite this issues BEGIN IMMEDIATE so two writers serialize at the
    start instead of failing at lock upgrade. Other dialects rely on
    lock_for_update and the optimistic version columns.
    """
    if session.get_bind().dialect.name != "sqlite":
        return
    dbapi_conn = session.connection().connection.dbapi_connection
    if not getattr(dbapi_conn, "in_transaction", True):
        session.execute(text("BEGIN IMMEDIATE"))


def _retry_settings(attempts, backoff_base):
    if has_app_context():
        attempts = attempts or current_app.config.get("TRANSACTION_RETRY_ATTEMPTS", 3)
        if backoff_base is None:
            backoff_base = current_app.config.get("TRANSACTION_RETRY_BACKOFF", 0.1)
    return attempts or 3, 0.1 if backoff_base is None else backoff_base


def run_with_retry(
    func,
    *,
    session,
    attempts: int | None = None,
    backoff_base: float | None = None,
    retry_on: tuple = (),
):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts), plus any extra `retry_on` types.
    Every other exception rolls the session back and propagates.
    """
    attempts, backoff_base = _retry_settings(attempts, backoff_base)
    retryable = RETRYABLE_ERRORS + tuple(retry_on)
    for attempt in range(attempts):
        try:
            return func()
        except retryable:
            session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            session.rollback()
            raise
