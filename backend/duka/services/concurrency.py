# Overview: Transaction helpers shared by every service that writes stock, sales or debts.

from __future__ import annotations

from sqlalchemy import text

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    SQLite writers are serialized by begin_immediate() instead.
    """
    return query.with_for_update()


def begin_immediate() -> None:
    """
    Take the SQLite write lock up front so the read-check-write sequence that
    follows cannot interleave with another writer.

    Only issued when the driver has no transaction open yet; pysqlite opens one
    implicitly before the first DML statement, after which the lock is held anyway.
    """
    if db.engine.dialect.name != "sqlite":
        return
    dbapi_conn = db.session.connection().connection.dbapi_connection
    if not dbapi_conn.in_transaction:
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_atomic(func):
    """
    Run func() as one transaction: commit on success, roll back on any error.

    Errors propagate unchanged. There is no retry; a conflicting writer
    surfaces as an error the caller can resubmit.
    """
    try:
        begin_immediate()
        result = func()
        db.session.commit()
        return result
    except Exception:
        db.session.rollback()
        raise
