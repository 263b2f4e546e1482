# Overview: Transaction and row-locking helpers shared by the mutating services.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_in_transaction(func):
    """
    Execute `func` as one unit of work.

    Commits when `func` returns, rolls back and re-raises on any exception so
    that a failed multi-row operation leaves nothing behind. No retries: a
    concurrency failure surfaces to the caller unchanged. Integrity violations
    from the store (duplicate plot numbers, double binding of a plot) surface
    as ConflictError.
    """
    try:
        result = func()
        db.session.commit()
        return result
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError(f"Conflicting write rejected by the database: {exc.orig}") from exc
    except Exception:
        db.session.rollback()
        raise
