# Overview: Row locking and all-or-nothing units of work for stock mutations.

from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConflictError, InternalFailure


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    On SQLite the version_id column on InventoryItem still rejects a stale write.
    """
    return query.with_for_update()


@contextmanager
def atomic(session):
    """
    Run the body as one unit of work: commit on success, roll back on any error.

    - Domain errors (PharmacyError subclasses) propagate unchanged after rollback.
    - A concurrent writer winning the version check surfaces as ConflictError.
    - Any other SQLAlchemy error is wrapped in InternalFailure.

    No retry happens here; retrying is the caller's decision.
    """
    try:
        yield session
        session.commit()
    except StaleDataError as exc:
        session.rollback()
        raise ConflictError("item was modified concurrently; retry the request") from exc
    except SQLAlchemyError as exc:
        session.rollback()
        raise InternalFailure("persistence failure; no changes were applied") from exc
    except BaseException:
        session.rollback()
        raise
