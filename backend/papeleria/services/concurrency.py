# Overview: Unit-of-work helper shared by the commerce services.

from __future__ import annotations

from typing import Callable, TypeVar

from papeleria.extensions import db

T = TypeVar("T")


def run_in_transaction(func: Callable[..., T]) -> T:
    """
    Run ``func(session)`` as one atomic unit of work.

    Commits when func returns; on any exception the whole unit is rolled back
    and the exception propagates unchanged. No retry is attempted: business
    rule failures are final and callers resubmit explicitly.

    Serialization between writers comes from guarded single-statement
    UPDATEs (stock, register status) rather than SELECT ... FOR UPDATE,
    which SQLite ignores. The first such UPDATE takes the write lock for the
    rest of the unit.
    """
    session = db.session
    try:
        result = func(session)
        session.commit()
    except Exception:
        session.rollback()
        raise
    return result
