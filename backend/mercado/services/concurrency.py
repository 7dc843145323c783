# Overview: Row-locking helper shared by the stock, points and operator procedures.

from __future__ import annotations


def lock_for_update(query):
    """
    Apply row-level locking for read-modify-write procedures
    (stock decrement, point accrual, operator deletion).

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()
