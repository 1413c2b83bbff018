# Overview: Locking and retry helpers shared by the posting boundary.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from .exceptions import ConcurrencyConflictError

# Candidates for "someone else got there first"; see is_conflict_error()
CONFLICT_ERRORS = (OperationalError, StaleDataError)

# Serialization failure and deadlock (class 40), lock not available (55P03)
CONFLICT_SQLSTATES = frozenset({"40001", "40P01", "55P03"})

_CONFLICT_MESSAGES = (
    "database is locked",
    "database table is locked",
    "database is busy",
    "deadlock",
    "lock wait timeout",
    "could not serialize",
    "could not obtain lock",
)


def is_conflict_error(exc) -> bool:
    """
    True only for lost-update, lock-wait and serialization failures.

    Anything else, a missing table for instance, reaches the caller unchanged.
    """
    if isinstance(exc, StaleDataError):
        return True
    if not isinstance(exc, OperationalError):
        return False

    orig = getattr(exc, "orig", None)
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if sqlstate in CONFLICT_SQLSTATES:
        return True
    message = str(orig if orig is not None else exc).lower()
    return any(marker in message for marker in _CONFLICT_MESSAGES)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    Account.version_id still catches lost updates there.
    """
    return query.with_for_update()


def run_with_retry(
    func,
    *,
    attempts: int = 3,
    backoff_base: float = 0.1,
    max_backoff: float = 1.0,
    on_retry=None,
):
    """
    Execute a unit of work with retry on ConcurrencyConflictError.

    The unit must leave no state behind when it fails (its caller rolls back),
    so every attempt starts fresh. After the last attempt the conflict is
    re-raised to the caller.
    """
    attempts = max(1, int(attempts))
    for attempt in range(attempts):
        try:
            return func()
        except ConcurrencyConflictError as exc:
            if attempt >= attempts - 1:
                raise
            if on_retry is not None:
                on_retry(attempt + 1, exc)
            time.sleep(min(max_backoff, backoff_base * (2 ** attempt)))
