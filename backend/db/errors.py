"""Database error helpers."""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

UNIQUE_VIOLATION_SQLSTATE = "23505"
_UNIQUE_MESSAGE_MARKERS = ("duplicate key", "unique constraint")


def is_unique_violation(error: IntegrityError) -> bool:
    """Return True when the IntegrityError comes from a unique index.

    PostgreSQL drivers expose the SQLSTATE; SQLite only reports
    ``UNIQUE constraint failed: <table>.<column>`` in the message.
    """
    original = getattr(error, "orig", None)
    sqlstate = getattr(original, "sqlstate", None) or getattr(original, "pgcode", None)
    if sqlstate == UNIQUE_VIOLATION_SQLSTATE:
        return True
    message = str(original or error).lower()
    return any(marker in message for marker in _UNIQUE_MESSAGE_MARKERS)


__all__ = ["is_unique_violation"]
