"""Identity normalization and account lookup helpers."""

from __future__ import annotations

import re
from typing import Any, cast

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from models import Account

HANDLE_MIN_LENGTH = 3
HANDLE_MAX_LENGTH = 30
HANDLE_PATTERN = re.compile(r"^[a-z0-9_][a-z0-9._]{1,28}[a-z0-9_]$")


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def _ne(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column != value)


def normalize_email(value: str) -> str:
    return value.strip().lower()


def normalize_handle(value: str) -> str:
    return value.strip().lower()


def is_valid_handle(value: str) -> bool:
    return "@" not in value and HANDLE_PATTERN.fullmatch(value) is not None


async def registration_conflict_exists(
    session: AsyncSession,
    *,
    handle: str | None,
    normalized_email: str | None,
    exclude_account_id: str | None = None,
) -> bool:
    """Return True when another account already owns the handle or email."""
    clauses: list[ColumnElement[bool]] = []
    if handle is not None:
        clauses.append(_eq(Account.handle, handle))
    if normalized_email is not None:
        clauses.append(_eq(Account.email, normalized_email))
    if not clauses:
        return False

    condition: ColumnElement[bool] = or_(*clauses)
    if exclude_account_id is not None:
        condition = and_(condition, _ne(Account.id, exclude_account_id))

    existing = await session.execute(select(Account.id).where(condition).limit(1))
    return existing.scalar_one_or_none() is not None


async def find_account_by_email(session: AsyncSession, email: str) -> Account | None:
    result = await session.execute(
        select(Account).where(_eq(Account.email, normalize_email(email))).limit(1)
    )
    return result.scalar_one_or_none()
