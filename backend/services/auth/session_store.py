"""Persistence of the single active refresh token per account."""

from __future__ import annotations

import hashlib
import hmac
from typing import Any, cast

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from core import AccountNotFound, TokenClaims, Unauthenticated
from models import Account


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def hash_refresh_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def refresh_token_matches(account: Account, token: str) -> bool:
    stored = account.refresh_token_hash
    if not stored or not token:
        return False
    return hmac.compare_digest(stored, hash_refresh_token(token))


async def set_refresh_token(
    session: AsyncSession,
    account_id: str,
    token: str | None,
) -> None:
    """Overwrite the account's refresh token; ``None`` ends the session.

    The write is a single-row UPDATE without a read lock, so concurrent
    writers resolve as last-writer-wins. Callers own the commit.
    """
    token_hash = hash_refresh_token(token) if token is not None else None
    await session.execute(
        update(Account)
        .where(_eq(Account.id, account_id))
        .values(refresh_token_hash=token_hash)
    )


async def get_account_by_refresh_token(
    session: AsyncSession,
    token: str,
    claims: TokenClaims,
) -> Account:
    """Resolve the account named by a verified refresh token.

    The token must still be the one persisted for that account; a rotated
    or logged-out token is rejected even when its signature is valid.
    """
    account = await session.get(Account, claims.subject, populate_existing=True)
    if account is None:
        raise AccountNotFound("Invalid refresh token")
    if not refresh_token_matches(account, token):
        raise Unauthenticated("Invalid refresh token")
    return account


__all__ = [
    "get_account_by_refresh_token",
    "hash_refresh_token",
    "refresh_token_matches",
    "set_refresh_token",
]
