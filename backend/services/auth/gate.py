"""Resolve an inbound access token to an account."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, cast

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import defer
from sqlalchemy.sql import ColumnElement

from core import AccountNotFound, InvalidToken, TokenIssuer, Unauthenticated
from models import Account

from .cookies import ACCESS_COOKIE


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, value = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = value.strip()
    return token or None


def extract_access_token(
    cookies: Mapping[str, str],
    authorization: str | None,
) -> str | None:
    """Pick the access token from the cookie, falling back to the header."""
    cookie_token = (cookies.get(ACCESS_COOKIE) or "").strip()
    if cookie_token:
        return cookie_token
    return extract_bearer_token(authorization)


async def authenticate_access_token(
    session: AsyncSession,
    issuer: TokenIssuer,
    token: str | None,
) -> Account:
    """Verify ``token`` and load its account without secret columns.

    Reading ``password_hash`` or ``refresh_token_hash`` on the returned
    instance raises instead of lazily loading. Nothing is written.
    """
    if not token:
        raise Unauthenticated("Unauthorized request")

    try:
        claims = issuer.decode_access_token(token)
    except InvalidToken as exc:
        raise Unauthenticated("Unauthorized request") from exc

    result = await session.execute(
        select(Account)
        .options(
            defer(cast(Any, Account.password_hash), raiseload=True),
            defer(cast(Any, Account.refresh_token_hash), raiseload=True),
        )
        .where(_eq(Account.id, claims.subject))
    )
    account = result.scalar_one_or_none()
    if account is None:
        raise AccountNotFound("Invalid access token")
    return account


__all__ = [
    "authenticate_access_token",
    "extract_access_token",
    "extract_bearer_token",
]
