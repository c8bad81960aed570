"""FastAPI dependencies shared by the routers."""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from core import ConfigurationError, TokenIssuer
from db.session import AsyncSessionMaker
from models import Account
from services.auth import SessionLifecycle, authenticate_access_token, extract_access_token


async def get_db() -> AsyncIterator[AsyncSession]:
    async with AsyncSessionMaker() as session:
        yield session


def get_token_issuer(request: Request) -> TokenIssuer:
    issuer = getattr(request.app.state, "token_issuer", None)
    if not isinstance(issuer, TokenIssuer):
        raise ConfigurationError("Application was built without a token issuer")
    return issuer


def get_session_lifecycle(
    session: AsyncSession = Depends(get_db),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> SessionLifecycle:
    return SessionLifecycle(session, issuer)


async def get_current_account(
    request: Request,
    session: AsyncSession = Depends(get_db),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> Account:
    """Authenticate the request from its access-token cookie or bearer header."""
    token = extract_access_token(request.cookies, request.headers.get("authorization"))
    account = await authenticate_access_token(session, issuer, token)
    request.state.account = account
    return account
