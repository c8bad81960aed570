"""Account registration and session lifecycle.

``SessionLifecycle`` is the only writer of an account's refresh-token
state. Its transitions are:

- login: logged out (or logged in elsewhere) -> logged in, replacing any
  previous refresh token;
- refresh: logged in -> logged in, rotating both tokens and invalidating
  the refresh token that was presented;
- logout and change_password: -> logged out.

Every method commits its own unit of work and raises the domain errors
from ``core.errors``; the HTTP layer turns those into responses.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, cast

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from core import (
    AccountNotFound,
    AuthenticationFailed,
    Conflict,
    InvalidRequest,
    InvalidToken,
    TokenIssuer,
    Unauthenticated,
    burn_password_check,
    hash_password,
    needs_rehash,
    verify_password,
)
from db.errors import is_unique_violation
from models import Account

from .identity_resolution import (
    find_account_by_email,
    is_valid_handle,
    normalize_email,
    normalize_handle,
    registration_conflict_exists,
)
from .session_store import get_account_by_refresh_token, set_refresh_token

logger = logging.getLogger(__name__)

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128
FULL_NAME_MAX_LENGTH = 80


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def _require_text(value: str | None, field: str) -> str:
    if value is None or not isinstance(value, str) or not value.strip():
        raise InvalidRequest(f"{field} is required")
    return value


def _validate_new_password(password: str) -> None:
    if not PASSWORD_MIN_LENGTH <= len(password) <= PASSWORD_MAX_LENGTH:
        raise InvalidRequest(
            f"Password must be between {PASSWORD_MIN_LENGTH} and "
            f"{PASSWORD_MAX_LENGTH} characters"
        )


def _clean_handle(value: str) -> str:
    handle = normalize_handle(value)
    if not is_valid_handle(handle):
        raise InvalidRequest(
            "Handle must be 3-30 characters of letters, digits, '.' or '_' "
            "and start and end with a letter, digit or '_'"
        )
    return handle


def _clean_email(value: str) -> str:
    email = normalize_email(value)
    # Same rules as the EmailStr fields every account response is built from.
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError as exc:
        raise InvalidRequest("Email is not valid") from exc
    return email


def _clean_full_name(value: str) -> str:
    full_name = value.strip()
    if len(full_name) > FULL_NAME_MAX_LENGTH:
        raise InvalidRequest(f"Full name must be at most {FULL_NAME_MAX_LENGTH} characters")
    return full_name


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class LoginResult:
    account: Account
    tokens: TokenPair


class SessionLifecycle:
    """Orchestrates credentials, token issuance and session persistence."""

    def __init__(self, session: AsyncSession, issuer: TokenIssuer) -> None:
        self.session = session
        self.issuer = issuer

    async def register(
        self,
        *,
        handle: str,
        email: str,
        full_name: str,
        password: str,
    ) -> Account:
        handle = _clean_handle(_require_text(handle, "Handle"))
        email = _clean_email(_require_text(email, "Email"))
        full_name = _clean_full_name(_require_text(full_name, "Full name"))
        password = _require_text(password, "Password")
        _validate_new_password(password)

        if await registration_conflict_exists(
            self.session,
            handle=handle,
            normalized_email=email,
        ):
            raise Conflict()

        account = Account(
            handle=handle,
            email=email,
            full_name=full_name,
            password_hash=hash_password(password),
        )
        self.session.add(account)
        await self._commit_or_conflict()
        await self.session.refresh(account)
        logger.info("Account registered", extra={"account_id": account.id})
        return account

    async def login(self, *, email: str | None, password: str | None) -> LoginResult:
        email = _require_text(email, "Email")
        password = _require_text(password, "Password")

        account = await find_account_by_email(self.session, email)
        if account is None:
            burn_password_check(password)
            logger.info("Login rejected", extra={"account_id": None})
            raise AuthenticationFailed()
        if not verify_password(password, account.password_hash):
            logger.info("Login rejected", extra={"account_id": account.id})
            raise AuthenticationFailed()

        if needs_rehash(account.password_hash):
            account.password_hash = hash_password(password)

        tokens = await self._start_session(account)
        logger.info("Login succeeded", extra={"account_id": account.id})
        return LoginResult(account=account, tokens=tokens)

    async def refresh(self, refresh_token: str | None) -> LoginResult:
        if not refresh_token or not refresh_token.strip():
            raise Unauthenticated("Missing refresh token")
        refresh_token = refresh_token.strip()

        try:
            claims = self.issuer.decode_refresh_token(refresh_token)
        except InvalidToken as exc:
            raise Unauthenticated("Invalid refresh token") from exc

        try:
            account = await get_account_by_refresh_token(self.session, refresh_token, claims)
        except AccountNotFound:
            raise
        except Unauthenticated:
            logger.warning(
                "Rejected superseded refresh token",
                extra={"account_id": claims.subject},
            )
            raise

        tokens = await self._start_session(account)
        logger.info("Session rotated", extra={"account_id": account.id})
        return LoginResult(account=account, tokens=tokens)

    async def logout(self, account: Account) -> None:
        await set_refresh_token(self.session, account.id, None)
        await self.session.commit()
        logger.info("Logged out", extra={"account_id": account.id})

    async def change_password(
        self,
        account: Account,
        *,
        old_password: str | None,
        new_password: str | None,
    ) -> None:
        old_password = _require_text(old_password, "Old password")
        new_password = _require_text(new_password, "New password")
        _validate_new_password(new_password)

        result = await self.session.execute(
            select(Account.password_hash).where(_eq(Account.id, account.id))
        )
        stored_hash = result.scalar_one_or_none()
        if stored_hash is None:
            raise AccountNotFound()
        if not verify_password(old_password, stored_hash):
            raise AuthenticationFailed("Invalid password")

        # A new password ends every outstanding session.
        await self.session.execute(
            update(Account)
            .where(_eq(Account.id, account.id))
            .values(
                password_hash=hash_password(new_password),
                refresh_token_hash=None,
            )
        )
        await self.session.commit()
        logger.info("Password changed", extra={"account_id": account.id})

    async def update_account_details(
        self,
        account: Account,
        *,
        handle: str | None = None,
        email: str | None = None,
        full_name: str | None = None,
    ) -> Account:
        if handle is None and email is None and full_name is None:
            raise InvalidRequest("At least one of handle, email or full name is required")

        new_handle = _clean_handle(handle) if handle is not None else None
        new_email = _clean_email(email) if email is not None else None
        new_full_name = None
        if full_name is not None:
            new_full_name = _clean_full_name(_require_text(full_name, "Full name"))

        if new_handle == account.handle:
            new_handle = None
        if new_email == account.email:
            new_email = None

        if await registration_conflict_exists(
            self.session,
            handle=new_handle,
            normalized_email=new_email,
            exclude_account_id=account.id,
        ):
            raise Conflict()

        if new_handle is not None:
            account.handle = new_handle
        if new_email is not None:
            account.email = new_email
        if new_full_name is not None:
            account.full_name = new_full_name

        self.session.add(account)
        await self._commit_or_conflict()
        return account

    async def _start_session(self, account: Account) -> TokenPair:
        tokens = TokenPair(
            access_token=self.issuer.issue_access_token(account),
            refresh_token=self.issuer.issue_refresh_token(account),
        )
        await set_refresh_token(self.session, account.id, tokens.refresh_token)
        await self.session.commit()
        return tokens

    async def _commit_or_conflict(self) -> None:
        try:
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            if is_unique_violation(exc):
                raise Conflict() from exc
            raise


__all__ = ["LoginResult", "SessionLifecycle", "TokenPair"]
