"""Service-level tests for the session lifecycle and the authentication gate."""

from __future__ import annotations

import asyncio

import pytest
from argon2 import PasswordHasher
from sqlalchemy import update
from sqlalchemy.exc import InvalidRequestError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core import (
    AccountNotFound,
    AuthenticationFailed,
    Conflict,
    InvalidRequest,
    TokenIssuer,
    Unauthenticated,
    needs_rehash,
    verify_password,
)
from models import Account
from services.auth import (
    LoginResult,
    SessionLifecycle,
    authenticate_access_token,
    extract_access_token,
    refresh_token_matches,
)
from services.auth import sessions as sessions_module

PASSWORD = "Secret123"


async def _register(lifecycle: SessionLifecycle, handle: str = "alice") -> Account:
    return await lifecycle.register(
        handle=handle,
        email=f"{handle}@example.com",
        full_name=handle.title(),
        password=PASSWORD,
    )


async def _reload(session_maker: async_sessionmaker[AsyncSession], account_id: str) -> Account:
    async with session_maker() as session:
        account = await session.get(Account, account_id)
        assert account is not None
        return account


@pytest.mark.asyncio
async def test_concurrent_refresh_leaves_exactly_one_valid_token(
    session_maker: async_sessionmaker[AsyncSession],
    token_issuer: TokenIssuer,
):
    async with session_maker() as session:
        lifecycle = SessionLifecycle(session, token_issuer)
        account = await _register(lifecycle)
        login = await lifecycle.login(email="alice@example.com", password=PASSWORD)

    async def _refresh() -> LoginResult | None:
        async with session_maker() as session:
            try:
                return await SessionLifecycle(session, token_issuer).refresh(
                    login.tokens.refresh_token
                )
            except Unauthenticated:
                return None

    results = await asyncio.gather(_refresh(), _refresh())
    successes = [result for result in results if result is not None]
    assert successes

    stored = await _reload(session_maker, account.id)
    still_valid = [
        result
        for result in successes
        if refresh_token_matches(stored, result.tokens.refresh_token)
    ]
    assert len(still_valid) == 1
    assert not refresh_token_matches(stored, login.tokens.refresh_token)


@pytest.mark.asyncio
async def test_refresh_after_logout_is_rejected(db_session: AsyncSession, token_issuer: TokenIssuer):
    lifecycle = SessionLifecycle(db_session, token_issuer)
    account = await _register(lifecycle)
    login = await lifecycle.login(email="alice@example.com", password=PASSWORD)

    await lifecycle.logout(account)
    await lifecycle.logout(account)

    with pytest.raises(Unauthenticated):
        await lifecycle.refresh(login.tokens.refresh_token)


@pytest.mark.asyncio
async def test_refresh_for_vanished_account(db_session: AsyncSession, token_issuer: TokenIssuer):
    lifecycle = SessionLifecycle(db_session, token_issuer)
    account = await _register(lifecycle)
    login = await lifecycle.login(email="alice@example.com", password=PASSWORD)

    await db_session.delete(account)
    await db_session.commit()

    with pytest.raises(AccountNotFound):
        await lifecycle.refresh(login.tokens.refresh_token)


@pytest.mark.asyncio
@pytest.mark.parametrize("token", [None, "", "   ", "definitely-not-a-jwt"])
async def test_refresh_rejects_missing_or_malformed_tokens(
    db_session: AsyncSession,
    token_issuer: TokenIssuer,
    token,
):
    with pytest.raises(Unauthenticated):
        await SessionLifecycle(db_session, token_issuer).refresh(token)


@pytest.mark.asyncio
async def test_login_validates_input(db_session: AsyncSession, token_issuer: TokenIssuer):
    lifecycle = SessionLifecycle(db_session, token_issuer)
    with pytest.raises(InvalidRequest):
        await lifecycle.login(email=None, password=PASSWORD)
    with pytest.raises(InvalidRequest):
        await lifecycle.login(email="alice@example.com", password="")


@pytest.mark.asyncio
async def test_login_failures_share_one_error(db_session: AsyncSession, token_issuer: TokenIssuer):
    lifecycle = SessionLifecycle(db_session, token_issuer)
    await _register(lifecycle)

    with pytest.raises(AuthenticationFailed) as unknown:
        await lifecycle.login(email="bob@example.com", password=PASSWORD)
    with pytest.raises(AuthenticationFailed) as wrong:
        await lifecycle.login(email="alice@example.com", password="WrongPass1")

    assert unknown.value.detail == wrong.value.detail


@pytest.mark.asyncio
async def test_register_maps_unique_index_violation_to_conflict(
    db_session: AsyncSession,
    token_issuer: TokenIssuer,
    monkeypatch: pytest.MonkeyPatch,
):
    lifecycle = SessionLifecycle(db_session, token_issuer)
    await _register(lifecycle)

    async def _no_conflict(*args, **kwargs) -> bool:
        return False

    # Simulates a registration race that slips past the pre-insert check.
    monkeypatch.setattr(sessions_module, "registration_conflict_exists", _no_conflict)
    with pytest.raises(Conflict):
        await lifecycle.register(
            handle="alice",
            email="other@example.com",
            full_name="Other",
            password=PASSWORD,
        )


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "fields",
    [
        {"handle": "ab"},
        {"handle": ".alice"},
        {"handle": "has space"},
        {"email": "no-at-sign"},
        {"password": "short"},
        {"full_name": "   "},
    ],
)
async def test_register_validates_fields(
    db_session: AsyncSession,
    token_issuer: TokenIssuer,
    fields: dict[str, str],
):
    values = {
        "handle": "alice",
        "email": "alice@example.com",
        "full_name": "Alice",
        "password": PASSWORD,
    }
    values.update(fields)
    with pytest.raises(InvalidRequest):
        await SessionLifecycle(db_session, token_issuer).register(**values)


def test_extract_access_token_prefers_cookie() -> None:
    assert extract_access_token({"accessToken": "from-cookie"}, "Bearer from-header") == "from-cookie"
    assert extract_access_token({}, "Bearer from-header") == "from-header"
    assert extract_access_token({"accessToken": "  "}, "bearer from-header") == "from-header"
    assert extract_access_token({}, "Basic dXNlcjpwYXNz") is None
    assert extract_access_token({}, "Bearer ") is None
    assert extract_access_token({}, None) is None


@pytest.mark.asyncio
async def test_gate_hides_secret_columns_and_writes_nothing(
    session_maker: async_sessionmaker[AsyncSession],
    token_issuer: TokenIssuer,
):
    async with session_maker() as session:
        lifecycle = SessionLifecycle(session, token_issuer)
        account = await _register(lifecycle)
        login = await lifecycle.login(email="alice@example.com", password=PASSWORD)

    async with session_maker() as session:
        resolved = await authenticate_access_token(session, token_issuer, login.tokens.access_token)
        assert resolved.id == account.id
        assert resolved.handle == "alice"
        with pytest.raises(InvalidRequestError):
            _ = resolved.password_hash
        with pytest.raises(InvalidRequestError):
            _ = resolved.refresh_token_hash
        assert not session.dirty
        assert not session.new

    stored = await _reload(session_maker, account.id)
    assert refresh_token_matches(stored, login.tokens.refresh_token)


@pytest.mark.asyncio
async def test_gate_rejects_missing_token(db_session: AsyncSession, token_issuer: TokenIssuer):
    with pytest.raises(Unauthenticated):
        await authenticate_access_token(db_session, token_issuer, None)


@pytest.mark.asyncio
async def test_update_account_details(db_session: AsyncSession, token_issuer: TokenIssuer):
    lifecycle = SessionLifecycle(db_session, token_issuer)
    alice = await _register(lifecycle, "alice")
    await _register(lifecycle, "bob")

    with pytest.raises(Conflict):
        await lifecycle.update_account_details(alice, email="BOB@example.com")

    updated = await lifecycle.update_account_details(
        alice,
        handle="Alice.Renamed",
        full_name="  Alice R  ",
    )
    assert updated.handle == "alice.renamed"
    assert updated.full_name == "Alice R"
    assert updated.email == "alice@example.com"

    with pytest.raises(InvalidRequest):
        await lifecycle.update_account_details(alice)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "email",
    ["two words@example.com", "a..b@example.com", "alice@corp.local"],
)
async def test_update_account_details_rejects_undeliverable_email_shapes(
    db_session: AsyncSession,
    token_issuer: TokenIssuer,
    email: str,
):
    lifecycle = SessionLifecycle(db_session, token_issuer)
    alice = await _register(lifecycle)

    with pytest.raises(InvalidRequest):
        await lifecycle.update_account_details(alice, email=email)
    assert alice.email == "alice@example.com"


@pytest.mark.asyncio
async def test_login_upgrades_outdated_password_hash(
    db_session: AsyncSession,
    session_maker: async_sessionmaker[AsyncSession],
    token_issuer: TokenIssuer,
):
    lifecycle = SessionLifecycle(db_session, token_issuer)
    account_id = (await _register(lifecycle)).id
    weak_hash = PasswordHasher(time_cost=1, memory_cost=8, parallelism=1).hash(PASSWORD)
    await db_session.execute(
        update(Account).where(Account.id == account_id).values(password_hash=weak_hash)
    )
    await db_session.commit()
    db_session.expire_all()
    assert needs_rehash(weak_hash)

    await lifecycle.login(email="alice@example.com", password=PASSWORD)

    stored = await _reload(session_maker, account_id)
    assert stored.password_hash != weak_hash
    assert not needs_rehash(stored.password_hash)
    assert verify_password(PASSWORD, stored.password_hash)
