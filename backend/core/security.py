"""Password hashing and JWT issuance."""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Callable, Literal, Protocol
from uuid import uuid4

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from jose import JWTError, jwt

from .config import AuthConfig
from .errors import ConfigurationError, CorruptPasswordHash, InvalidRequest, InvalidToken

TokenType = Literal["access", "refresh"]
Clock = Callable[[], datetime]

_password_hasher = PasswordHasher()


def hash_password(password: str) -> str:
    """Return a salted argon2id digest for ``password``."""
    if not isinstance(password, str) or not password:
        raise InvalidRequest("Password must be a non-empty string")
    return _password_hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Check ``password`` against a stored digest.

    A mismatch returns False. Only a digest that cannot be parsed raises.
    """
    if not isinstance(password, str) or not password:
        return False
    try:
        return _password_hasher.verify(password_hash, password)
    except InvalidHashError as exc:
        raise CorruptPasswordHash("Stored password hash is malformed") from exc
    except VerificationError:
        return False


def needs_rehash(password_hash: str) -> bool:
    try:
        return _password_hasher.check_needs_rehash(password_hash)
    except InvalidHashError as exc:
        raise CorruptPasswordHash("Stored password hash is malformed") from exc


@lru_cache
def _dummy_password_hash() -> str:
    return _password_hasher.hash(secrets.token_urlsafe(16))


def burn_password_check(password: str) -> None:
    """Spend the cost of one verification when no account matched."""
    verify_password(password, _dummy_password_hash())


class TokenSubject(Protocol):
    id: str
    handle: str
    email: str


@dataclass(frozen=True)
class TokenClaims:
    subject: str
    token_type: TokenType
    token_id: str
    issued_at: datetime
    expires_at: datetime
    handle: str | None = None
    email: str | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenIssuer:
    """Mint and verify signed access/refresh tokens for accounts."""

    def __init__(self, config: AuthConfig, *, clock: Clock | None = None) -> None:
        if not isinstance(config, AuthConfig):
            raise ConfigurationError("TokenIssuer requires an AuthConfig")
        self.config = config
        self._clock = clock or _utcnow

    @property
    def access_token_ttl(self) -> timedelta:
        return timedelta(minutes=self.config.access_token_expire_minutes)

    @property
    def refresh_token_ttl(self) -> timedelta:
        return timedelta(minutes=self.config.refresh_token_expire_minutes)

    def issue_access_token(self, account: TokenSubject) -> str:
        return self._encode(
            account,
            token_type="access",
            ttl=self.access_token_ttl,
            secret=self.config.access_token_secret,
            extra={"handle": account.handle, "email": account.email},
        )

    def issue_refresh_token(self, account: TokenSubject) -> str:
        return self._encode(
            account,
            token_type="refresh",
            ttl=self.refresh_token_ttl,
            secret=self.config.refresh_token_secret,
        )

    def decode_access_token(self, token: str) -> TokenClaims:
        return self._decode(
            token,
            expected_type="access",
            secret=self.config.access_token_secret,
        )

    def decode_refresh_token(self, token: str) -> TokenClaims:
        return self._decode(
            token,
            expected_type="refresh",
            secret=self.config.refresh_token_secret,
        )

    def _encode(
        self,
        account: TokenSubject,
        *,
        token_type: TokenType,
        ttl: timedelta,
        secret: str,
        extra: dict[str, Any] | None = None,
    ) -> str:
        if not account.id:
            raise ValueError("Cannot issue a token for an account without an id")
        issued_at = self._clock()
        claims: dict[str, Any] = {
            "sub": str(account.id),
            "type": token_type,
            "jti": uuid4().hex,
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + ttl).timestamp()),
        }
        if extra:
            claims.update(extra)
        return jwt.encode(claims, secret, algorithm=self.config.algorithm)

    def _decode(self, token: str, *, expected_type: TokenType, secret: str) -> TokenClaims:
        if not isinstance(token, str) or not token.strip():
            raise InvalidToken("Token is empty")
        try:
            payload = jwt.decode(
                token.strip(),
                secret,
                algorithms=[self.config.algorithm],
                options={"require_exp": True, "require_iat": True, "require_sub": True},
            )
        except JWTError as exc:
            raise InvalidToken(str(exc)) from exc

        if payload.get("type") != expected_type:
            raise InvalidToken(f"Expected a {expected_type} token")
        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject.strip():
            raise InvalidToken("Token subject is missing")

        try:
            issued_at = datetime.fromtimestamp(payload["iat"], tz=timezone.utc)
            expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        except (KeyError, TypeError, ValueError, OverflowError) as exc:
            raise InvalidToken("Token timestamps are malformed") from exc

        return TokenClaims(
            subject=subject.strip(),
            token_type=expected_type,
            token_id=str(payload.get("jti") or ""),
            issued_at=issued_at,
            expires_at=expires_at,
            handle=payload.get("handle"),
            email=payload.get("email"),
        )


__all__ = [
    "TokenClaims",
    "TokenIssuer",
    "TokenSubject",
    "burn_password_check",
    "hash_password",
    "needs_rehash",
    "verify_password",
]
