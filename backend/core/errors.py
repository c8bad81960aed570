"""Error taxonomy for account and session operations."""

from __future__ import annotations

from fastapi import status


class ConfigurationError(RuntimeError):
    """Server-side configuration is unusable; the app must not start."""


class InvalidToken(ValueError):
    """A bearer token failed signature, expiry, type or structure checks."""


class CorruptPasswordHash(RuntimeError):
    """A stored password digest could not be parsed."""


class AccountError(Exception):
    """Per-request failure surfaced to the client with a stable status code."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_detail: str = "Request failed"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class InvalidRequest(AccountError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request"


class Conflict(AccountError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Account with that handle or email already exists"


class AuthenticationFailed(AccountError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Invalid credentials"


class Unauthenticated(AccountError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Unauthorized request"


class AccountNotFound(Unauthenticated):
    # Reported like any other bad credential so account existence never leaks.
    default_detail = "Invalid access token"


__all__ = [
    "AccountError",
    "AccountNotFound",
    "AuthenticationFailed",
    "ConfigurationError",
    "Conflict",
    "CorruptPasswordHash",
    "InvalidRequest",
    "InvalidToken",
    "Unauthenticated",
]
