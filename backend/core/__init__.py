"""Core configuration, errors and security primitives."""

from .config import AuthConfig, Settings, settings
from .errors import (
    AccountError,
    AccountNotFound,
    AuthenticationFailed,
    ConfigurationError,
    Conflict,
    CorruptPasswordHash,
    InvalidRequest,
    InvalidToken,
    Unauthenticated,
)
from .security import (
    TokenClaims,
    TokenIssuer,
    burn_password_check,
    hash_password,
    needs_rehash,
    verify_password,
)

__all__ = [
    "AuthConfig",
    "Settings",
    "settings",
    "AccountError",
    "AccountNotFound",
    "AuthenticationFailed",
    "ConfigurationError",
    "Conflict",
    "CorruptPasswordHash",
    "InvalidRequest",
    "InvalidToken",
    "Unauthenticated",
    "TokenClaims",
    "TokenIssuer",
    "burn_password_check",
    "hash_password",
    "needs_rehash",
    "verify_password",
]
