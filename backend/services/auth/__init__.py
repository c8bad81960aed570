"""Authentication domain services."""

from .cookies import (
    ACCESS_COOKIE,
    REFRESH_COOKIE,
    clear_token_cookies,
    set_token_cookies,
)
from .gate import (
    authenticate_access_token,
    extract_access_token,
    extract_bearer_token,
)
from .identity_resolution import (
    find_account_by_email,
    is_valid_handle,
    normalize_email,
    normalize_handle,
    registration_conflict_exists,
)
from .session_store import (
    get_account_by_refresh_token,
    hash_refresh_token,
    refresh_token_matches,
    set_refresh_token,
)
from .sessions import LoginResult, SessionLifecycle, TokenPair

__all__ = [
    "ACCESS_COOKIE",
    "REFRESH_COOKIE",
    "clear_token_cookies",
    "set_token_cookies",
    "authenticate_access_token",
    "extract_access_token",
    "extract_bearer_token",
    "find_account_by_email",
    "is_valid_handle",
    "normalize_email",
    "normalize_handle",
    "registration_conflict_exists",
    "get_account_by_refresh_token",
    "hash_refresh_token",
    "refresh_token_matches",
    "set_refresh_token",
    "LoginResult",
    "SessionLifecycle",
    "TokenPair",
]
