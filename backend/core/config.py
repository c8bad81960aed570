"""Application configuration."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError


class Settings(BaseSettings):
    """Environment-backed settings for the backend."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_env: str = "local"
    allow_insecure_http_cookies: bool = False
    log_level: str = "INFO"

    database_url: str = "sqlite+aiosqlite:///./vidtube.db"

    # Signing material has no defaults; create_app() refuses to start without it.
    access_token_secret: str = ""
    access_token_expire_minutes: int | None = 15
    refresh_token_secret: str = ""
    refresh_token_expire_minutes: int | None = 60 * 24 * 10
    jwt_algorithm: str = "HS256"

    cors_origins: list[str] = Field(default_factory=list)

    redis_url: str = "redis://localhost:6379/0"
    rate_limit_requests: int = 20
    rate_limit_window_seconds: int = 60
    rate_limit_trusted_proxies: list[str] = Field(default_factory=list)
    rate_limit_ip_headers: list[str] = Field(
        default_factory=lambda: ["x-forwarded-for", "x-real-ip"]
    )


@dataclass(frozen=True)
class AuthConfig:
    """Signing secrets and lifetimes handed to the token issuer."""

    access_token_secret: str
    access_token_expire_minutes: int
    refresh_token_secret: str
    refresh_token_expire_minutes: int
    algorithm: str = "HS256"

    def __post_init__(self) -> None:
        missing = [
            name
            for name in ("access_token_secret", "refresh_token_secret")
            if not getattr(self, name).strip()
        ]
        if missing:
            raise ConfigurationError(
                "Missing token signing secret(s): " + ", ".join(sorted(missing))
            )
        if self.access_token_secret == self.refresh_token_secret:
            raise ConfigurationError(
                "Access and refresh tokens must be signed with distinct secrets"
            )
        for name in ("access_token_expire_minutes", "refresh_token_expire_minutes"):
            value = getattr(self, name)
            if not isinstance(value, int) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive number of minutes")

    @classmethod
    def from_settings(cls, source: Settings) -> AuthConfig:
        return cls(
            access_token_secret=source.access_token_secret,
            access_token_expire_minutes=source.access_token_expire_minutes,  # type: ignore[arg-type]
            refresh_token_secret=source.refresh_token_secret,
            refresh_token_expire_minutes=source.refresh_token_expire_minutes,  # type: ignore[arg-type]
            algorithm=source.jwt_algorithm,
        )


settings = Settings()

__all__ = ["AuthConfig", "Settings", "settings"]
