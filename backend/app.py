"""Application factory."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.v1 import auth, health, users
from core import AccountError, AuthConfig, Settings, TokenIssuer, settings
from services import RateLimitMiddleware, get_rate_limiter

API_PREFIX = "/api/v1"


async def _account_error_handler(request: Request, exc: AccountError) -> JSONResponse:
    headers = None
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(
        {"detail": exc.detail},
        status_code=exc.status_code,
        headers=headers,
    )


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        {"detail": "Invalid request", "errors": jsonable_encoder(exc.errors())},
        status_code=status.HTTP_400_BAD_REQUEST,
    )


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(
    app_settings: Settings | None = None,
    *,
    auth_config: AuthConfig | None = None,
) -> FastAPI:
    """Build the API.

    Raises ``ConfigurationError`` when token secrets or lifetimes are
    missing, so a misconfigured server never starts serving requests.
    """
    app_settings = app_settings or settings
    _configure_logging(app_settings.log_level)
    issuer = TokenIssuer(auth_config or AuthConfig.from_settings(app_settings))

    application = FastAPI(title="VidTube API")
    application.state.token_issuer = issuer

    if app_settings.cors_origins:
        application.add_middleware(
            CORSMiddleware,
            allow_origins=app_settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    application.add_middleware(RateLimitMiddleware, limiter_factory=get_rate_limiter)

    application.add_exception_handler(AccountError, _account_error_handler)  # type: ignore[arg-type]
    application.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]

    application.include_router(health.router, prefix=API_PREFIX)
    application.include_router(auth.router, prefix=API_PREFIX)
    application.include_router(users.router, prefix=API_PREFIX)
    return application
