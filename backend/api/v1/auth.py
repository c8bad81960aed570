"""Account registration and session endpoints."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Body, Depends, Request, Response, status
from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, field_validator

from api.deps import get_current_account, get_session_lifecycle
from models import Account
from services.auth import (
    REFRESH_COOKIE,
    LoginResult,
    SessionLifecycle,
    clear_token_cookies,
    set_token_cookies,
)

router = APIRouter(prefix="/user", tags=["user"])


class RegisterRequest(BaseModel):
    handle: str = Field(min_length=3, max_length=30)
    email: EmailStr
    full_name: str = Field(min_length=1, max_length=80)
    password: str = Field(min_length=8, max_length=128)

    @field_validator("handle")
    @classmethod
    def _reject_email_like_handle(cls, value: str) -> str:
        normalized = value.strip()
        if "@" in normalized:
            raise ValueError("Handle cannot contain '@'")
        return normalized


class AccountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    handle: str
    email: EmailStr
    full_name: str
    avatar_url: str | None = None
    cover_image_url: str | None = None
    created_at: datetime | None = None


class LoginRequest(BaseModel):
    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=128)


class RefreshRequest(BaseModel):
    refresh_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("refresh_token", "refreshToken"),
    )


class ChangePasswordRequest(BaseModel):
    old_password: str = Field(min_length=1, max_length=128)
    new_password: str = Field(min_length=8, max_length=128)


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class LoginResponse(TokenResponse):
    account: AccountResponse


class MessageResponse(BaseModel):
    detail: str


def _session_response(
    response: Response,
    result: LoginResult,
    lifecycle: SessionLifecycle,
) -> LoginResponse:
    set_token_cookies(
        response,
        result.tokens.access_token,
        result.tokens.refresh_token,
        access_ttl=lifecycle.issuer.access_token_ttl,
        refresh_ttl=lifecycle.issuer.refresh_token_ttl,
    )
    return LoginResponse(
        account=AccountResponse.model_validate(result.account),
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
    )


@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=AccountResponse)
async def register(
    payload: RegisterRequest,
    lifecycle: SessionLifecycle = Depends(get_session_lifecycle),
) -> AccountResponse:
    account = await lifecycle.register(
        handle=payload.handle,
        email=str(payload.email),
        full_name=payload.full_name,
        password=payload.password,
    )
    return AccountResponse.model_validate(account)


@router.post("/login", response_model=LoginResponse)
async def login(
    payload: LoginRequest,
    response: Response,
    lifecycle: SessionLifecycle = Depends(get_session_lifecycle),
) -> LoginResponse:
    result = await lifecycle.login(email=payload.email, password=payload.password)
    return _session_response(response, result, lifecycle)


@router.api_route("/logout", methods=["GET", "POST"], response_model=MessageResponse)
async def logout(
    response: Response,
    current_account: Account = Depends(get_current_account),
    lifecycle: SessionLifecycle = Depends(get_session_lifecycle),
) -> MessageResponse:
    await lifecycle.logout(current_account)
    clear_token_cookies(response)
    return MessageResponse(detail="Logged out")


@router.post("/refresh-token", response_model=LoginResponse)
async def refresh_token(
    request: Request,
    response: Response,
    payload: RefreshRequest | None = Body(default=None),
    lifecycle: SessionLifecycle = Depends(get_session_lifecycle),
) -> LoginResponse:
    presented = request.cookies.get(REFRESH_COOKIE) or (
        payload.refresh_token if payload is not None else None
    )
    result = await lifecycle.refresh(presented)
    return _session_response(response, result, lifecycle)


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    payload: ChangePasswordRequest,
    response: Response,
    current_account: Account = Depends(get_current_account),
    lifecycle: SessionLifecycle = Depends(get_session_lifecycle),
) -> MessageResponse:
    await lifecycle.change_password(
        current_account,
        old_password=payload.old_password,
        new_password=payload.new_password,
    )
    clear_token_cookies(response)
    return MessageResponse(detail="Password updated; please log in again")
