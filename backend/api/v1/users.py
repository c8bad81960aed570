"""Current-account profile endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field

from api.deps import get_current_account, get_session_lifecycle
from models import Account
from services.auth import SessionLifecycle

from .auth import AccountResponse

router = APIRouter(prefix="/user", tags=["user"])


class AccountUpdateRequest(BaseModel):
    handle: str | None = Field(default=None, min_length=3, max_length=30)
    email: EmailStr | None = None
    full_name: str | None = Field(default=None, min_length=1, max_length=80)


@router.get("/me", response_model=AccountResponse)
async def get_me(current_account: Account = Depends(get_current_account)) -> AccountResponse:
    """Return the authenticated account."""
    return AccountResponse.model_validate(current_account)


@router.patch("/me", response_model=AccountResponse)
async def update_me(
    payload: AccountUpdateRequest,
    current_account: Account = Depends(get_current_account),
    lifecycle: SessionLifecycle = Depends(get_session_lifecycle),
) -> AccountResponse:
    """Update handle, email or display name of the authenticated account."""
    account = await lifecycle.update_account_details(
        current_account,
        handle=payload.handle,
        email=payload.email,
        full_name=payload.full_name,
    )
    return AccountResponse.model_validate(account)
