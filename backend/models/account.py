"""Account domain model."""

from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from sqlalchemy import Column, DateTime, String, func
from sqlmodel import Field, SQLModel


class Account(SQLModel, table=True):
    """Registered channel owner."""

    __tablename__ = "accounts"

    id: str = Field(default_factory=lambda: str(uuid4()), sa_column=Column(String(36), primary_key=True))
    handle: str = Field(
        sa_column=Column(String(30), unique=True, nullable=False, index=True)
    )
    email: str = Field(
        sa_column=Column(String(255), unique=True, nullable=False, index=True)
    )
    full_name: str = Field(
        sa_column=Column(String(80), nullable=False, index=True)
    )
    password_hash: str = Field(
        sa_column=Column(String(255), nullable=False)
    )
    # SHA-256 digest of the single refresh token currently allowed to rotate.
    # NULL means no active session.
    refresh_token_hash: str | None = Field(
        default=None, sa_column=Column(String(64), nullable=True)
    )
    avatar_url: str | None = Field(
        default=None, sa_column=Column(String(512), nullable=True)
    )
    avatar_asset_id: str | None = Field(
        default=None, sa_column=Column(String(255), nullable=True)
    )
    cover_image_url: str | None = Field(
        default=None, sa_column=Column(String(512), nullable=True)
    )
    cover_image_asset_id: str | None = Field(
        default=None, sa_column=Column(String(255), nullable=True)
    )
    created_at: datetime = Field(
        sa_column=Column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        )
    )
    updated_at: datetime = Field(
        sa_column=Column(
            DateTime(timezone=True),
            server_default=func.now(),
            onupdate=func.now(),
            nullable=False,
        )
    )
