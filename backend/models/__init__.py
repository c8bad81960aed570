"""SQLModel models package."""

from .account import Account

__all__ = ["Account"]
