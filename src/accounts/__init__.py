"""Account entry package."""

from src.accounts.engine import AccountEntryEngine

__all__ = ["AccountEntryEngine"]
