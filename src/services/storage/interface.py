"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the account entry engine independent of the database
2. Use in-memory storage for testing
3. Add caching layers transparently

The interface is intentionally small - just the operations the core needs.
"""

from abc import ABC, abstractmethod
from typing import Optional

from src.models.account import Account
from src.models.audit import AuditEvent
from src.models.expense import ExpenseRecord


class AccountStorageInterface(ABC):
    """
    Abstract interface for account storage.

    Implementations must enforce email uniqueness on insert, even if
    lookups are only eventually consistent.
    """

    @abstractmethod
    async def find(self, email: str) -> Optional[Account]:
        """
        Look up an account by email (exact, case-sensitive match).

        Args:
            email: The email address as submitted

        Returns:
            The account if found, None otherwise
        """
        pass

    @abstractmethod
    async def insert(self, account: Account) -> bool:
        """
        Insert a new account.

        Args:
            account: The account to store

        Returns:
            True if stored successfully

        Raises:
            DuplicateError: If an account with this email already exists
            StorageError: If the insert fails for another reason
        """
        pass


class ExpenseStorageInterface(ABC):
    """Abstract interface for expense storage."""

    @abstractmethod
    async def save_expense(self, expense: ExpenseRecord) -> bool:
        """
        Save a validated expense.

        Raises:
            DuplicateError: If an expense with the same id already exists
        """
        pass

    @abstractmethod
    async def list_expenses(
        self,
        account_email: Optional[str] = None,
        limit: int = 100,
    ) -> list[ExpenseRecord]:
        """
        List expenses, newest expense date first.

        Args:
            account_email: Only return expenses owned by this account
            limit: Maximum number of results
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
