"""
In-Memory Storage Implementation

DESIGN DECISION: The core only needs a key-value account store and an
append-only record store. These implementations keep everything in process
memory, which is enough for a single-user deployment and for tests.

Writes go through a threading.Lock so that the uniqueness check and the
write happen together, the same guarantee a unique index gives a database.
The lock is never held across an await, and it also serializes callers
running on different event loops.
"""

import threading
from typing import Optional

from src.models.account import Account
from src.models.audit import AuditEvent
from src.models.expense import ExpenseRecord
from src.services.storage.interface import (
    AccountStorageInterface,
    AuditStorageInterface,
    DuplicateError,
    ExpenseStorageInterface,
)


class InMemoryAccountStorage(AccountStorageInterface):
    """Accounts keyed by email."""

    def __init__(self):
        self._accounts: dict[str, Account] = {}
        self._lock = threading.Lock()

    async def find(self, email: str) -> Optional[Account]:
        return self._accounts.get(email)

    async def insert(self, account: Account) -> bool:
        with self._lock:
            if account.email in self._accounts:
                raise DuplicateError(
                    f"An account for {account.email} already exists"
                )
            self._accounts[account.email] = account
        return True

    def __len__(self) -> int:
        return len(self._accounts)


class InMemoryExpenseStorage(ExpenseStorageInterface):
    """Expenses in insertion order."""

    def __init__(self):
        self._expenses: dict = {}
        self._lock = threading.Lock()

    async def save_expense(self, expense: ExpenseRecord) -> bool:
        with self._lock:
            if expense.id in self._expenses:
                raise DuplicateError(f"Expense {expense.id} already saved")
            self._expenses[expense.id] = expense
        return True

    async def list_expenses(
        self,
        account_email: Optional[str] = None,
        limit: int = 100,
    ) -> list[ExpenseRecord]:
        expenses = [
            e for e in self._expenses.values()
            if account_email is None or e.account_email == account_email
        ]
        # Newest expense date first, most recently captured first within a day
        expenses.sort(key=lambda e: (e.date, e.created_at), reverse=True)
        return expenses[:limit]


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
