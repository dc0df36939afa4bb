"""Services package."""

from src.services.security import (
    Clock,
    JWTSessionIssuer,
    PasslibPasswordHasher,
    PasswordHasher,
    SessionIssuer,
    SystemClock,
)
from src.services.storage import (
    AccountStorageInterface,
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    ExpenseStorageInterface,
    InMemoryAccountStorage,
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    StorageError,
)

__all__ = [
    # Security collaborators
    "Clock",
    "JWTSessionIssuer",
    "PasslibPasswordHasher",
    "PasswordHasher",
    "SessionIssuer",
    "SystemClock",
    # Storage services
    "AccountStorageInterface",
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "ExpenseStorageInterface",
    "InMemoryAccountStorage",
    "InMemoryAuditStorage",
    "InMemoryExpenseStorage",
    "StorageError",
]
