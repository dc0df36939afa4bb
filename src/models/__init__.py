"""
Data Models Package

This package contains all Pydantic models used in Firetrack.
All data flowing through the system must conform to these schemas.
"""

from src.models.account import (
    Account,
    EmailErrorReason,
    EmailValidationResult,
    EntryOutcome,
    EntryReason,
    EntryState,
    EntryStatus,
    Session,
)
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from src.models.category import (
    CategoryNode,
    SelectionError,
    SelectionResult,
)
from src.models.expense import (
    ExpenseErrorReason,
    ExpenseRecord,
    ExpenseValidationResult,
)

__all__ = [
    # Account models
    "Account",
    "EmailErrorReason",
    "EmailValidationResult",
    "EntryOutcome",
    "EntryReason",
    "EntryState",
    "EntryStatus",
    "Session",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Category models
    "CategoryNode",
    "SelectionError",
    "SelectionResult",
    # Expense models
    "ExpenseErrorReason",
    "ExpenseRecord",
    "ExpenseValidationResult",
]
