"""
Audit Models for Firetrack

Every account entry and every expense submission leaves an audit event.
This provides:
1. Traceability of who registered or signed in, and when
2. Debugging information when a submission is rejected
3. A record of expenses as they were captured

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
Passwords and password hashes never appear in an event.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Account entry
    ACCOUNT_REGISTERED = "account_registered"
    ACCOUNT_LOGGED_IN = "account_logged_in"
    ACCOUNT_ENTRY_REJECTED = "account_entry_rejected"
    ACCOUNT_INSERT_CONFLICT = "account_insert_conflict"

    # Expenses
    EXPENSE_REJECTED = "expense_rejected"
    EXPENSE_SAVED = "expense_saved"

    # Categories
    CATEGORY_CREATED = "category_created"
    CATEGORY_DELETED = "category_deleted"

    # System events
    SYSTEM_ERROR = "system_error"
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'account', 'expense', 'category')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one form submission)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.account_registered(account_id, email, correlation_id)
        event = AuditEventBuilder.expense_saved(expense_id, amount, path, correlation_id)
    """

    @staticmethod
    def account_registered(
        account_id: UUID,
        email: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_REGISTERED,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Account registered: {email}",
            details={"email": email},
            is_user_action=True,
        )

    @staticmethod
    def account_logged_in(
        account_id: UUID,
        email: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_LOGGED_IN,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Signed in: {email}",
            details={"email": email},
            is_user_action=True,
        )

    @staticmethod
    def account_entry_rejected(
        email: str,
        reason: str,
        correlation_id: UUID,
        email_reason: Optional[str] = None,
    ) -> AuditEvent:
        details = {"email": email, "reason": reason}
        if email_reason:
            details["email_reason"] = email_reason
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_ENTRY_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="account",
            correlation_id=correlation_id,
            description=f"Account entry rejected: {reason}",
            details=details,
            error_code=reason,
            is_user_action=True,
        )

    @staticmethod
    def account_insert_conflict(
        email: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_INSERT_CONFLICT,
            severity=AuditSeverity.WARNING,
            entity_type="account",
            correlation_id=correlation_id,
            description="Account insert lost a race, retrying as sign in",
            details={"email": email},
            error_code="store-insert-race",
        )

    @staticmethod
    def expense_rejected(
        reason: str,
        message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="expense",
            correlation_id=correlation_id,
            description=f"Expense rejected: {reason}",
            details={"reason": reason, "message": message},
            error_code=reason,
            is_user_action=True,
        )

    @staticmethod
    def expense_saved(
        expense_id: UUID,
        amount: str,
        category_path: list[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_SAVED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense saved: {amount} in {' / '.join(category_path)}",
            details={
                "amount": amount,
                "category_path": category_path,
            },
            is_user_action=True,
        )

    @staticmethod
    def category_created(
        category_id: int,
        label: str,
        parent_id: Optional[int],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_CREATED,
            entity_type="category",
            description=f"Category created: {label}",
            details={
                "category_id": category_id,
                "parent_id": parent_id,
            },
            is_user_action=True,
        )

    @staticmethod
    def category_deleted(
        category_id: int,
        label: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_DELETED,
            entity_type="category",
            description=f"Category deleted: {label}",
            details={"category_id": category_id},
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={"operation": operation},
            correlation_id=correlation_id,
        )
