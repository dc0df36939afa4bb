"""
Audit Logger

DESIGN DECISION: Every registration, sign in, rejection and saved expense
is logged. This provides:
1. Complete traceability
2. Debugging capability when a user reports "I can't sign in"
3. A history the user can inspect

The audit logger:
- Is async so it fits the async engine and stores
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from src.models.audit import AuditEvent, AuditEventBuilder
from src.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value == "error":
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_account_registered(
        self,
        account_id: UUID,
        email: str,
        correlation_id: UUID,
    ) -> None:
        """Log a new account."""
        await self.log(AuditEventBuilder.account_registered(
            account_id=account_id,
            email=email,
            correlation_id=correlation_id,
        ))

    async def log_account_logged_in(
        self,
        account_id: UUID,
        email: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.account_logged_in(
            account_id=account_id,
            email=email,
            correlation_id=correlation_id,
        ))

    async def log_entry_rejected(
        self,
        email: str,
        reason: str,
        correlation_id: UUID,
        email_reason: Optional[str] = None,
    ) -> None:
        """Log a rejected register/sign in attempt."""
        await self.log(AuditEventBuilder.account_entry_rejected(
            email=email,
            reason=reason,
            correlation_id=correlation_id,
            email_reason=email_reason,
        ))

    async def log_insert_conflict(
        self,
        email: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.account_insert_conflict(
            email=email,
            correlation_id=correlation_id,
        ))

    async def log_expense_rejected(
        self,
        reason: str,
        message: str,
        correlation_id: UUID,
    ) -> None:
        """Log a rejected expense submission."""
        await self.log(AuditEventBuilder.expense_rejected(
            reason=reason,
            message=message,
            correlation_id=correlation_id,
        ))

    async def log_expense_saved(
        self,
        expense_id: UUID,
        amount: str,
        category_path: list[str],
        correlation_id: UUID,
    ) -> None:
        """Log expense save."""
        await self.log(AuditEventBuilder.expense_saved(
            expense_id=expense_id,
            amount=amount,
            category_path=category_path,
            correlation_id=correlation_id,
        ))

    async def log_category_created(
        self,
        category_id: int,
        label: str,
        parent_id: Optional[int],
    ) -> None:
        await self.log(AuditEventBuilder.category_created(
            category_id=category_id,
            label=label,
            parent_id=parent_id,
        ))

    async def log_category_deleted(
        self,
        category_id: int,
        label: str,
    ) -> None:
        await self.log(AuditEventBuilder.category_deleted(
            category_id=category_id,
            label=label,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a storage failure that survived retries."""
        await self.log(AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a form submission).
    Pass it through all subsequent operations.
    """
    return uuid4()
