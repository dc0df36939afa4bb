"""
Main Orchestrator for Firetrack

This module ties together all the components and defines the
end-to-end flows for:
1. Account entry (email + password → register or sign in)
2. Expense entry (amount + category + date → validate → save)
3. Category management (add / remove categories, audited)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is saved unless it passed validation
- Every step is audited

This is the "glue" the front end talks to; the core components never
know about each other's storage.
"""

from decimal import Decimal
from typing import NamedTuple, Optional, Union
from uuid import UUID

from src.accounts import AccountEntryEngine
from src.audit import AuditLogger, create_correlation_id
from src.categories import DEFAULT_CATEGORIES, CategoryTree
from src.categories.tree import CategorySeed
from src.models.category import CategoryNode
from src.models.expense import ExpenseRecord, ExpenseValidationResult
from src.services.security import Clock, JWTSessionIssuer, SystemClock
from src.services.storage import (
    ExpenseStorageInterface,
    InMemoryAccountStorage,
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    StorageError,
)
from src.validation import ExpenseEntryValidator


class ExpenseEntryFlow:
    """
    Orchestrates the expense entry flow.

    Flow:
    1. Validate → amount, category leaf, date
    2. Save → persist the ExpenseRecord (only if valid)
    3. Audit → record the rejection or the saved expense
    """

    def __init__(
        self,
        categories: CategoryTree,
        expense_storage: Optional[ExpenseStorageInterface] = None,
        validator: Optional[ExpenseEntryValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Clock] = None,
    ):
        self._categories = categories
        self._expense_storage = expense_storage
        self._validator = validator or ExpenseEntryValidator(categories, clock=clock)
        self._audit_logger = audit_logger

    async def add_expense(
        self,
        amount: Union[str, Decimal, None],
        category_leaf_id: Optional[int],
        date: Optional[str] = None,
        account_email: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ExpenseValidationResult:
        """
        Validate and save an expense.

        Returns:
            The validation result; when valid, its record has been saved

        Raises:
            StorageError: If the expense could not be saved
        """
        correlation_id = correlation_id or create_correlation_id()

        result = self._validator.validate(
            amount,
            category_leaf_id,
            date,
            account_email=account_email,
        )

        if not result.is_valid:
            if self._audit_logger:
                await self._audit_logger.log_expense_rejected(
                    reason=result.reason.value,
                    message=result.message,
                    correlation_id=correlation_id,
                )
            return result

        record = result.record
        if self._expense_storage:
            try:
                await self._expense_storage.save_expense(record)
            except StorageError as e:
                if self._audit_logger:
                    await self._audit_logger.log_storage_error(
                        operation="save_expense",
                        error_message=str(e),
                        correlation_id=correlation_id,
                    )
                raise

            if self._audit_logger:
                await self._audit_logger.log_expense_saved(
                    expense_id=record.id,
                    amount=f"{record.amount} {record.currency}",
                    category_path=list(record.category_path),
                    correlation_id=correlation_id,
                )

        return result

    async def list_expenses(
        self,
        account_email: Optional[str] = None,
        limit: int = 100,
    ) -> list[ExpenseRecord]:
        if not self._expense_storage:
            return []
        return await self._expense_storage.list_expenses(
            account_email=account_email,
            limit=limit,
        )


class CategoryFlow:
    """Audited category management on top of a CategoryTree."""

    def __init__(
        self,
        categories: CategoryTree,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._categories = categories
        self._audit_logger = audit_logger

    async def add_category(
        self,
        label: str,
        parent_id: Optional[int] = None,
        description: Optional[str] = None,
    ) -> CategoryNode:
        node = self._categories.add_category(label, parent_id, description)
        if self._audit_logger:
            await self._audit_logger.log_category_created(
                category_id=node.id,
                label=node.label,
                parent_id=node.parent_id,
            )
        return node

    async def remove_category(self, node_id: int) -> CategoryNode:
        node = self._categories.remove_category(node_id)
        if self._audit_logger:
            await self._audit_logger.log_category_deleted(
                category_id=node.id,
                label=node.label,
            )
        return node


class AppComponents(NamedTuple):
    account_engine: AccountEntryEngine
    expense_flow: ExpenseEntryFlow
    category_flow: CategoryFlow
    categories: CategoryTree
    session_issuer: JWTSessionIssuer
    audit_logger: AuditLogger
    audit_storage: InMemoryAuditStorage


def create_app_components(
    category_seed: CategorySeed = None,
    clock: Optional[Clock] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        category_seed: Category taxonomy; defaults to DEFAULT_CATEGORIES
        clock: Source of "today" for expense dates

    Returns:
        AppComponents wired to in-memory storage
    """
    audit_storage = InMemoryAuditStorage()
    audit_logger = AuditLogger(audit_storage)
    session_issuer = JWTSessionIssuer()

    categories = CategoryTree.from_seed(
        DEFAULT_CATEGORIES if category_seed is None else category_seed
    )

    account_engine = AccountEntryEngine(
        account_storage=InMemoryAccountStorage(),
        session_issuer=session_issuer,
        audit_logger=audit_logger,
    )

    expense_flow = ExpenseEntryFlow(
        categories=categories,
        expense_storage=InMemoryExpenseStorage(),
        audit_logger=audit_logger,
        clock=clock or SystemClock(),
    )

    category_flow = CategoryFlow(categories, audit_logger=audit_logger)

    return AppComponents(
        account_engine=account_engine,
        expense_flow=expense_flow,
        category_flow=category_flow,
        categories=categories,
        session_issuer=session_issuer,
        audit_logger=audit_logger,
        audit_storage=audit_storage,
    )
