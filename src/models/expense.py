"""
Expense Models

An ExpenseRecord is only ever created by the expense validator, so every
record in the system has already passed amount, category and date checks.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class ExpenseErrorReason(str, Enum):
    """Why an expense submission was rejected."""
    BAD_AMOUNT = "bad-amount"
    BAD_CATEGORY = "bad-category"
    BAD_DATE = "bad-date"


class ExpenseRecord(BaseModel):
    """
    A validated expense.

    CRITICAL: Records are immutable. The category is referenced by id;
    `category_path` is a snapshot of the labels for display only.
    """
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique expense ID"
    )
    amount: Annotated[
        Decimal,
        Field(gt=0, decimal_places=2, description="Amount spent (two decimals)")
    ]
    currency: str = Field(
        default="EUR",
        min_length=3,
        max_length=3,
    )
    category_id: int = Field(
        ...,
        ge=1,
        description="Id of the leaf category"
    )
    category_path: tuple[str, ...] = ()
    date: date
    account_email: Optional[str] = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


class ExpenseValidationResult(BaseModel):
    """Result of validating an expense submission."""
    model_config = ConfigDict(frozen=True)

    is_valid: bool
    record: Optional[ExpenseRecord] = None
    reason: Optional[ExpenseErrorReason] = None
    message: Optional[str] = None

    @classmethod
    def valid(cls, record: ExpenseRecord) -> "ExpenseValidationResult":
        return cls(is_valid=True, record=record)

    @classmethod
    def invalid(
        cls,
        reason: ExpenseErrorReason,
        message: str,
    ) -> "ExpenseValidationResult":
        return cls(is_valid=False, reason=reason, message=message)
