"""
Expense Entry Validation

Checks a submitted expense form before anything is stored:

1. AMOUNT:   a positive currency amount with at most two decimals
2. CATEGORY: an existing leaf of the category tree
3. DATE:     an ISO calendar date, defaulting to today

Checks run in that order and the first failure is reported.

IMPORTANT: Validation NEVER silently fixes issues. "12.345" is rejected,
not rounded.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from src.categories import CategoryTree
from src.config import get_settings
from src.config.settings import AppSettings
from src.models.expense import (
    ExpenseErrorReason,
    ExpenseRecord,
    ExpenseValidationResult,
)
from src.services.security import Clock, SystemClock


CENT = Decimal("0.01")


class ExpenseEntryValidator:
    """Validates expense submissions against one category tree."""

    def __init__(
        self,
        categories: CategoryTree,
        clock: Optional[Clock] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._categories = categories
        self._clock = clock or SystemClock()
        self._settings = settings or get_settings().app

    def validate(
        self,
        amount: Union[str, Decimal, None],
        category_leaf_id: Optional[int],
        date: Union[str, date, None] = None,
        account_email: Optional[str] = None,
    ) -> ExpenseValidationResult:
        """
        Validate an expense submission.

        Args:
            amount: Amount as typed, e.g. "99.95"
            category_leaf_id: Id of the selected category
            date: ISO date ("2020-02-21"); None or blank means today
            account_email: Owner of the expense, if known

        Returns:
            ExpenseValidationResult holding an ExpenseRecord when valid
        """
        parsed_amount, message = self._parse_amount(amount)
        if parsed_amount is None:
            return ExpenseValidationResult.invalid(ExpenseErrorReason.BAD_AMOUNT, message)

        message = self._check_category(category_leaf_id)
        if message:
            return ExpenseValidationResult.invalid(ExpenseErrorReason.BAD_CATEGORY, message)

        parsed_date, message = self._parse_date(date)
        if parsed_date is None:
            return ExpenseValidationResult.invalid(ExpenseErrorReason.BAD_DATE, message)

        record = ExpenseRecord(
            amount=parsed_amount,
            currency=self._settings.currency_code,
            category_id=category_leaf_id,
            category_path=self._categories.path(category_leaf_id),
            date=parsed_date,
            account_email=account_email,
        )
        return ExpenseValidationResult.valid(record)

    def _parse_amount(
        self,
        amount: Union[str, Decimal, None],
    ) -> tuple[Optional[Decimal], str]:
        if amount is None or (isinstance(amount, str) and not amount.strip()):
            return None, "Please enter an amount"

        try:
            value = amount if isinstance(amount, Decimal) else Decimal(amount.strip())
        except (InvalidOperation, AttributeError):
            return None, f"'{amount}' is not a valid amount"

        if not value.is_finite():
            return None, f"'{amount}' is not a valid amount"
        if value.as_tuple().exponent < -2:
            return None, "Amounts can have at most two decimals"
        if value <= 0:
            return None, "The amount must be greater than zero"
        if value > self._settings.max_expense_amount:
            return None, (
                f"The amount {value} is larger than the maximum of "
                f"{self._settings.max_expense_amount}"
            )

        return value.quantize(CENT), ""

    def _check_category(self, category_leaf_id: Optional[int]) -> str:
        if category_leaf_id is None:
            return "Please choose a category"

        node = self._categories.get(category_leaf_id)
        if node is None:
            return f"Category {category_leaf_id} does not exist"
        if not node.is_leaf:
            return f"'{node.label}' has subcategories, please choose one of them"
        return ""

    def _parse_date(
        self,
        value: Union[str, date, None],
    ) -> tuple[Optional[date], str]:
        if value is None or (isinstance(value, str) and not value.strip()):
            return self._clock.today(), ""
        if isinstance(value, date):
            return value, ""

        try:
            return date.fromisoformat(value.strip()), ""
        except ValueError:
            return None, f"'{value}' is not a valid date (expected YYYY-MM-DD)"
