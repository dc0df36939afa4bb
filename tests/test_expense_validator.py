"""
Tests for the expense entry validator.

The validator must NEVER silently fix input: anything it cannot take
as-is is rejected with a reason.
"""

from datetime import date
from decimal import Decimal

import pytest

from src.categories import CategoryTree
from src.config.settings import AppSettings
from src.models.expense import ExpenseErrorReason
from src.services.security import Clock
from src.validation import ExpenseEntryValidator


class FixedClock(Clock):
    def __init__(self, today: date):
        self._today = today

    def today(self) -> date:
        return self._today


TODAY = date(2020, 2, 21)


@pytest.fixture
def tree():
    return CategoryTree.from_seed({
        "Food": {"Groceries": None, "Restaurants": ["Sushi"]},
        "Healthcare": None,
    })


@pytest.fixture
def validator(tree):
    return ExpenseEntryValidator(
        tree,
        clock=FixedClock(TODAY),
        settings=AppSettings(currency_code="eur", max_expense_amount=Decimal("10000")),
    )


def leaf(tree, *labels):
    return tree.find_by_path(labels).id


class TestValidExpenses:
    """Happy path."""

    def test_basic_expense(self, validator, tree):
        """99.95 on a leaf with no date is booked for today."""
        result = validator.validate("99.95", leaf(tree, "Food", "Groceries"))

        assert result.is_valid is True
        assert result.reason is None
        record = result.record
        assert record.amount == Decimal("99.95")
        assert record.date == TODAY
        assert record.currency == "EUR"
        assert record.category_path == ("Food", "Groceries")

    def test_explicit_date(self, validator, tree):
        result = validator.validate("12", leaf(tree, "Healthcare"), "2019-12-31")
        assert result.record.date == date(2019, 12, 31)

    def test_date_object(self, validator, tree):
        result = validator.validate("12", leaf(tree, "Healthcare"), date(2021, 1, 1))
        assert result.record.date == date(2021, 1, 1)

    @pytest.mark.parametrize("blank", [None, "", "   "])
    def test_blank_date_means_today(self, validator, tree, blank):
        result = validator.validate("12", leaf(tree, "Healthcare"), blank)
        assert result.record.date == TODAY

    def test_whole_amount_gets_two_decimals(self, validator, tree):
        result = validator.validate("12", leaf(tree, "Healthcare"))
        assert str(result.record.amount) == "12.00"

    def test_decimal_amount(self, validator, tree):
        result = validator.validate(Decimal("5.5"), leaf(tree, "Healthcare"))
        assert result.record.amount == Decimal("5.50")

    def test_amount_is_stripped(self, validator, tree):
        result = validator.validate(" 7.25 ", leaf(tree, "Healthcare"))
        assert result.record.amount == Decimal("7.25")

    def test_owner_is_recorded(self, validator, tree):
        result = validator.validate(
            "1", leaf(tree, "Healthcare"), account_email="test@example.com"
        )
        assert result.record.account_email == "test@example.com"

    def test_maximum_amount_is_allowed(self, validator, tree):
        assert validator.validate("10000", leaf(tree, "Healthcare")).is_valid is True


class TestBadAmount:
    """Amount checks run first."""

    @pytest.mark.parametrize("amount", [
        "0",
        "0.00",
        "-5",
        "",
        "   ",
        None,
        "abc",
        "12,50",
        "NaN",
        "Infinity",
        "12.345",
        "0.001",
        "10000.01",
    ])
    def test_rejected(self, validator, tree, amount):
        result = validator.validate(amount, leaf(tree, "Healthcare"))

        assert result.is_valid is False
        assert result.reason == ExpenseErrorReason.BAD_AMOUNT
        assert result.record is None
        assert result.message

    def test_no_rounding(self, validator, tree):
        """12.345 is rejected, not rounded to 12.35."""
        result = validator.validate("12.345", leaf(tree, "Healthcare"))
        assert "two decimals" in result.message

    def test_amount_checked_before_category(self, validator):
        result = validator.validate("0", None)
        assert result.reason == ExpenseErrorReason.BAD_AMOUNT


class TestBadCategory:
    def test_no_category(self, validator):
        result = validator.validate("10", None)
        assert result.reason == ExpenseErrorReason.BAD_CATEGORY

    def test_unknown_category(self, validator):
        result = validator.validate("10", 999)
        assert result.reason == ExpenseErrorReason.BAD_CATEGORY

    def test_branch_category(self, validator, tree):
        """Food has children and cannot be booked against."""
        result = validator.validate("10", leaf(tree, "Food"))
        assert result.reason == ExpenseErrorReason.BAD_CATEGORY
        assert "Food" in result.message

    def test_category_checked_before_date(self, validator, tree):
        result = validator.validate("10", leaf(tree, "Food"), "not-a-date")
        assert result.reason == ExpenseErrorReason.BAD_CATEGORY


class TestBadDate:
    @pytest.mark.parametrize("value", [
        "not-a-date",
        "2020-02-30",
        "2020-13-01",
        "21/02/2020",
    ])
    def test_rejected(self, validator, tree, value):
        result = validator.validate("10", leaf(tree, "Healthcare"), value)
        assert result.reason == ExpenseErrorReason.BAD_DATE
        assert value in result.message
