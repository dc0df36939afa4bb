"""Validation package."""

from src.validation.email import EmailSyntaxValidator, validate_email
from src.validation.expense import ExpenseEntryValidator

__all__ = [
    "EmailSyntaxValidator",
    "ExpenseEntryValidator",
    "validate_email",
]
