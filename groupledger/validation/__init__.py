"""Split and expense validation package."""

from groupledger.validation.validator import ExpenseValidator, validate_splits

__all__ = ["ExpenseValidator", "validate_splits"]
