"""Expense validation package."""

from expense_manager.validation.validator import ExpenseValidationError, ExpenseValidator

__all__ = ["ExpenseValidationError", "ExpenseValidator"]
