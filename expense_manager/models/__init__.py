"""
Data Models Package

This package contains all Pydantic models used in the Expense Manager.
All data flowing through the system must conform to these schemas.
"""

from expense_manager.models.expense import (
    AvatarUpload,
    Expense,
    ExpenseCategory,
    ExpenseDraft,
    FamilyMember,
    FamilyMemberDraft,
    ValidationIssue,
    ValidationResult,
)
from expense_manager.models.analytics import (
    CategoryTotal,
    DailyTotal,
    FamilyMemberTotal,
    SpendingSummary,
)
from expense_manager.models.auth import AuthUser, SignInResult
from expense_manager.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Expense models
    "AvatarUpload",
    "Expense",
    "ExpenseCategory",
    "ExpenseDraft",
    "FamilyMember",
    "FamilyMemberDraft",
    "ValidationIssue",
    "ValidationResult",
    # Analytics models
    "CategoryTotal",
    "DailyTotal",
    "FamilyMemberTotal",
    "SpendingSummary",
    # Auth models
    "AuthUser",
    "SignInResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
