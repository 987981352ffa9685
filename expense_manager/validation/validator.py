"""
Two-Stage Validation Pipeline

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Type checking
- Required field presence (description, amount, date)
- Ranges and enumerations (amount >= 0, known category)
- This catches malformed form or import data

STAGE 2 - SEMANTIC VALIDATION:
- Future date detection
- Unusually old dates
- Unusually high or zero amounts
- Family member ownership
- This catches suspicious data and cross-user references

Stage 2 only runs once stage 1 has produced a well-formed draft.

IMPORTANT: Validation NEVER silently fixes issues.
Errors block the save; warnings are reported to the user.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Optional, Union

from pydantic import ValidationError

from expense_manager.config import get_settings
from expense_manager.models.expense import (
    ExpenseDraft,
    ValidationIssue,
    ValidationResult,
)
from expense_manager.services.storage import FamilyMemberStorageInterface


class ExpenseValidationError(Exception):
    """Raised by the flows when an expense fails validation."""

    def __init__(self, result: ValidationResult):
        self.result = result
        super().__init__("; ".join(result.error_messages) or "Expense is invalid")


class ExpenseValidator:
    """
    Validates expense input through a two-stage pipeline.

    Stage 1: Schema validation (no storage needed)
    Stage 2: Semantic validation (needs storage for the ownership check)
    """

    def __init__(
        self,
        family_storage: Optional[FamilyMemberStorageInterface] = None,
    ):
        """
        Initialize validator.

        Args:
            family_storage: Used to confirm a referenced family member
                           belongs to the same user. If None, the
                           ownership check is skipped.
        """
        self._family_storage = family_storage
        self._settings = get_settings().app

    def _validate_schema(
        self,
        data: Union[ExpenseDraft, dict[str, Any]],
    ) -> tuple[Optional[ExpenseDraft], list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (draft or None, list_of_issues)
        """
        if isinstance(data, ExpenseDraft):
            return data, []

        try:
            return ExpenseDraft.model_validate(data), []
        except ValidationError as e:
            issues = []
            for error in e.errors():
                field = str(error["loc"][0]) if error["loc"] else "expense"
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="missing" if error["type"] == "missing" else "invalid_value",
                    message=self._schema_message(field, error),
                    severity="error",
                ))
            return None, issues

    @staticmethod
    def _schema_message(field: str, error: dict) -> str:
        if error["type"] == "missing":
            return f"{field.replace('_', ' ').capitalize()} is required"
        if field == "amount" and error["type"] == "greater_than_equal":
            return "Amount cannot be negative"
        if field == "amount" and error["type"] in ("decimal_max_digits", "decimal_whole_digits"):
            return "Amount is too large"
        if field == "category" and error["type"] == "enum":
            return f"Unknown category: {error.get('input')}"
        if field == "description" and error["type"] == "string_too_short":
            return "Description is required"
        return f"{field.replace('_', ' ').capitalize()}: {error['msg']}"

    def _validate_semantic(
        self,
        draft: ExpenseDraft,
    ) -> list[ValidationIssue]:
        """
        Stage 2 checks that need no storage.

        Checks:
        - Future dates
        - Unusually old dates
        - Unusually high amounts
        - Zero amounts
        """
        issues = []
        today = date.today()

        # Future date check (with tolerance)
        max_future_date = today + timedelta(days=self._settings.future_date_tolerance_days)
        if draft.date > max_future_date:
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Expense date ({draft.date}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        min_reasonable_date = today - timedelta(days=self._settings.old_date_warning_days)
        if draft.date < min_reasonable_date:
            issues.append(ValidationIssue(
                field="date",
                issue_type="suspicious_date",
                message=f"Expense date ({draft.date}) seems unusually old",
                severity="warning",
                suggested_fix="Please verify the date",
            ))

        max_amount = Decimal(str(self._settings.max_expense_amount))
        if draft.amount > max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount ({draft.amount:,.2f}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        if draft.amount == 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message="Amount is zero",
                severity="warning",
                suggested_fix="Enter the amount spent",
            ))

        return issues

    async def _check_family_member(
        self,
        user_id: str,
        draft: ExpenseDraft,
    ) -> list[ValidationIssue]:
        """The referenced family member must exist and belong to the user."""
        if self._family_storage is None or draft.family_member_id is None:
            return []

        member = await self._family_storage.get_member(user_id, draft.family_member_id)
        if member is None:
            return [ValidationIssue(
                field="family_member_id",
                issue_type="invalid_reference",
                message="Selected family member does not exist",
                severity="error",
                suggested_fix="Choose one of your family members or leave it empty",
            )]
        return []

    async def validate(
        self,
        user_id: str,
        data: Union[ExpenseDraft, dict[str, Any]],
    ) -> tuple[ValidationResult, Optional[ExpenseDraft]]:
        """
        Run full two-stage validation pipeline.

        Args:
            user_id: Owner of the expense being saved
            data: Raw form/import fields or an already-built draft

        Returns:
            (ValidationResult, draft). The draft is None when stage 1 failed.
        """
        draft, all_issues = self._validate_schema(data)
        schema_valid = draft is not None

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if draft is not None:
            semantic_issues = self._validate_semantic(draft)
            semantic_issues.extend(await self._check_family_member(user_id, draft))
            all_issues.extend(semantic_issues)
            semantic_valid = not any(i.severity == "error" for i in semantic_issues)

        warnings = [issue.message for issue in all_issues if issue.severity == "warning"]

        result = ValidationResult(
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=warnings,
        )
        return result, draft

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what we show in the UI next to the form.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed."

        lines = []

        if result.has_errors:
            lines.append("❌ Please fix the following:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
