"""
Tests for Expense Manager

Test strategy:
1. Unit tests for individual components (models, aggregation, validators)
2. Integration tests for flows (with in-memory storage and fake services)
3. No real API calls in tests
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

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
from expense_manager.models.analytics import SpendingSummary
from expense_manager.models.audit import (
    AUDIT_COLUMNS,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestExpenseModels:
    """Tests for expense-related Pydantic models."""

    def test_draft_creation(self):
        """Test ExpenseDraft model creation with defaults."""
        draft = ExpenseDraft(
            amount=Decimal("12.50"),
            description="Lunch",
            date=date(2024, 1, 5),
        )
        assert draft.category == ExpenseCategory.FOOD
        assert draft.tags is None
        assert draft.family_member_id is None

    def test_draft_strips_whitespace(self):
        """Test that whitespace is stripped from the description."""
        draft = ExpenseDraft(amount=Decimal("1"), description="  Bus  ", date=date(2024, 1, 5))
        assert draft.description == "Bus"

    def test_draft_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValidationError):
            ExpenseDraft(amount=Decimal("-1"), description="Refund", date=date(2024, 1, 5))

    def test_draft_accepts_zero_amount(self):
        draft = ExpenseDraft(amount=Decimal("0"), description="Free sample", date=date(2024, 1, 5))
        assert draft.amount == Decimal("0")

    def test_draft_rejects_oversized_amount(self):
        """Amounts are capped at 12 digits so monthly sums stay exact."""
        with pytest.raises(ValidationError):
            ExpenseDraft(amount=Decimal("1E+27"), description="Typo", date=date(2024, 1, 5))
        with pytest.raises(ValidationError):
            ExpenseDraft(amount=Decimal("10000000000"), description="Typo", date=date(2024, 1, 5))

        draft = ExpenseDraft(amount=Decimal("9999999999.99"), description="House", date=date(2024, 1, 5))
        assert draft.amount == Decimal("9999999999.99")

    def test_draft_rejects_more_than_two_decimals(self):
        with pytest.raises(ValidationError):
            ExpenseDraft(amount=Decimal("1.234"), description="Gum", date=date(2024, 1, 5))

    def test_draft_rejects_blank_description(self):
        with pytest.raises(ValidationError):
            ExpenseDraft(amount=Decimal("5"), description="   ", date=date(2024, 1, 5))

    def test_draft_rejects_unknown_category(self):
        with pytest.raises(ValidationError):
            ExpenseDraft(
                amount=Decimal("5"),
                description="Thing",
                category="Gadgets",
                date=date(2024, 1, 5),
            )

    def test_tags_are_normalized(self):
        """Tags are stripped, blanks dropped and duplicates removed in order."""
        draft = ExpenseDraft(
            amount=Decimal("5"),
            description="Thing",
            date=date(2024, 1, 5),
            tags=[" work ", "", "travel", "work"],
        )
        assert draft.tags == ["work", "travel"]

    def test_all_blank_tags_become_none(self):
        draft = ExpenseDraft(
            amount=Decimal("5"),
            description="Thing",
            date=date(2024, 1, 5),
            tags=["  ", ""],
        )
        assert draft.tags is None

    def test_expense_apply_replaces_editable_fields(self):
        """Test Expense.apply keeps identity and bumps updated_at."""
        expense = Expense(
            user_id="user-1",
            amount=Decimal("10"),
            description="Old",
            date=date(2024, 1, 1),
        )
        draft = ExpenseDraft(
            amount=Decimal("20"),
            description="New",
            category=ExpenseCategory.BILLS,
            date=date(2024, 1, 2),
        )
        updated = expense.apply(draft)

        assert updated.id == expense.id
        assert updated.user_id == "user-1"
        assert updated.created_at == expense.created_at
        assert updated.updated_at >= expense.updated_at
        assert updated.description == "New"
        assert updated.category == ExpenseCategory.BILLS
        assert expense.description == "Old"

    def test_expense_requires_user(self):
        with pytest.raises(ValidationError):
            Expense(user_id="", amount=Decimal("1"), description="x", date=date(2024, 1, 1))


class TestFamilyMemberModels:
    """Tests for family member models."""

    def test_name_is_trimmed(self):
        draft = FamilyMemberDraft(name="  Asha ")
        assert draft.name == "Asha"

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError):
            FamilyMemberDraft(name="   ")

    def test_blank_relation_becomes_none(self):
        draft = FamilyMemberDraft(name="Asha", relation="  ")
        assert draft.relation is None

    def test_member_defaults(self):
        member = FamilyMember(user_id="user-1", name="Asha")
        assert member.avatar_url is None
        assert member.id is not None


class TestAvatarUpload:
    """Tests for avatar upload metadata."""

    @pytest.mark.parametrize(
        "filename,expected",
        [
            ("me.PNG", "png"),
            ("photo.jpeg", "jpeg"),
            ("anim.gif", "gif"),
            ("pic.webp", "webp"),
            ("scan.tiff", "jpg"),
            ("noextension", "jpg"),
        ],
    )
    def test_extension(self, filename, expected):
        upload = AvatarUpload(original_filename=filename, file_size_bytes=10, mime_type="image/png")
        assert upload.extension == expected

    def test_rejects_non_image_mime_type(self):
        with pytest.raises(ValidationError, match="Unsupported file type"):
            AvatarUpload(original_filename="doc.pdf", file_size_bytes=10, mime_type="application/pdf")


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.EXPENSE_CREATED,
            description="Expense added",
        )
        assert event.event_type == AuditEventType.EXPENSE_CREATED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.EXPENSE_CREATED,
            user_id="user-1",
            description="Expense added",
            details={"category": "Food", "amount": "12.50"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "expense_created"
        assert log_dict["user_id"] == "user-1"
        assert log_dict["details"]["category"] == "Food"

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.SESSION_CREATED,
            user_id="user-1",
            description="Session cookie issued",
            is_user_action=True,
        )
        row = event.to_sheets_row()
        assert len(row) == len(AUDIT_COLUMNS)
        assert row[2] == "session_created"
        assert row[4] == "user-1"
        assert row[11] == "True"

    def test_builder_expense_created(self):
        """Test AuditEventBuilder.expense_created."""
        expense_id = uuid4()
        correlation_id = uuid4()

        event = AuditEventBuilder.expense_created(
            user_id="user-1",
            expense_id=expense_id,
            category="Food",
            amount="12.50",
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.EXPENSE_CREATED
        assert event.entity_id == expense_id
        assert event.correlation_id == correlation_id
        assert event.is_user_action is True

    def test_builder_family_member_saved(self):
        member_id = uuid4()
        created = AuditEventBuilder.family_member_saved("user-1", member_id, "Asha", created=True)
        updated = AuditEventBuilder.family_member_saved("user-1", member_id, "Asha", created=False)
        assert created.event_type == AuditEventType.FAMILY_MEMBER_CREATED
        assert updated.event_type == AuditEventType.FAMILY_MEMBER_UPDATED

    def test_builder_import_severity(self):
        clean = AuditEventBuilder.import_completed("user-1", imported=5, failed=0, source="a.csv")
        partial = AuditEventBuilder.import_completed("user-1", imported=5, failed=2, source="a.csv")
        assert clean.severity == AuditSeverity.INFO
        assert partial.severity == AuditSeverity.WARNING


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            schema_valid=False,
            semantic_valid=False,
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="missing",
                    message="Amount is required",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1
        assert result.error_messages == ["Amount is required"]

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            schema_valid=True,
            semantic_valid=True,
            is_valid=True,
            issues=[
                ValidationIssue(
                    field="date",
                    issue_type="future_date",
                    message="Date in future",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0


class TestCategoriesAndSummary:
    """Tests for the category enum and summary defaults."""

    def test_all_categories_exist(self):
        expected = [
            "Food", "Transport", "Shopping", "Bills",
            "Entertainment", "Healthcare", "Education", "Other",
        ]
        assert [c.value for c in ExpenseCategory] == expected

    def test_empty_summary(self):
        summary = SpendingSummary(month=date(2024, 1, 1))
        assert summary.is_empty
        assert summary.total == Decimal("0")
        assert summary.biggest_expense is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
