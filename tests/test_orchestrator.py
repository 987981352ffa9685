"""Integration tests for the flows, using in-memory storage and fake services."""

import asyncio
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from pydantic import ValidationError

from expense_manager.models.audit import AuditEventType
from expense_manager.models.expense import AvatarUpload, ExpenseCategory, ExpenseDraft
from expense_manager.orchestrator import (
    DashboardFlow,
    ExpenseFlow,
    FamilyFlow,
    create_app_components,
)
from expense_manager.services.image import AvatarUploadError
from expense_manager.services.storage import (
    InMemoryExpenseStorage,
    NotFoundError,
    StorageError,
)
from expense_manager.validation import ExpenseValidationError

from conftest import OTHER_USER_ID, USER_ID, FakeAvatarService


def form(**overrides):
    data = {
        "amount": "42.00",
        "description": "Groceries",
        "category": "Shopping",
        "date": date.today().isoformat(),
    }
    data.update(overrides)
    return data


def event_types(audit_storage):
    return [e.event_type for e in audit_storage.events]


PNG_UPLOAD = AvatarUpload(original_filename="me.png", file_size_bytes=4, mime_type="image/png")


class FailingExpenseStorage(InMemoryExpenseStorage):
    async def save_expense(self, expense):
        raise StorageError("sheet unavailable")


class TestExpenseFlow:
    """Validate, save and audit."""

    def test_add_expense(self, expense_flow, expense_storage, audit_storage):
        expense, result = asyncio.run(expense_flow.add_expense(USER_ID, form()))

        assert result.is_valid
        assert expense.user_id == USER_ID
        assert expense.category == ExpenseCategory.SHOPPING
        assert asyncio.run(expense_storage.get_expense(USER_ID, expense.id)) == expense
        assert event_types(audit_storage) == [AuditEventType.EXPENSE_CREATED]

    def test_add_expense_keeps_warnings(self, expense_flow):
        _, result = asyncio.run(expense_flow.add_expense(USER_ID, form(amount="0")))
        assert result.warnings == ["Amount is zero"]

    def test_invalid_expense_not_saved(self, expense_flow, expense_storage, audit_storage):
        with pytest.raises(ExpenseValidationError, match="Amount cannot be negative"):
            asyncio.run(expense_flow.add_expense(USER_ID, form(amount="-3")))

        assert asyncio.run(expense_storage.list_expenses(USER_ID)) == []
        assert event_types(audit_storage) == [AuditEventType.EXPENSE_VALIDATION_FAILED]

    def test_foreign_family_member_rejected(self, expense_flow, family_flow):
        stranger = asyncio.run(family_flow.add_member(OTHER_USER_ID, "Stranger"))
        with pytest.raises(ExpenseValidationError):
            asyncio.run(
                expense_flow.add_expense(USER_ID, form(family_member_id=str(stranger.id)))
            )

    def test_save_failure_is_audited(self, audit_logger, audit_storage):
        flow = ExpenseFlow(FailingExpenseStorage(), audit_logger=audit_logger)
        with pytest.raises(StorageError):
            asyncio.run(flow.add_expense(USER_ID, form()))
        assert event_types(audit_storage) == [AuditEventType.SAVE_FAILED]

    def test_update_expense(self, expense_flow, expense_storage):
        expense, _ = asyncio.run(expense_flow.add_expense(USER_ID, form()))

        updated, _ = asyncio.run(
            expense_flow.update_expense(USER_ID, expense.id, form(amount="50", description="Market"))
        )

        assert updated.id == expense.id
        assert updated.created_at == expense.created_at
        stored = asyncio.run(expense_storage.get_expense(USER_ID, expense.id))
        assert stored.amount == Decimal("50")
        assert stored.description == "Market"

    def test_update_other_users_expense(self, expense_flow):
        expense, _ = asyncio.run(expense_flow.add_expense(USER_ID, form()))
        with pytest.raises(NotFoundError):
            asyncio.run(expense_flow.update_expense(OTHER_USER_ID, expense.id, form()))

    def test_delete_expense(self, expense_flow, audit_storage):
        expense, _ = asyncio.run(expense_flow.add_expense(USER_ID, form()))

        assert asyncio.run(expense_flow.delete_expense(OTHER_USER_ID, expense.id)) is False
        assert asyncio.run(expense_flow.delete_expense(USER_ID, expense.id)) is True
        assert event_types(audit_storage)[-1] == AuditEventType.EXPENSE_DELETED

    def test_list_month(self, expense_flow):
        today = date.today()
        asyncio.run(expense_flow.add_expense(USER_ID, form()))
        asyncio.run(expense_flow.add_expense(OTHER_USER_ID, form()))

        assert len(asyncio.run(expense_flow.list_month(USER_ID, today))) == 1

    def test_import_expenses(self, expense_flow, audit_storage):
        drafts = [
            ExpenseDraft(amount=Decimal(i), description=f"Item {i}", date=date(2024, 1, 1))
            for i in range(1, 6)
        ]

        report = asyncio.run(expense_flow.import_expenses(USER_ID, drafts, batch_size=2))

        assert report.imported == 5
        assert report.failed == 0
        assert report.batches == 3
        assert event_types(audit_storage) == [AuditEventType.IMPORT_COMPLETED]


class TestFamilyFlow:
    """Members are saved first; avatars are attached afterwards."""

    def test_add_member_without_avatar(self, family_flow, avatar_service):
        member = asyncio.run(family_flow.add_member(USER_ID, "  Asha ", relation="Sister"))

        assert member.name == "Asha"
        assert member.avatar_url is None
        assert avatar_service.uploads == []

    def test_blank_name_rejected(self, family_flow, family_storage):
        with pytest.raises(ValidationError):
            asyncio.run(family_flow.add_member(USER_ID, "  "))
        assert asyncio.run(family_storage.list_members(USER_ID)) == []

    def test_add_member_with_avatar(self, family_flow, family_storage, avatar_service, audit_storage):
        member = asyncio.run(
            family_flow.add_member(USER_ID, "Asha", avatar_bytes=b"\x89PNG", avatar_upload=PNG_UPLOAD)
        )

        assert member.avatar_url.endswith(f"{USER_ID}/family_members/{member.id}/avatar.png")
        stored = asyncio.run(family_storage.get_member(USER_ID, member.id))
        assert stored.avatar_url == member.avatar_url
        assert avatar_service.uploads[0][:2] == (USER_ID, member.id)
        assert event_types(audit_storage) == [
            AuditEventType.FAMILY_MEMBER_CREATED,
            AuditEventType.AVATAR_UPLOADED,
        ]

    def test_failed_upload_keeps_member(self, family_storage, audit_logger, audit_storage):
        flow = FamilyFlow(family_storage, avatar_service=FakeAvatarService(fail=True), audit_logger=audit_logger)

        with pytest.raises(AvatarUploadError):
            asyncio.run(flow.add_member(USER_ID, "Asha", avatar_bytes=b"x", avatar_upload=PNG_UPLOAD))

        members = asyncio.run(family_storage.list_members(USER_ID))
        assert [m.name for m in members] == ["Asha"]
        assert members[0].avatar_url is None
        assert AuditEventType.EXTERNAL_SERVICE_ERROR in event_types(audit_storage)

    def test_avatar_without_service(self, family_storage):
        flow = FamilyFlow(family_storage)
        with pytest.raises(AvatarUploadError, match="not configured"):
            asyncio.run(flow.add_member(USER_ID, "Asha", avatar_bytes=b"x", avatar_upload=PNG_UPLOAD))

    def test_update_keeps_avatar(self, family_flow):
        member = asyncio.run(
            family_flow.add_member(USER_ID, "Asha", avatar_bytes=b"x", avatar_upload=PNG_UPLOAD)
        )

        updated = asyncio.run(family_flow.update_member(USER_ID, member.id, "Asha K", relation=""))

        assert updated.name == "Asha K"
        assert updated.relation is None
        assert updated.avatar_url == member.avatar_url
        assert updated.updated_at >= member.updated_at

    def test_update_missing_member(self, family_flow):
        with pytest.raises(NotFoundError):
            asyncio.run(family_flow.update_member(USER_ID, uuid4(), "Nobody"))

    def test_delete_member(self, family_flow):
        member = asyncio.run(family_flow.add_member(USER_ID, "Asha"))
        assert asyncio.run(family_flow.delete_member(OTHER_USER_ID, member.id)) is False
        assert asyncio.run(family_flow.delete_member(USER_ID, member.id)) is True
        assert asyncio.run(family_flow.list_members(USER_ID)) == []


class TestDashboardFlow:
    """The dashboard loads both months and the members, then aggregates."""

    def test_monthly_summary(self, expense_flow, family_flow, dashboard_flow):
        asha = asyncio.run(family_flow.add_member(USER_ID, "Asha"))
        for amount, day, member in (("100", date(2024, 3, 4), asha.id), ("50", date(2024, 3, 9), None)):
            asyncio.run(expense_flow.add_expense(
                USER_ID,
                form(amount=amount, date=day.isoformat(), family_member_id=member),
            ))
        asyncio.run(expense_flow.add_expense(USER_ID, form(amount="100", date="2024-02-10")))
        asyncio.run(expense_flow.add_expense(OTHER_USER_ID, form(amount="999", date="2024-03-05")))

        summary = asyncio.run(dashboard_flow.monthly_summary(USER_ID, date(2024, 3, 15)))

        assert summary.month == date(2024, 3, 1)
        assert summary.total == Decimal("150.00")
        assert summary.count == 2
        assert summary.percent_vs_previous_month == Decimal("50.0")
        assert [(m.name, m.percentage) for m in summary.family_member_totals] == [
            ("Asha", Decimal("100.0")),
        ]

    def test_deleted_member_shows_as_unknown(self, expense_flow, family_flow, dashboard_flow):
        asha = asyncio.run(family_flow.add_member(USER_ID, "Asha"))
        asyncio.run(expense_flow.add_expense(
            USER_ID, form(date="2024-03-04", family_member_id=str(asha.id))
        ))
        asyncio.run(family_flow.delete_member(USER_ID, asha.id))

        summary = asyncio.run(dashboard_flow.monthly_summary(USER_ID, date(2024, 3, 1)))
        assert summary.family_member_totals[0].name == "Unknown"

    def test_largest_amount_still_summarizes(self, expense_flow, dashboard_flow):
        with pytest.raises(ExpenseValidationError, match="Amount is too large"):
            asyncio.run(expense_flow.add_expense(USER_ID, form(amount="1E+27", date="2024-03-04")))
        _, result = asyncio.run(expense_flow.add_expense(
            USER_ID, form(amount="9999999999.99", date="2024-03-04")
        ))
        asyncio.run(expense_flow.add_expense(USER_ID, form(amount="9999999999.99", date="2024-03-05")))
        assert "Amount (9,999,999,999.99) seems unusually high" in result.warnings

        summary = asyncio.run(dashboard_flow.monthly_summary(USER_ID, date(2024, 3, 1)))

        assert summary.total == Decimal("19999999999.98")
        assert summary.average_per_day == Decimal("645161290.32")
        assert summary.category_totals[0].value == Decimal("19999999999.98")

    def test_empty_month(self, dashboard_flow):
        summary = asyncio.run(dashboard_flow.monthly_summary(USER_ID, date(2024, 3, 1)))
        assert summary.is_empty
        assert summary.percent_vs_previous_month is None


class TestCreateAppComponents:
    """The factory falls back to memory without configured storage."""

    def test_in_memory_components(self):
        expense_flow, family_flow, dashboard_flow, sheets_client = create_app_components(use_storage=False)

        assert sheets_client is None
        assert isinstance(expense_flow, ExpenseFlow)
        assert isinstance(family_flow, FamilyFlow)
        assert isinstance(dashboard_flow, DashboardFlow)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
