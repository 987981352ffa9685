"""Tests for the in-memory storage backend."""

import asyncio
from datetime import date
from uuid import uuid4

import pytest

from expense_manager.models.audit import AuditEventBuilder
from expense_manager.models.expense import ExpenseCategory, FamilyMember
from expense_manager.services.storage import DuplicateError, NotFoundError

from conftest import OTHER_USER_ID, USER_ID, make_expense


class TestExpenseStorage:
    """Expenses are scoped to their owner."""

    def test_save_and_get(self, expense_storage):
        expense = make_expense("10")
        asyncio.run(expense_storage.save_expense(expense))

        assert asyncio.run(expense_storage.get_expense(USER_ID, expense.id)) == expense
        assert asyncio.run(expense_storage.get_expense(OTHER_USER_ID, expense.id)) is None

    def test_duplicate_id(self, expense_storage):
        expense = make_expense("10")
        asyncio.run(expense_storage.save_expense(expense))
        with pytest.raises(DuplicateError):
            asyncio.run(expense_storage.save_expense(expense))

    def test_list_filters_and_orders(self, expense_storage):
        early = make_expense("1", ExpenseCategory.FOOD, date(2024, 1, 3))
        late = make_expense("2", ExpenseCategory.BILLS, date(2024, 1, 28))
        february = make_expense("3", on=date(2024, 2, 1))
        foreign = make_expense("4", on=date(2024, 1, 10), user_id=OTHER_USER_ID)
        asyncio.run(expense_storage.save_expenses([early, late, february, foreign]))

        january = asyncio.run(
            expense_storage.list_expenses(USER_ID, date(2024, 1, 1), date(2024, 1, 31))
        )
        assert [e.id for e in january] == [late.id, early.id]

        bills = asyncio.run(expense_storage.list_expenses(USER_ID, category=ExpenseCategory.BILLS))
        assert [e.id for e in bills] == [late.id]

    def test_list_by_family_member(self, expense_storage):
        member_id = uuid4()
        tagged = make_expense("5", family_member_id=member_id)
        asyncio.run(expense_storage.save_expenses([tagged, make_expense("6")]))

        result = asyncio.run(expense_storage.list_expenses(USER_ID, family_member_id=member_id))
        assert [e.id for e in result] == [tagged.id]

    def test_update_requires_owner(self, expense_storage):
        expense = make_expense("10")
        asyncio.run(expense_storage.save_expense(expense))

        hijacked = expense.model_copy(update={"user_id": OTHER_USER_ID})
        with pytest.raises(NotFoundError):
            asyncio.run(expense_storage.update_expense(hijacked))

    def test_delete(self, expense_storage):
        expense = make_expense("10")
        asyncio.run(expense_storage.save_expense(expense))

        assert asyncio.run(expense_storage.delete_expense(OTHER_USER_ID, expense.id)) is False
        assert asyncio.run(expense_storage.delete_expense(USER_ID, expense.id)) is True
        assert asyncio.run(expense_storage.delete_expense(USER_ID, expense.id)) is False


class TestFamilyMemberStorage:
    """Family members are scoped to their owner."""

    def test_list_only_own_members(self, family_storage):
        mine = FamilyMember(user_id=USER_ID, name="Asha")
        theirs = FamilyMember(user_id=OTHER_USER_ID, name="Ravi")
        asyncio.run(family_storage.save_member(mine))
        asyncio.run(family_storage.save_member(theirs))

        assert asyncio.run(family_storage.list_members(USER_ID)) == [mine]

    def test_update_missing(self, family_storage):
        with pytest.raises(NotFoundError):
            asyncio.run(family_storage.update_member(FamilyMember(user_id=USER_ID, name="Ghost")))

    def test_delete(self, family_storage):
        member = FamilyMember(user_id=USER_ID, name="Asha")
        asyncio.run(family_storage.save_member(member))

        assert asyncio.run(family_storage.delete_member(USER_ID, member.id)) is True
        assert asyncio.run(family_storage.get_member(USER_ID, member.id)) is None


class TestAuditStorage:
    """Audit events can be looked up by correlation id and entity."""

    def test_lookup(self, audit_storage):
        correlation_id = uuid4()
        expense_id = uuid4()
        created = AuditEventBuilder.expense_created(
            USER_ID, expense_id, "Food", "10", correlation_id=correlation_id
        )
        deleted = AuditEventBuilder.expense_deleted(USER_ID, expense_id)
        asyncio.run(audit_storage.append_event(created))
        asyncio.run(audit_storage.append_event(deleted))

        by_correlation = asyncio.run(audit_storage.get_events_by_correlation_id(correlation_id))
        assert by_correlation == [created]

        by_entity = asyncio.run(audit_storage.get_events_by_entity("expense", expense_id))
        assert len(by_entity) == 2

        recent = asyncio.run(audit_storage.get_recent_events(limit=1))
        assert len(recent) == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
