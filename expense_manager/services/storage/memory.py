"""
In-Memory Storage Implementation

Dict-backed implementations of the storage interfaces. Used by the test
suite and for running the app locally without Google credentials
(STORAGE_BACKEND=memory). Nothing survives a restart.
"""

from datetime import date
from typing import Optional
from uuid import UUID

from expense_manager.models.audit import AuditEvent
from expense_manager.models.expense import (
    Expense,
    ExpenseCategory,
    FamilyMember,
)
from expense_manager.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    ExpenseStorageInterface,
    FamilyMemberStorageInterface,
    NotFoundError,
)


class InMemoryExpenseStorage(ExpenseStorageInterface):
    """Expenses keyed by id; ownership is checked on every access."""

    def __init__(self):
        self._expenses: dict[UUID, Expense] = {}

    def _owned(self, user_id: str, expense_id: UUID) -> Optional[Expense]:
        expense = self._expenses.get(expense_id)
        if expense is None or expense.user_id != user_id:
            return None
        return expense

    async def save_expense(self, expense: Expense) -> bool:
        if expense.id in self._expenses:
            raise DuplicateError(f"Expense already exists: {expense.id}")
        self._expenses[expense.id] = expense
        return True

    async def save_expenses(self, expenses: list[Expense]) -> int:
        for expense in expenses:
            await self.save_expense(expense)
        return len(expenses)

    async def get_expense(self, user_id: str, expense_id: UUID) -> Optional[Expense]:
        return self._owned(user_id, expense_id)

    async def update_expense(self, expense: Expense) -> bool:
        if self._owned(expense.user_id, expense.id) is None:
            raise NotFoundError(f"Expense not found: {expense.id}")
        self._expenses[expense.id] = expense
        return True

    async def delete_expense(self, user_id: str, expense_id: UUID) -> bool:
        if self._owned(user_id, expense_id) is None:
            return False
        del self._expenses[expense_id]
        return True

    async def list_expenses(
        self,
        user_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        category: Optional[ExpenseCategory] = None,
        family_member_id: Optional[UUID] = None,
    ) -> list[Expense]:
        results = []
        for expense in self._expenses.values():
            if expense.user_id != user_id:
                continue
            if date_from and expense.date < date_from:
                continue
            if date_to and expense.date > date_to:
                continue
            if category and expense.category != category:
                continue
            if family_member_id and expense.family_member_id != family_member_id:
                continue
            results.append(expense)

        results.sort(key=lambda e: e.date, reverse=True)
        return results


class InMemoryFamilyMemberStorage(FamilyMemberStorageInterface):
    """Family members in insertion order."""

    def __init__(self):
        self._members: dict[UUID, FamilyMember] = {}

    async def save_member(self, member: FamilyMember) -> bool:
        if member.id in self._members:
            raise DuplicateError(f"Family member already exists: {member.id}")
        self._members[member.id] = member
        return True

    async def get_member(self, user_id: str, member_id: UUID) -> Optional[FamilyMember]:
        member = self._members.get(member_id)
        if member is None or member.user_id != user_id:
            return None
        return member

    async def update_member(self, member: FamilyMember) -> bool:
        if await self.get_member(member.user_id, member.id) is None:
            raise NotFoundError(f"Family member not found: {member.id}")
        self._members[member.id] = member
        return True

    async def delete_member(self, user_id: str, member_id: UUID) -> bool:
        if await self.get_member(user_id, member_id) is None:
            return False
        del self._members[member_id]
        return True

    async def list_members(self, user_id: str) -> list[FamilyMember]:
        return [m for m in self._members.values() if m.user_id == user_id]


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return sorted(
            (e for e in self.events if e.correlation_id == correlation_id),
            key=lambda e: e.timestamp,
        )

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        return sorted(
            (
                e for e in self.events
                if e.entity_type == entity_type and e.entity_id == entity_id
            ),
            key=lambda e: e.timestamp,
        )

    async def get_recent_events(
        self,
        limit: int = 100,
        user_id: Optional[str] = None,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if user_id is None or e.user_id == user_id]
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
