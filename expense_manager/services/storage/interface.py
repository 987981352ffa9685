"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

Every operation takes the owning user's id. A record is only ever
visible to, and modifiable by, the user who created it.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional
from uuid import UUID

from expense_manager.models.audit import AuditEvent
from expense_manager.models.expense import (
    Expense,
    ExpenseCategory,
    FamilyMember,
)


class ExpenseStorageInterface(ABC):
    """
    Abstract interface for expense storage operations.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def save_expense(self, expense: Expense) -> bool:
        """
        Save a new expense.

        Returns:
            True if saved successfully

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def save_expenses(self, expenses: list[Expense]) -> int:
        """
        Save several new expenses in one write.

        Returns:
            Number of expenses written

        Raises:
            StorageError: If the batch could not be written
        """
        pass

    @abstractmethod
    async def get_expense(self, user_id: str, expense_id: UUID) -> Optional[Expense]:
        """
        Retrieve one of the user's expenses by ID.

        Returns:
            The expense if found, None otherwise
        """
        pass

    @abstractmethod
    async def update_expense(self, expense: Expense) -> bool:
        """
        Replace every field of an existing expense.

        Raises:
            StorageError: If update fails
            NotFoundError: If the user has no expense with that ID
        """
        pass

    @abstractmethod
    async def delete_expense(self, user_id: str, expense_id: UUID) -> bool:
        """
        Delete one of the user's expenses.

        Returns:
            True if deleted, False if it did not exist
        """
        pass

    @abstractmethod
    async def list_expenses(
        self,
        user_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        category: Optional[ExpenseCategory] = None,
        family_member_id: Optional[UUID] = None,
    ) -> list[Expense]:
        """
        List the user's expenses with optional filters.

        Args:
            user_id: Owning user
            date_from: Expenses on or after this date
            date_to: Expenses on or before this date
            category: Filter by category
            family_member_id: Filter by tagged family member

        Returns:
            Matching expenses, newest date first
        """
        pass


class FamilyMemberStorageInterface(ABC):
    """Abstract interface for family member storage."""

    @abstractmethod
    async def save_member(self, member: FamilyMember) -> bool:
        """Save a new family member."""
        pass

    @abstractmethod
    async def get_member(self, user_id: str, member_id: UUID) -> Optional[FamilyMember]:
        """Retrieve one of the user's family members, or None."""
        pass

    @abstractmethod
    async def update_member(self, member: FamilyMember) -> bool:
        """
        Replace every field of an existing family member.

        Raises:
            NotFoundError: If the user has no member with that ID
        """
        pass

    @abstractmethod
    async def delete_member(self, user_id: str, member_id: UUID) -> bool:
        """Delete a family member. Returns False if it did not exist."""
        pass

    @abstractmethod
    async def list_members(self, user_id: str) -> list[FamilyMember]:
        """All of the user's family members, in creation order."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for a correlation ID, in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for a specific entity, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
        user_id: Optional[str] = None,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
