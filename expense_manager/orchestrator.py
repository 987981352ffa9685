"""
Main Orchestrator for Expense Manager

This module ties together all the components and defines the
end-to-end flows for:
1. Expenses (validate → save → audit)
2. Family members (save → optional avatar upload → audit)
3. Dashboard (load month + previous month + members → aggregate)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every read and write is scoped to the signed-in user's id
- Nothing is saved without passing validation
- Every write is audited

The UI and the CLI only ever talk to these flows, never to storage.
"""

from datetime import date, datetime
from typing import Any, Optional, Union
from uuid import UUID

import structlog

from expense_manager.analytics import month_bounds, month_total, previous_month, summarize_month
from expense_manager.audit import AuditLogger, create_correlation_id
from expense_manager.config import get_settings
from expense_manager.importer import ImportReport, import_expenses
from expense_manager.models.analytics import SpendingSummary
from expense_manager.models.expense import (
    AvatarUpload,
    Expense,
    ExpenseDraft,
    FamilyMember,
    FamilyMemberDraft,
    ValidationResult,
)
from expense_manager.services.image import AvatarUploadError, CloudinaryAvatarService
from expense_manager.services.storage import (
    AuditStorageInterface,
    ExpenseStorageInterface,
    FamilyMemberStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    GoogleSheetsFamilyMemberStorage,
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    InMemoryFamilyMemberStorage,
    NotFoundError,
    StorageError,
)
from expense_manager.validation import ExpenseValidationError, ExpenseValidator


logger = structlog.get_logger(__name__)


class ExpenseFlow:
    """
    Orchestrates expense CRUD.

    Flow for writes:
    1. Validate → Two-stage validation (errors block the save)
    2. Save → Persist to storage
    3. Audit → Record the change
    """

    def __init__(
        self,
        expense_storage: ExpenseStorageInterface,
        validator: Optional[ExpenseValidator] = None,
        family_storage: Optional[FamilyMemberStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._expense_storage = expense_storage
        self._validator = validator or ExpenseValidator(family_storage)
        self._audit_logger = audit_logger

    async def list_month(self, user_id: str, month: date) -> list[Expense]:
        """All of the user's expenses dated within the month, newest first."""
        first, last = month_bounds(month)
        return await self._expense_storage.list_expenses(
            user_id,
            date_from=first,
            date_to=last,
        )

    async def _validate(
        self,
        user_id: str,
        data: Union[ExpenseDraft, dict[str, Any]],
        correlation_id: UUID,
    ) -> tuple[ExpenseDraft, ValidationResult]:
        result, draft = await self._validator.validate(user_id, data)

        if not result.is_valid:
            if self._audit_logger:
                issues = [
                    {"field": i.field, "type": i.issue_type, "message": i.message}
                    for i in result.issues
                ]
                await self._audit_logger.log_validation_failed(
                    user_id=user_id,
                    issues=issues,
                    correlation_id=correlation_id,
                )
            raise ExpenseValidationError(result)

        return draft, result

    async def _audit_save_failure(
        self,
        user_id: str,
        error: Exception,
        correlation_id: UUID,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_save_failed(
                user_id=user_id,
                entity_type="expense",
                error_message=str(error),
                correlation_id=correlation_id,
            )

    async def add_expense(
        self,
        user_id: str,
        data: Union[ExpenseDraft, dict[str, Any]],
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Expense, ValidationResult]:
        """
        Validate and save a new expense.

        Returns:
            (saved expense, validation result carrying any warnings)

        Raises:
            ExpenseValidationError: If validation found errors
            StorageError: If the save failed
        """
        correlation_id = correlation_id or create_correlation_id()
        draft, result = await self._validate(user_id, data, correlation_id)

        expense = Expense(user_id=user_id, **draft.model_dump())

        try:
            await self._expense_storage.save_expense(expense)
        except StorageError as e:
            await self._audit_save_failure(user_id, e, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_expense_created(
                user_id=user_id,
                expense_id=expense.id,
                category=expense.category.value,
                amount=expense.amount,
                correlation_id=correlation_id,
            )

        return expense, result

    async def update_expense(
        self,
        user_id: str,
        expense_id: UUID,
        data: Union[ExpenseDraft, dict[str, Any]],
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Expense, ValidationResult]:
        """
        Replace every editable field of one of the user's expenses.

        Raises:
            NotFoundError: If the user has no such expense
            ExpenseValidationError: If validation found errors
            StorageError: If the save failed
        """
        correlation_id = correlation_id or create_correlation_id()

        existing = await self._expense_storage.get_expense(user_id, expense_id)
        if existing is None:
            raise NotFoundError(f"Expense not found: {expense_id}")

        draft, result = await self._validate(user_id, data, correlation_id)
        expense = existing.apply(draft)

        try:
            await self._expense_storage.update_expense(expense)
        except StorageError as e:
            await self._audit_save_failure(user_id, e, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_expense_updated(
                user_id=user_id,
                expense_id=expense.id,
                correlation_id=correlation_id,
            )

        return expense, result

    async def delete_expense(
        self,
        user_id: str,
        expense_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """Delete one of the user's expenses. Returns False if it did not exist."""
        deleted = await self._expense_storage.delete_expense(user_id, expense_id)

        if deleted and self._audit_logger:
            await self._audit_logger.log_expense_deleted(
                user_id=user_id,
                expense_id=expense_id,
                correlation_id=correlation_id,
            )

        return deleted

    async def import_expenses(
        self,
        user_id: str,
        drafts: list[ExpenseDraft],
        batch_size: Optional[int] = None,
        source: str = "csv",
    ) -> ImportReport:
        """Bulk-save already parsed drafts in batches (see importer)."""
        return await import_expenses(
            self._expense_storage,
            user_id,
            drafts,
            batch_size=batch_size or get_settings().app.import_batch_size,
            audit_logger=self._audit_logger,
            source=source,
        )


class FamilyFlow:
    """
    Orchestrates family member CRUD.

    When an avatar is supplied it is uploaded after the member is saved
    (the storage path needs the member id), then the member's avatar_url
    is updated. A failed upload leaves the member saved without an avatar.
    """

    def __init__(
        self,
        family_storage: FamilyMemberStorageInterface,
        avatar_service: Optional[CloudinaryAvatarService] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._family_storage = family_storage
        self._avatar_service = avatar_service
        self._audit_logger = audit_logger

    async def list_members(self, user_id: str) -> list[FamilyMember]:
        return await self._family_storage.list_members(user_id)

    async def _attach_avatar(
        self,
        member: FamilyMember,
        avatar_bytes: bytes,
        avatar_upload: AvatarUpload,
        correlation_id: UUID,
    ) -> FamilyMember:
        if self._avatar_service is None:
            raise AvatarUploadError("Avatar storage is not configured")

        try:
            url = await self._avatar_service.upload_avatar(
                avatar_bytes,
                avatar_upload,
                user_id=member.user_id,
                member_id=member.id,
            )
        except AvatarUploadError as e:
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service="cloudinary",
                    error_message=str(e),
                    user_id=member.user_id,
                    correlation_id=correlation_id,
                )
            raise

        member = member.model_copy(update={"avatar_url": url})
        await self._family_storage.update_member(member)

        if self._audit_logger:
            await self._audit_logger.log_avatar_uploaded(
                user_id=member.user_id,
                member_id=member.id,
                url=url,
                correlation_id=correlation_id,
            )
        return member

    async def add_member(
        self,
        user_id: str,
        name: str,
        relation: Optional[str] = None,
        avatar_bytes: Optional[bytes] = None,
        avatar_upload: Optional[AvatarUpload] = None,
        correlation_id: Optional[UUID] = None,
    ) -> FamilyMember:
        """
        Save a new family member, then upload the avatar if one was given.

        Raises:
            pydantic.ValidationError: If the name is blank or too long
            AvatarError: If the avatar was rejected or could not be uploaded
        """
        correlation_id = correlation_id or create_correlation_id()
        draft = FamilyMemberDraft(name=name, relation=relation)

        member = FamilyMember(user_id=user_id, **draft.model_dump())
        await self._family_storage.save_member(member)

        if self._audit_logger:
            await self._audit_logger.log_family_member_saved(
                user_id=user_id,
                member_id=member.id,
                name=member.name,
                created=True,
                correlation_id=correlation_id,
            )

        if avatar_bytes and avatar_upload:
            member = await self._attach_avatar(member, avatar_bytes, avatar_upload, correlation_id)

        return member

    async def update_member(
        self,
        user_id: str,
        member_id: UUID,
        name: str,
        relation: Optional[str] = None,
        avatar_bytes: Optional[bytes] = None,
        avatar_upload: Optional[AvatarUpload] = None,
        correlation_id: Optional[UUID] = None,
    ) -> FamilyMember:
        """
        Replace a member's name and relation, keeping the current avatar
        unless a new one is supplied.

        Raises:
            NotFoundError: If the user has no such member
        """
        correlation_id = correlation_id or create_correlation_id()

        existing = await self._family_storage.get_member(user_id, member_id)
        if existing is None:
            raise NotFoundError(f"Family member not found: {member_id}")

        draft = FamilyMemberDraft(name=name, relation=relation)
        member = existing.model_copy(update={
            **draft.model_dump(),
            "updated_at": datetime.utcnow(),
        })
        await self._family_storage.update_member(member)

        if self._audit_logger:
            await self._audit_logger.log_family_member_saved(
                user_id=user_id,
                member_id=member.id,
                name=member.name,
                created=False,
                correlation_id=correlation_id,
            )

        if avatar_bytes and avatar_upload:
            member = await self._attach_avatar(member, avatar_bytes, avatar_upload, correlation_id)

        return member

    async def delete_member(
        self,
        user_id: str,
        member_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Delete a family member.

        Expenses tagged to the member keep the id; the dashboard reports
        them under "Unknown".
        """
        deleted = await self._family_storage.delete_member(user_id, member_id)

        if deleted and self._audit_logger:
            await self._audit_logger.log_family_member_deleted(
                user_id=user_id,
                member_id=member_id,
                correlation_id=correlation_id,
            )

        return deleted


class DashboardFlow:
    """Loads what the aggregation needs and returns the month's summary."""

    def __init__(
        self,
        expense_storage: ExpenseStorageInterface,
        family_storage: FamilyMemberStorageInterface,
    ):
        self._expense_storage = expense_storage
        self._family_storage = family_storage

    async def monthly_summary(self, user_id: str, month: date) -> SpendingSummary:
        first, last = month_bounds(month)
        expenses = await self._expense_storage.list_expenses(
            user_id, date_from=first, date_to=last
        )

        prev_first, prev_last = month_bounds(previous_month(month))
        previous = await self._expense_storage.list_expenses(
            user_id, date_from=prev_first, date_to=prev_last
        )

        members = await self._family_storage.list_members(user_id)

        return summarize_month(
            expenses,
            month,
            family_members=members,
            previous_month_total=month_total(previous),
        )


def create_app_components(
    use_storage: bool = True,
) -> tuple[ExpenseFlow, FamilyFlow, DashboardFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to use the configured storage backend.
                    Set to False (or STORAGE_BACKEND=memory) to keep
                    everything in memory.

    Returns:
        (expense_flow, family_flow, dashboard_flow, sheets_client)
    """
    sheets_client = None
    expense_storage: ExpenseStorageInterface
    family_storage: FamilyMemberStorageInterface
    audit_storage: AuditStorageInterface

    if use_storage and get_settings().app.storage_backend == "google_sheets":
        try:
            sheets_client = GoogleSheetsClient()
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))

    if sheets_client is not None:
        expense_storage = GoogleSheetsExpenseStorage(sheets_client)
        family_storage = GoogleSheetsFamilyMemberStorage(sheets_client)
        audit_storage = GoogleSheetsAuditStorage(sheets_client)
    else:
        expense_storage = InMemoryExpenseStorage()
        family_storage = InMemoryFamilyMemberStorage()
        audit_storage = InMemoryAuditStorage()

    audit_logger = AuditLogger(audit_storage)

    try:
        avatar_service = CloudinaryAvatarService()
    except Exception as e:
        # Cloudinary not configured - members can still be saved without avatars
        logger.warning("avatar_storage_unavailable", error=str(e))
        avatar_service = None

    expense_flow = ExpenseFlow(
        expense_storage,
        family_storage=family_storage,
        audit_logger=audit_logger,
    )
    family_flow = FamilyFlow(
        family_storage,
        avatar_service=avatar_service,
        audit_logger=audit_logger,
    )
    dashboard_flow = DashboardFlow(expense_storage, family_storage)

    return expense_flow, family_flow, dashboard_flow, sheets_client
