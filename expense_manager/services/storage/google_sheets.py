"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the storage backend because:
1. Users can view and export their data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions (we handle this with careful ordering)
- Limited query capabilities (we filter in Python)

Every row carries the owning user_id and every lookup matches on it,
which is what keeps one user's records invisible to another.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from expense_manager.config import get_settings
from expense_manager.models.audit import (
    AUDIT_COLUMNS,
    AuditEvent,
    AuditEventType,
    AuditSeverity,
)
from expense_manager.models.expense import (
    Expense,
    ExpenseCategory,
    FamilyMember,
)
from expense_manager.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    ExpenseStorageInterface,
    FamilyMemberStorageInterface,
    NotFoundError,
    StorageError,
)


logger = structlog.get_logger(__name__)


EXPENSE_COLUMNS = [
    "id",
    "user_id",
    "created_at",
    "updated_at",
    "amount",
    "description",
    "category",
    "date",
    "tags_json",
    "family_member_id",
]

FAMILY_MEMBER_COLUMNS = [
    "id",
    "user_id",
    "created_at",
    "updated_at",
    "name",
    "relation",
    "avatar_url",
]


def _safe_getter(row: list):
    """Column accessor that tolerates short rows and blank cells."""
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default
    return safe_get


def _stored_category(value: str) -> ExpenseCategory:
    """Category for a stored name; names outside the current set read as Other."""
    try:
        return ExpenseCategory(value)
    except ValueError:
        logger.info("unlisted_expense_category", category=value)
        return ExpenseCategory.OTHER


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
            logger.info("worksheet_created", title=title)
        return sheet

    def get_expenses_sheet(self) -> gspread.Worksheet:
        """Get or create the Expenses worksheet."""
        return self._get_or_create_sheet(
            self._settings.expenses_sheet_name, EXPENSE_COLUMNS, rows=1000
        )

    def get_family_members_sheet(self) -> gspread.Worksheet:
        """Get or create the FamilyMembers worksheet."""
        return self._get_or_create_sheet(
            self._settings.family_members_sheet_name, FAMILY_MEMBER_COLUMNS, rows=200
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


def _find_row_number(all_rows: list[list], user_id: str, record_id: UUID) -> Optional[int]:
    """1-based sheet row of the user's record, skipping the header row."""
    for idx, row in enumerate(all_rows[1:], start=2):
        if len(row) > 1 and row[0] == str(record_id) and row[1] == user_id:
            return idx
    return None


class GoogleSheetsExpenseStorage(ExpenseStorageInterface):
    """
    Google Sheets implementation of expense storage.

    Expenses are stored one per row; tags are JSON-serialized.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _expense_to_row(self, expense: Expense) -> list:
        """Convert an Expense to a spreadsheet row."""
        return [
            str(expense.id),
            expense.user_id,
            expense.created_at.isoformat(),
            expense.updated_at.isoformat(),
            str(expense.amount),
            expense.description,
            expense.category.value,
            expense.date.isoformat(),
            json.dumps(expense.tags) if expense.tags else "",
            str(expense.family_member_id) if expense.family_member_id else "",
        ]

    def _row_to_expense(self, row: list) -> Expense:
        """Convert a spreadsheet row to an Expense."""
        safe_get = _safe_getter(row)
        tags_json = safe_get(8)

        return Expense(
            id=UUID(safe_get(0)),
            user_id=safe_get(1),
            created_at=datetime.fromisoformat(safe_get(2)),
            updated_at=datetime.fromisoformat(safe_get(3)),
            amount=Decimal(safe_get(4, "0")),
            description=safe_get(5),
            category=_stored_category(safe_get(6, ExpenseCategory.OTHER.value)),
            date=date.fromisoformat(safe_get(7)),
            tags=json.loads(tags_json) if tags_json else None,
            family_member_id=UUID(safe_get(9)) if safe_get(9) else None,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save_expense(self, expense: Expense) -> bool:
        """Append an expense row."""
        try:
            sheet = self._client.get_expenses_sheet()
            sheet.append_row(self._expense_to_row(expense), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to save expense: {e}")

    async def save_expenses(self, expenses: list[Expense]) -> int:
        """Append several expense rows in one API call."""
        if not expenses:
            return 0
        try:
            sheet = self._client.get_expenses_sheet()
            sheet.append_rows(
                [self._expense_to_row(e) for e in expenses],
                value_input_option="RAW",
            )
            return len(expenses)
        except Exception as e:
            raise StorageError(f"Failed to save expenses: {e}")

    async def get_expense(self, user_id: str, expense_id: UUID) -> Optional[Expense]:
        """Retrieve an expense by its ID."""
        try:
            sheet = self._client.get_expenses_sheet()
            all_rows = sheet.get_all_values()
            row_number = _find_row_number(all_rows, user_id, expense_id)
            if row_number is None:
                return None
            return self._row_to_expense(all_rows[row_number - 1])
        except Exception as e:
            raise StorageError(f"Failed to get expense: {e}")

    async def update_expense(self, expense: Expense) -> bool:
        """Rewrite an existing expense row."""
        try:
            sheet = self._client.get_expenses_sheet()
            row_number = _find_row_number(sheet.get_all_values(), expense.user_id, expense.id)
            if row_number is None:
                raise NotFoundError(f"Expense not found: {expense.id}")

            sheet.update(
                range_name=f"A{row_number}",
                values=[self._expense_to_row(expense)],
                value_input_option="RAW",
            )
            return True
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update expense: {e}")

    async def delete_expense(self, user_id: str, expense_id: UUID) -> bool:
        """Delete an expense row."""
        try:
            sheet = self._client.get_expenses_sheet()
            row_number = _find_row_number(sheet.get_all_values(), user_id, expense_id)
            if row_number is None:
                return False
            sheet.delete_rows(row_number)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete expense: {e}")

    async def list_expenses(
        self,
        user_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        category: Optional[ExpenseCategory] = None,
        family_member_id: Optional[UUID] = None,
    ) -> list[Expense]:
        """List the user's expenses with optional filters."""
        try:
            sheet = self._client.get_expenses_sheet()
            all_rows = sheet.get_all_values()[1:]  # Skip header
        except Exception as e:
            raise StorageError(f"Failed to list expenses: {e}")

        expenses = []
        for row in all_rows:
            if len(row) < 2 or not row[0] or row[1] != user_id:
                continue

            try:
                expense = self._row_to_expense(row)
            except Exception as e:
                logger.warning("malformed_expense_row", expense_id=row[0], error=str(e))
                continue

            # Apply filters
            if date_from and expense.date < date_from:
                continue
            if date_to and expense.date > date_to:
                continue
            if category and expense.category != category:
                continue
            if family_member_id and expense.family_member_id != family_member_id:
                continue

            expenses.append(expense)

        # Newest first
        expenses.sort(key=lambda e: e.date, reverse=True)
        return expenses


class GoogleSheetsFamilyMemberStorage(FamilyMemberStorageInterface):
    """Google Sheets implementation of family member storage."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _member_to_row(self, member: FamilyMember) -> list:
        return [
            str(member.id),
            member.user_id,
            member.created_at.isoformat(),
            member.updated_at.isoformat(),
            member.name,
            member.relation or "",
            member.avatar_url or "",
        ]

    def _row_to_member(self, row: list) -> FamilyMember:
        safe_get = _safe_getter(row)
        return FamilyMember(
            id=UUID(safe_get(0)),
            user_id=safe_get(1),
            created_at=datetime.fromisoformat(safe_get(2)),
            updated_at=datetime.fromisoformat(safe_get(3)),
            name=safe_get(4),
            relation=safe_get(5) or None,
            avatar_url=safe_get(6) or None,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save_member(self, member: FamilyMember) -> bool:
        try:
            sheet = self._client.get_family_members_sheet()
            sheet.append_row(self._member_to_row(member), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to save family member: {e}")

    async def get_member(self, user_id: str, member_id: UUID) -> Optional[FamilyMember]:
        try:
            sheet = self._client.get_family_members_sheet()
            all_rows = sheet.get_all_values()
            row_number = _find_row_number(all_rows, user_id, member_id)
            if row_number is None:
                return None
            return self._row_to_member(all_rows[row_number - 1])
        except Exception as e:
            raise StorageError(f"Failed to get family member: {e}")

    async def update_member(self, member: FamilyMember) -> bool:
        try:
            sheet = self._client.get_family_members_sheet()
            row_number = _find_row_number(sheet.get_all_values(), member.user_id, member.id)
            if row_number is None:
                raise NotFoundError(f"Family member not found: {member.id}")

            sheet.update(
                range_name=f"A{row_number}",
                values=[self._member_to_row(member)],
                value_input_option="RAW",
            )
            return True
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update family member: {e}")

    async def delete_member(self, user_id: str, member_id: UUID) -> bool:
        try:
            sheet = self._client.get_family_members_sheet()
            row_number = _find_row_number(sheet.get_all_values(), user_id, member_id)
            if row_number is None:
                return False
            sheet.delete_rows(row_number)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete family member: {e}")

    async def list_members(self, user_id: str) -> list[FamilyMember]:
        try:
            sheet = self._client.get_family_members_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list family members: {e}")

        members = []
        for row in all_rows:
            if len(row) < 2 or not row[0] or row[1] != user_id:
                continue
            try:
                members.append(self._row_to_member(row))
            except Exception as e:
                logger.warning("malformed_family_member_row", member_id=row[0], error=str(e))
        return members


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        safe_get = _safe_getter(row)
        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            user_id=safe_get(4) or None,
            entity_type=safe_get(5) or None,
            entity_id=UUID(safe_get(6)) if safe_get(6) else None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_message=safe_get(10) or None,
            is_user_action=safe_get(11).lower() == "true",
        )

    def _read_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except Exception as e:
                logger.warning("malformed_audit_row", event_id=row[0], error=str(e))
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging must not break the main flow
            logger.warning("audit_append_failed", event_id=str(event.event_id), error=str(e))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [e for e in self._read_events() if e.correlation_id == correlation_id]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [
                e for e in self._read_events()
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
        user_id: Optional[str] = None,
    ) -> list[AuditEvent]:
        try:
            events = self._read_events()
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        if user_id is not None:
            events = [e for e in events if e.user_id == user_id]
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
