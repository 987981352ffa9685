"""
CSV Expense Import

Reads a spreadsheet export with a header row and the columns

    item, category, amount, date

where date is MM/DD/YYYY. Values may be double-quoted to contain commas.
Categories from the spreadsheet are mapped onto ExpenseCategory; anything
unrecognised becomes Other.

Rows are written in fixed-size batches. A batch that fails to save is
counted as failed as a whole and the import carries on with the next one.
"""

import csv
import io
import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional

import structlog
from pydantic import BaseModel, Field, ValidationError

from expense_manager.analytics import round_half_up
from expense_manager.audit import AuditLogger
from expense_manager.models.expense import Expense, ExpenseCategory, ExpenseDraft
from expense_manager.services.storage import ExpenseStorageInterface, StorageError


logger = structlog.get_logger(__name__)

UNTITLED_EXPENSE = "Untitled Expense"
DESCRIPTION_MAX_LENGTH = 200
AMOUNT_PREFIX = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")

CATEGORY_MAP = {
    "Food": ExpenseCategory.FOOD,
    "Travel": ExpenseCategory.TRANSPORT,
    "Groceries": ExpenseCategory.SHOPPING,
    "Events": ExpenseCategory.ENTERTAINMENT,
    "Bills": ExpenseCategory.BILLS,
    "Entertainment": ExpenseCategory.ENTERTAINMENT,
    "Healthcare": ExpenseCategory.HEALTHCARE,
    "Education": ExpenseCategory.EDUCATION,
    "Other": ExpenseCategory.OTHER,
}


class ParsedCSV(BaseModel):
    """Drafts read from a CSV plus the line numbers that could not be used."""

    drafts: list[ExpenseDraft] = Field(default_factory=list)
    skipped_lines: list[int] = Field(default_factory=list)


class ImportReport(BaseModel):
    imported: int = 0
    failed: int = 0
    batches: int = 0


def map_category(value: str) -> ExpenseCategory:
    return CATEGORY_MAP.get(value.strip(), ExpenseCategory.OTHER)


def parse_amount(value: str) -> Decimal:
    """
    Read the number at the start of an amount cell.

    Thousands separators are dropped and trailing text is ignored, so
    "1,250.00 USD" reads as 1250.00. A cell that does not start with a
    number reads as zero.
    """
    match = AMOUNT_PREFIX.match(value.strip().replace(",", ""))
    if match is None:
        return Decimal("0")
    try:
        return round_half_up(Decimal(match.group()), 2)
    except InvalidOperation:
        return Decimal("0")


def parse_us_date(value: str) -> Optional[date]:
    """MM/DD/YYYY to a date, or None if it isn't one."""
    parts = value.strip().split("/")
    if len(parts) != 3:
        return None
    try:
        month, day, year = (int(p) for p in parts)
        return date(year, month, day)
    except ValueError:
        return None


def parse_expenses_csv(content: str) -> ParsedCSV:
    """
    Turn CSV text into expense drafts.

    The first row is a header and is ignored. Rows with fewer than four
    values, an unreadable date, or an amount below zero are skipped.
    """
    result = ParsedCSV()
    reader = csv.reader(io.StringIO(content.strip()), skipinitialspace=True)

    for line_number, values in enumerate(reader, start=1):
        if line_number == 1:
            continue
        values = [v.strip() for v in values]
        if not any(values):
            continue
        if len(values) < 4:
            result.skipped_lines.append(line_number)
            continue

        item, category, amount, date_str = values[:4]
        expense_date = parse_us_date(date_str)
        if expense_date is None:
            result.skipped_lines.append(line_number)
            continue

        try:
            draft = ExpenseDraft(
                description=(item or UNTITLED_EXPENSE)[:DESCRIPTION_MAX_LENGTH],
                category=map_category(category),
                amount=parse_amount(amount),
                date=expense_date,
            )
        except ValidationError:
            result.skipped_lines.append(line_number)
            continue

        result.drafts.append(draft)

    return result


async def import_expenses(
    storage: ExpenseStorageInterface,
    user_id: str,
    drafts: list[ExpenseDraft],
    batch_size: int = 10,
    audit_logger: Optional[AuditLogger] = None,
    source: str = "csv",
) -> ImportReport:
    """
    Save drafts for the user in batches.

    Returns:
        ImportReport with the number imported and the number that failed
    """
    report = ImportReport()

    for start in range(0, len(drafts), batch_size):
        batch = [
            Expense(user_id=user_id, **draft.model_dump())
            for draft in drafts[start:start + batch_size]
        ]
        report.batches += 1
        batch_number = report.batches

        try:
            saved = await storage.save_expenses(batch)
        except StorageError as e:
            logger.error("import_batch_failed", batch=batch_number, size=len(batch), error=str(e))
            report.failed += len(batch)
            continue

        logger.info("import_batch_saved", batch=batch_number, size=saved)
        report.imported += saved

    if audit_logger:
        await audit_logger.log_import_completed(
            user_id=user_id,
            imported=report.imported,
            failed=report.failed,
            source=source,
        )

    return report
