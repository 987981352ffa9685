"""
Analytics Models

Output contract of the monthly aggregation. Everything here is derived
from stored expenses; nothing is persisted.
"""

import datetime as dt
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from expense_manager.models.expense import Expense


class CategoryTotal(BaseModel):
    """Summed spending for one category."""
    model_config = ConfigDict(frozen=True)

    name: str
    value: Decimal = Field(..., description="Total, rounded to 2 decimal places")


class DailyTotal(BaseModel):
    """Summed spending for one calendar day."""
    model_config = ConfigDict(frozen=True)

    label: str = Field(..., description="Display label, e.g. 'Jan 05'")
    date: dt.date
    value: Decimal = Field(..., description="Total, rounded to 2 decimal places")


class FamilyMemberTotal(BaseModel):
    """Spending tagged to one family member."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Resolved member name, or 'Unknown'")
    total: Decimal
    count: int = Field(..., ge=0)
    percentage: Decimal = Field(
        ...,
        description="Share of all family-tagged spending, rounded to 1 decimal place"
    )


class SpendingSummary(BaseModel):
    """
    Aggregated view of one month of expenses.

    All fields are zero / None / empty for a month with no expenses.
    """

    month: dt.date = Field(..., description="First day of the summarized month")
    total: Decimal = Decimal("0")
    average_per_day: Decimal = Decimal("0")
    count: int = 0
    average_transaction: Decimal = Decimal("0")
    biggest_expense: Optional[Expense] = None
    category_totals: list[CategoryTotal] = Field(default_factory=list)
    daily_totals: list[DailyTotal] = Field(default_factory=list)
    top_category: Optional[str] = None
    percent_vs_previous_month: Optional[Decimal] = None
    family_member_totals: list[FamilyMemberTotal] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.count == 0
