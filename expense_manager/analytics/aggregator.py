"""
Monthly Spending Aggregation

DESIGN DECISION: Aggregation is a PURE function of its inputs.
It never touches storage; callers load one month of expenses (plus
the family member lookup and the previous month's total) and pass
them in. The same inputs always produce the same summary.

All money arithmetic is done in Decimal. Values presented to the user
are rounded half away from zero: currency at 2 places, percentages at 1.
"""

import calendar
import datetime as dt
from collections.abc import Iterable, Mapping
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional, Union

from expense_manager.models.analytics import (
    CategoryTotal,
    DailyTotal,
    FamilyMemberTotal,
    SpendingSummary,
)
from expense_manager.models.expense import Expense, FamilyMember


UNKNOWN_MEMBER = "Unknown"
DAY_LABEL_FORMAT = "%b %d"

Number = Union[Decimal, int, float, str]
MemberRef = Union[FamilyMember, Mapping[str, Any]]


# =============================================================================
# HELPERS
# =============================================================================

def round_half_up(value: Number, places: int) -> Decimal:
    """Round to `places` decimals, ties away from zero (2.345 -> 2.35, -2.345 -> -2.35)."""
    quantum = Decimal(1).scaleb(-places)
    return _to_decimal(value).quantize(quantum, rounding=ROUND_HALF_UP)


def days_in_month(month: dt.date) -> int:
    """Number of calendar days in the month containing `month`."""
    return calendar.monthrange(month.year, month.month)[1]


def month_bounds(month: dt.date) -> tuple[dt.date, dt.date]:
    """First and last day of the month containing `month`."""
    first = month.replace(day=1)
    return first, first.replace(day=days_in_month(month))


def previous_month(month: dt.date) -> dt.date:
    """First day of the month before the one containing `month`."""
    first = month.replace(day=1)
    return (first - dt.timedelta(days=1)).replace(day=1)


def month_total(expenses: Iterable[Expense]) -> Decimal:
    """Plain sum of amounts."""
    return sum((e.amount for e in expenses), Decimal("0"))


def _to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() first so floats like 0.1 do not drag binary noise along
    return Decimal(str(value))


def _category_name(expense: Expense) -> str:
    category = expense.category
    return category.value if hasattr(category, "value") else str(category)


def _member_names(family_members: Optional[Iterable[MemberRef]]) -> dict[str, str]:
    names: dict[str, str] = {}
    for member in family_members or []:
        if isinstance(member, Mapping):
            member_id, name = member.get("id"), member.get("name")
        else:
            member_id, name = member.id, member.name
        if member_id is not None and name:
            names[str(member_id)] = name
    return names


def percent_change(total: Number, previous: Optional[Number]) -> Optional[Decimal]:
    """
    Month-over-month change in percent, rounded to 1 place.

    None when there is nothing to compare against (previous missing or zero).
    """
    if previous is None:
        return None
    previous = _to_decimal(previous)
    if previous == 0:
        return None
    return round_half_up((_to_decimal(total) - previous) / previous * 100, 1)


# =============================================================================
# BREAKDOWNS
# =============================================================================

def category_breakdown(expenses: list[Expense]) -> list[CategoryTotal]:
    """Totals per category, largest first. Equal totals keep first-seen order."""
    sums: dict[str, Decimal] = {}
    for expense in expenses:
        name = _category_name(expense)
        sums[name] = sums.get(name, Decimal("0")) + expense.amount

    totals = [CategoryTotal(name=name, value=round_half_up(value, 2)) for name, value in sums.items()]
    totals.sort(key=lambda item: item.value, reverse=True)
    return totals


def daily_breakdown(expenses: list[Expense]) -> list[DailyTotal]:
    """Totals per calendar day, in date order."""
    sums: dict[dt.date, Decimal] = {}
    for expense in expenses:
        sums[expense.date] = sums.get(expense.date, Decimal("0")) + expense.amount

    return [
        DailyTotal(
            label=day.strftime(DAY_LABEL_FORMAT),
            date=day,
            value=round_half_up(sums[day], 2),
        )
        for day in sorted(sums)
    ]


def family_breakdown(
    expenses: list[Expense],
    family_members: Optional[Iterable[MemberRef]] = None,
) -> list[FamilyMemberTotal]:
    """
    Spending per family member, largest first.

    Only expenses tagged to a member are counted. Ids that no longer
    resolve (e.g. the member was deleted) are grouped under "Unknown".
    Percentages are shares of the family-tagged total, not of all spending.
    """
    names = _member_names(family_members)
    totals: dict[str, Decimal] = {}
    counts: dict[str, int] = {}

    for expense in expenses:
        if expense.family_member_id is None:
            continue
        name = names.get(str(expense.family_member_id), UNKNOWN_MEMBER)
        totals[name] = totals.get(name, Decimal("0")) + expense.amount
        counts[name] = counts.get(name, 0) + 1

    tagged_total = sum(totals.values(), Decimal("0"))

    result = [
        FamilyMemberTotal(
            name=name,
            total=round_half_up(total, 2),
            count=counts[name],
            percentage=(
                round_half_up(total / tagged_total * 100, 1)
                if tagged_total
                else Decimal("0.0")
            ),
        )
        for name, total in totals.items()
    ]
    result.sort(key=lambda item: item.total, reverse=True)
    return result


# =============================================================================
# ENTRY POINT
# =============================================================================

def summarize_month(
    expenses: Iterable[Expense],
    selected_month: dt.date,
    family_members: Optional[Iterable[MemberRef]] = None,
    previous_month_total: Optional[Number] = None,
) -> SpendingSummary:
    """
    Reduce one month of expenses to a SpendingSummary.

    Args:
        expenses: Expenses dated within the selected month
        selected_month: Any date inside the month being summarized
        family_members: FamilyMember objects or {id, name} mappings
            used to resolve family_member_id references
        previous_month_total: Total of the month before, if known

    Returns:
        SpendingSummary. An empty month yields zeros, None and empty lists.
    """
    expenses = list(expenses)
    first_day, _ = month_bounds(selected_month)

    total = month_total(expenses)
    count = len(expenses)
    percent = percent_change(total, previous_month_total)

    if count == 0:
        return SpendingSummary(
            month=first_day,
            percent_vs_previous_month=percent,
        )

    categories = category_breakdown(expenses)

    return SpendingSummary(
        month=first_day,
        total=total,
        average_per_day=round_half_up(total / days_in_month(first_day), 2),
        count=count,
        average_transaction=round_half_up(total / count, 2),
        # max() keeps the first of equal elements
        biggest_expense=max(expenses, key=lambda e: e.amount),
        category_totals=categories,
        daily_totals=daily_breakdown(expenses),
        top_category=categories[0].name,
        percent_vs_previous_month=percent,
        family_member_totals=family_breakdown(expenses, family_members),
    )
