"""Spending analytics package."""

from expense_manager.analytics.aggregator import (
    UNKNOWN_MEMBER,
    category_breakdown,
    daily_breakdown,
    days_in_month,
    family_breakdown,
    month_bounds,
    month_total,
    percent_change,
    previous_month,
    round_half_up,
    summarize_month,
)

__all__ = [
    "UNKNOWN_MEMBER",
    "category_breakdown",
    "daily_breakdown",
    "days_in_month",
    "family_breakdown",
    "month_bounds",
    "month_total",
    "percent_change",
    "previous_month",
    "round_half_up",
    "summarize_month",
]
