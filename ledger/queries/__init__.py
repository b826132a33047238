"""Aggregation and display package."""

from ledger.queries.aggregation import (
    apply_filters,
    compute_totals,
    group_by_category,
    group_by_month,
    month_key,
)
from ledger.queries.display import format_currency, format_short, unreadable_date_notice

__all__ = [
    "apply_filters",
    "compute_totals",
    "format_currency",
    "format_short",
    "unreadable_date_notice",
    "group_by_category",
    "group_by_month",
    "month_key",
]
