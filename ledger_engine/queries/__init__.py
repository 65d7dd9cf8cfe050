"""Ledger aggregation package."""

from ledger_engine.queries.aggregator import (
    LedgerAggregator,
    filter_transactions,
    group_by_category,
    group_by_month,
    period_summary,
    spent_by_category,
    spent_in_category,
    sum_expenses,
)

__all__ = [
    "LedgerAggregator",
    "filter_transactions",
    "group_by_category",
    "group_by_month",
    "period_summary",
    "spent_by_category",
    "spent_in_category",
    "sum_expenses",
]
