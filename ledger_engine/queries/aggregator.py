"""
Ledger Aggregation

DESIGN DECISION: Aggregation is DETERMINISTIC and recomputed on every call.
The module-level functions are pure: they take a snapshot of transactions
and return totals. LedgerAggregator fetches a fresh snapshot from the store
and delegates to them, so there is no cache to invalidate and every read
reflects the writes that preceded it.

GUARANTEES:
- Accumulation uses full-precision Decimal
- Results are rounded to cents only when returned
- "No rows" is Decimal("0.00"), never None
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from ledger_engine.models.ledger import (
    LedgerAggregate,
    PeriodSummary,
    Transaction,
    TransactionFilter,
    TransactionKind,
)
from ledger_engine.services.storage import LedgerStoreInterface
from ledger_engine.validation.normalizer import (
    category_key,
    current_period_key,
    round_money,
)


ZERO = Decimal("0")


def _owned(transactions: Iterable[Transaction], user_id: str) -> list[Transaction]:
    return [t for t in transactions if t.user_id == user_id]


def _in_period(transaction: Transaction, period_key: Optional[str]) -> bool:
    return period_key is None or transaction.period_key == period_key


def sum_expenses(
    transactions: Iterable[Transaction],
    user_id: str,
    category: str,
    period_key: Optional[str] = None,
) -> Decimal:
    """Unrounded expense total for a category. Used for threshold decisions."""
    key = category_key(category)
    return sum(
        (
            t.amount
            for t in _owned(transactions, user_id)
            if t.kind == TransactionKind.EXPENSE
            and category_key(t.category) == key
            and _in_period(t, period_key)
        ),
        ZERO,
    )


def spent_in_category(
    transactions: Iterable[Transaction],
    user_id: str,
    category: str,
    period_key: Optional[str] = None,
) -> Decimal:
    """
    Total spent by a user in a category.

    Categories match case-insensitively after normalization. Only expenses
    count. If period_key (YYYY-MM) is given, only that calendar month.
    """
    return round_money(sum_expenses(transactions, user_id, category, period_key))


def period_summary(
    transactions: Iterable[Transaction],
    user_id: str,
    period_key: Optional[str] = None,
    today: Optional[date] = None,
) -> PeriodSummary:
    """Income, expense and balance for one month (default: current month)."""
    period_key = period_key or current_period_key(today)

    income = ZERO
    expense = ZERO
    for t in _owned(transactions, user_id):
        if t.period_key != period_key:
            continue
        if t.kind == TransactionKind.INCOME:
            income += t.amount
        else:
            expense += t.amount

    return PeriodSummary(
        period_key=period_key,
        income=round_money(income),
        expense=round_money(expense),
        balance=round_money(income - expense),
    )


def _group(transactions: Iterable[Transaction], key_of) -> list[LedgerAggregate]:
    # dicts keep insertion order, which gives first-seen ordering
    totals: dict[str, dict] = {}
    labels: dict[str, str] = {}
    for t in transactions:
        group_key, label = key_of(t)
        bucket = totals.setdefault(
            group_key,
            {"income": ZERO, "expense": ZERO, "total": ZERO, "count": 0},
        )
        labels.setdefault(group_key, label)
        bucket["count"] += 1
        if t.kind == TransactionKind.INCOME:
            bucket["income"] += t.amount
        else:
            bucket["expense"] += t.amount
        bucket["total"] += t.amount

    return [
        LedgerAggregate(
            key=labels[group_key],
            income=round_money(bucket["income"]),
            expense=round_money(bucket["expense"]),
            total=round_money(bucket["total"]),
            count=bucket["count"],
        )
        for group_key, bucket in totals.items()
    ]


def group_by_category(
    transactions: Iterable[Transaction],
    user_id: str,
) -> list[LedgerAggregate]:
    """Per-category totals in first-seen order."""
    return _group(
        _owned(transactions, user_id),
        lambda t: (category_key(t.category), t.category),
    )


def group_by_month(
    transactions: Iterable[Transaction],
    user_id: str,
) -> list[LedgerAggregate]:
    """Per-month totals, most recent month first."""
    groups = _group(
        _owned(transactions, user_id),
        lambda t: (t.period_key, t.period_key),
    )
    return sorted(groups, key=lambda g: g.key, reverse=True)


def filter_transactions(
    transactions: Iterable[Transaction],
    user_id: str,
    filters: Optional[TransactionFilter] = None,
) -> list[Transaction]:
    """User's transactions matching all given criteria, newest first."""
    filters = filters or TransactionFilter()
    wanted_category = category_key(filters.category) if filters.category else None

    matches = []
    for t in _owned(transactions, user_id):
        if wanted_category and category_key(t.category) != wanted_category:
            continue
        if filters.kind and t.kind != filters.kind:
            continue
        if filters.date_from and t.date < filters.date_from:
            continue
        if filters.date_to and t.date > filters.date_to:
            continue
        if filters.min_amount is not None and t.amount < filters.min_amount:
            continue
        if filters.max_amount is not None and t.amount > filters.max_amount:
            continue
        matches.append(t)

    matches.sort(key=lambda t: t.date, reverse=True)
    return matches


def spent_by_category(
    transactions: Iterable[Transaction],
    user_id: str,
    period_key: Optional[str] = None,
) -> dict[str, Decimal]:
    """Unrounded expense totals keyed by category_key, for one pass over many budgets."""
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for t in _owned(transactions, user_id):
        if t.kind == TransactionKind.EXPENSE and _in_period(t, period_key):
            totals[category_key(t.category)] += t.amount
    return dict(totals)


class LedgerAggregator:
    """
    Store-backed aggregator.

    Every method reads a fresh snapshot of the user's transactions.
    """

    def __init__(self, store: LedgerStoreInterface):
        self._store = store

    async def snapshot(self, user_id: str) -> list[Transaction]:
        return await self._store.list_transactions(user_id)

    async def spent_in_category(
        self,
        user_id: str,
        category: str,
        period_key: Optional[str] = None,
    ) -> Decimal:
        return spent_in_category(
            await self.snapshot(user_id), user_id, category, period_key
        )

    async def period_summary(
        self,
        user_id: str,
        period_key: Optional[str] = None,
    ) -> PeriodSummary:
        return period_summary(await self.snapshot(user_id), user_id, period_key)

    async def group_by_category(self, user_id: str) -> list[LedgerAggregate]:
        return group_by_category(await self.snapshot(user_id), user_id)

    async def group_by_month(self, user_id: str) -> list[LedgerAggregate]:
        return group_by_month(await self.snapshot(user_id), user_id)

    async def filter_transactions(
        self,
        user_id: str,
        filters: Optional[TransactionFilter] = None,
    ) -> list[Transaction]:
        return filter_transactions(await self.snapshot(user_id), user_id, filters)
