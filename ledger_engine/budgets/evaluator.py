"""
Budget Status Evaluation

Pure functions: no I/O, same inputs give the same output.

Thresholds on the percentage of the limit used (lower bound inclusive):
    [0, 50)   SAFE
    [50, 80)  CAUTION
    [80, 100) ALERT
    [100, ..) EXCEEDED

The state is decided on the unrounded percentage; the returned amounts
are rounded to cents.
"""

from decimal import Decimal
from typing import Iterable, Optional

from ledger_engine.models.ledger import (
    Budget,
    BudgetOverview,
    BudgetState,
    BudgetStatus,
)
from ledger_engine.validation.normalizer import round_money


HUNDRED = Decimal("100")
CAUTION_AT = Decimal("50")
ALERT_AT = Decimal("80")
EXCEEDED_AT = HUNDRED


def percentage_used(limit: Decimal, spent: Decimal) -> Decimal:
    """(spent / limit) * 100. A valid budget always has limit > 0."""
    return spent / limit * HUNDRED


def classify(percentage: Decimal) -> BudgetState:
    if percentage < CAUTION_AT:
        return BudgetState.SAFE
    if percentage < ALERT_AT:
        return BudgetState.CAUTION
    if percentage < EXCEEDED_AT:
        return BudgetState.ALERT
    return BudgetState.EXCEEDED


def evaluate(
    budget: Budget,
    spent: Decimal,
    period_key: Optional[str] = None,
) -> BudgetStatus:
    """Combine a budget with the amount spent against it."""
    percentage = percentage_used(budget.limit, spent)
    return BudgetStatus(
        budget_id=budget.id,
        category=budget.category,
        limit=round_money(budget.limit),
        spent=round_money(spent),
        available=round_money(budget.limit - spent),
        percentage=round_money(percentage),
        state=classify(percentage),
        period_key=period_key,
    )


def in_states(
    statuses: Iterable[BudgetStatus],
    *states: BudgetState,
) -> list[BudgetStatus]:
    """Statuses whose state is one of `states`."""
    wanted = set(states)
    return [status for status in statuses if status.state in wanted]


def overview(
    statuses: Iterable[BudgetStatus],
    period_key: Optional[str] = None,
) -> BudgetOverview:
    """
    Totals across all of a user's budgets.

    With no budgets the percentage is 0 rather than undefined.
    """
    statuses = list(statuses)
    total_limit = sum((s.limit for s in statuses), Decimal("0"))
    total_spent = sum((s.spent for s in statuses), Decimal("0"))
    percentage = (
        percentage_used(total_limit, total_spent) if total_limit > 0 else Decimal("0")
    )
    return BudgetOverview(
        period_key=period_key,
        total_limit=round_money(total_limit),
        total_spent=round_money(total_spent),
        available=round_money(total_limit - total_spent),
        percentage=round_money(percentage),
        budget_count=len(statuses),
    )
