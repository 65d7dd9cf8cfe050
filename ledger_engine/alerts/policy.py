"""
Alerting Policy

Decides, after an expense write, whether the user must be notified.

Rules:
- Only expenses trigger alerts; the coordinator never calls this for income
- No budget for the category means no notification
- percentage >= 100: one "danger" notification (amount exceeded + total spent)
- percentage >= 80:  one "warning" notification (percentage + amounts)
- otherwise nothing

Exactly one notification per qualifying write, never one per threshold
crossed. Repeated writes in the same bucket notify again unless the
dedupe_alerts_per_period setting is enabled.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from ledger_engine.budgets.evaluator import ALERT_AT, EXCEEDED_AT, percentage_used
from ledger_engine.config import LedgerSettings
from ledger_engine.models.ledger import (
    MESSAGE_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    Budget,
    Notification,
    NotificationSeverity,
    clip,
)
from ledger_engine.queries.aggregator import LedgerAggregator, sum_expenses
from ledger_engine.services.storage import LedgerStoreInterface
from ledger_engine.validation.normalizer import (
    category_key,
    format_money,
    period_key_of,
    round_money,
)


def build_budget_alert(
    budget: Budget,
    spent: Decimal,
    period_key: Optional[str] = None,
    currency_symbol: str = "$",
) -> Optional[Notification]:
    """
    Notification for a budget at `spent`, or None below the alert threshold.

    Title and message are clipped to the Notification bounds, so a budget
    with a long category still produces its alert.
    """
    percentage = percentage_used(budget.limit, spent)

    def money(value: Decimal) -> str:
        return format_money(value, currency_symbol)

    if percentage >= EXCEEDED_AT:
        return Notification(
            user_id=budget.user_id,
            title=clip(f"Budget exceeded: {budget.category}", TITLE_MAX_LENGTH),
            message=clip(
                f"You exceeded your {budget.category} budget by "
                f"{money(spent - budget.limit)}. Total spent: {money(spent)} "
                f"of {money(budget.limit)}.",
                MESSAGE_MAX_LENGTH,
            ),
            severity=NotificationSeverity.DANGER,
            related_category=budget.category,
            period_key=period_key,
        )

    if percentage >= ALERT_AT:
        return Notification(
            user_id=budget.user_id,
            title=clip(f"Budget alert: {budget.category}", TITLE_MAX_LENGTH),
            message=clip(
                f"You have used {round_money(percentage).normalize():f}% of your "
                f"{budget.category} budget ({money(spent)} of {money(budget.limit)}).",
                MESSAGE_MAX_LENGTH,
            ),
            severity=NotificationSeverity.WARNING,
            related_category=budget.category,
            period_key=period_key,
        )

    return None


class AlertingPolicy:
    """
    Store-backed alerting.

    Errors from the store propagate; the coordinator decides that an
    alerting failure must not fail the ledger write.
    """

    def __init__(
        self,
        store: LedgerStoreInterface,
        aggregator: Optional[LedgerAggregator] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._store = store
        self._aggregator = aggregator or LedgerAggregator(store)
        self._settings = settings or LedgerSettings()

    async def find_budget(self, user_id: str, category: str) -> Optional[Budget]:
        """The user's budget for a category, matched on the normalized key."""
        key = category_key(category)
        for budget in await self._store.list_budgets(user_id):
            if category_key(budget.category) == key:
                return budget
        return None

    async def _already_notified(self, notification: Notification) -> bool:
        for existing in await self._store.list_notifications(notification.user_id):
            if (
                existing.severity == notification.severity
                and existing.period_key == notification.period_key
                and category_key(existing.related_category)
                == category_key(notification.related_category)
            ):
                return True
        return False

    async def on_expense_recorded(
        self,
        user_id: str,
        category: str,
        on_date: date,
    ) -> Optional[Notification]:
        """
        Evaluate the category's budget for the month of `on_date`.

        Returns the notification that was written, or None.
        """
        budget = await self.find_budget(user_id, category)
        if budget is None:
            return None

        period_key = period_key_of(on_date)
        spent = sum_expenses(
            await self._aggregator.snapshot(user_id), user_id, category, period_key
        )

        notification = build_budget_alert(
            budget, spent, period_key, self._settings.currency_symbol
        )
        if notification is None:
            return None

        if self._settings.dedupe_alerts_per_period and await self._already_notified(
            notification
        ):
            return None

        await self._store.add_notification(notification)
        return notification
