"""
Ledger Mutation Coordinator

This module ties together all the components and defines the
end-to-end flow of every ledger write:

    VALIDATING -> BUDGET_CHECKING -> PERSISTING -> NOTIFYING -> DONE
                 +-> REJECTED (bad input, not found, conflict)
                 +-> FAILED   (store error)

DESIGN DECISION: The coordinator enforces the boundaries:
- No record reaches the store without passing validation
- Writes to one (user, category) pair are serialized, so the budget check,
  the write and the alert all see the same total
- A failing alert never fails the write that triggered it
- Every outcome is audited, and no raw exception reaches the caller

Every public method returns Ok(value) or Err(kind, reason).
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Awaitable, Optional, Union
from uuid import UUID

from ledger_engine.alerts import AlertingPolicy
from ledger_engine.audit import AuditLogger
from ledger_engine.budgets import evaluate, in_states, overview
from ledger_engine.config import LedgerSettings, StorageBackend, get_settings
from ledger_engine.models.audit import AuditEventType
from ledger_engine.models.ledger import (
    Budget,
    BudgetInput,
    BudgetOverview,
    BudgetState,
    BudgetStatus,
    LedgerAggregate,
    Notification,
    PeriodSummary,
    Transaction,
    TransactionFilter,
    TransactionInput,
    TransactionKind,
    TransactionWriteResult,
    User,
    UserInput,
)
from ledger_engine.models.result import Err, ErrorKind, Ok, Result
from ledger_engine.queries import LedgerAggregator, spent_by_category, sum_expenses
from ledger_engine.services.storage import (
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
    InMemoryAuditStorage,
    InMemoryLedgerStore,
    LedgerStoreInterface,
)
from ledger_engine.validation import (
    category_key,
    current_period_key,
    format_money,
    parse_period_key,
    same_category,
    validate_budget,
    validate_transaction,
    validate_user,
)


STORE_FAILURE = "storage error, please try again"


class MutationState(str, Enum):
    """Where a ledger write is in its lifecycle."""
    VALIDATING = "validating"
    BUDGET_CHECKING = "budget_checking"
    PERSISTING = "persisting"
    NOTIFYING = "notifying"
    DONE = "done"
    REJECTED = "rejected"
    FAILED = "failed"


class KeyedLocks:
    """
    One asyncio.Lock per key, created on first use.

    hold() takes several locks in sorted order so two writers needing the
    same pair of keys can never deadlock.

    A lock is dropped once nobody holds or waits for it, so the map only
    contains keys with a write in flight.
    """

    def __init__(self):
        self._locks: dict[tuple, asyncio.Lock] = {}
        self._users: dict[tuple, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, *keys: tuple):
        ordered = sorted(set(keys))
        # Registered before the first await, so a lock is never dropped while in use
        for key in ordered:
            self._users[key] = self._users.get(key, 0) + 1
        locks = [self._locks.setdefault(key, asyncio.Lock()) for key in ordered]
        acquired = []
        try:
            for lock in locks:
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for key in ordered:
                self._users[key] -= 1
                if self._users[key] == 0:
                    del self._users[key]
                    del self._locks[key]


def _not_found(what: str) -> Err:
    return Err(kind=ErrorKind.NOT_FOUND, reason=f"{what} not found")


def _invalid_period(period_key: Optional[str]) -> Optional[Err]:
    if period_key is not None and parse_period_key(period_key) is None:
        return Err(kind=ErrorKind.VALIDATION, reason="invalid period")
    return None


class LedgerCoordinator:
    """
    Entry point for every engine operation.

    The store is injected; there is no global store. Settings decide the
    enforcement mode:
    - ADVISORY (default): expenses always persist, alerts only inform
    - STRICT: an expense that would push its budget over the limit is
      rejected with a CONFLICT before anything is written
    """

    def __init__(
        self,
        store: LedgerStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._store = store
        self._audit = audit_logger or AuditLogger()
        self._settings = settings or LedgerSettings()
        self._aggregator = LedgerAggregator(store)
        self._alerts = AlertingPolicy(store, self._aggregator, self._settings)
        self._locks = KeyedLocks()

    @property
    def settings(self) -> LedgerSettings:
        return self._settings

    # =========================================================================
    # Internal helpers
    # =========================================================================

    @staticmethod
    def _lock_key(user_id: str, category: str) -> tuple:
        return (user_id, category_key(category))

    async def _reject(
        self,
        operation: str,
        user_id: Optional[str],
        error: Err,
        state: MutationState,
    ) -> Err:
        self._audit.trace(operation, MutationState.REJECTED.value, at=state.value)
        await self._audit.log_mutation_rejected(
            operation=operation,
            user_id=user_id,
            error_kind=error.kind.value,
            reason=error.reason,
            state=state.value,
        )
        return error

    async def _store_failed(
        self,
        operation: str,
        error: Exception,
        user_id: Optional[str] = None,
    ) -> Err:
        self._audit.trace(operation, MutationState.FAILED.value)
        await self._audit.log_store_error(
            operation=operation,
            error_message=str(error),
            user_id=user_id,
        )
        return Err(kind=ErrorKind.STORE, reason=STORE_FAILURE)

    async def _read(
        self,
        operation: str,
        user_id: Optional[str],
        pending: Awaitable,
    ) -> Result:
        try:
            return Ok(value=await pending)
        except Exception as e:
            return await self._store_failed(operation, e, user_id)

    async def _check_limit(
        self,
        transaction: Transaction,
        previous: Optional[Transaction] = None,
    ) -> Optional[Err]:
        """
        Prospective budget check (strict mode only).

        On an edit, the previous amount is taken out of the total first
        when it counted against the same category and month.
        """
        if not self._settings.is_strict or transaction.kind != TransactionKind.EXPENSE:
            return None

        budget = await self._alerts.find_budget(transaction.user_id, transaction.category)
        if budget is None:
            return None

        spent = sum_expenses(
            await self._aggregator.snapshot(transaction.user_id),
            transaction.user_id,
            transaction.category,
            transaction.period_key,
        )
        if (
            previous is not None
            and previous.kind == TransactionKind.EXPENSE
            and previous.user_id == transaction.user_id
            and same_category(previous.category, transaction.category)
            and previous.period_key == transaction.period_key
        ):
            spent -= previous.amount

        if spent + transaction.amount > budget.limit:
            remaining = format_money(
                max(budget.limit - spent, Decimal("0")),
                self._settings.currency_symbol,
            )
            return Err(
                kind=ErrorKind.CONFLICT,
                reason=(
                    f"expense exceeds the {budget.category} budget "
                    f"({remaining} available)"
                ),
            )
        return None

    async def _notify(self, operation: str, transaction: Transaction) -> Optional[Notification]:
        """Run the alerting policy. Failures are audited, never raised."""
        if transaction.kind != TransactionKind.EXPENSE:
            return None

        self._audit.trace(operation, MutationState.NOTIFYING.value)
        try:
            notification = await self._alerts.on_expense_recorded(
                transaction.user_id,
                transaction.category,
                transaction.date,
            )
        except Exception as e:
            await self._audit.log_notification_failed(
                user_id=transaction.user_id,
                category=transaction.category,
                error_message=str(e),
            )
            return None

        if notification is not None:
            await self._audit.log_notification_emitted(
                notification_id=notification.id,
                user_id=notification.user_id,
                severity=notification.severity.value,
                category=notification.related_category,
            )
        return notification

    async def _owned_transaction(
        self,
        user_id: Optional[str],
        transaction_id: UUID,
    ) -> Optional[Transaction]:
        transaction = await self._store.get_transaction(transaction_id)
        if transaction is None or transaction.user_id != user_id:
            return None
        return transaction

    async def _owned_budget(self, user_id: Optional[str], budget_id: UUID) -> Optional[Budget]:
        budget = await self._store.get_budget(budget_id)
        if budget is None or budget.user_id != user_id:
            return None
        return budget

    async def _owned_notification(
        self,
        user_id: str,
        notification_id: UUID,
    ) -> Optional[Notification]:
        notification = await self._store.get_notification(notification_id)
        if notification is None or notification.user_id != user_id:
            return None
        return notification

    async def _category_taken(
        self,
        user_id: str,
        category: str,
        exclude: Optional[UUID] = None,
    ) -> bool:
        for budget in await self._store.list_budgets(user_id):
            if budget.id != exclude and same_category(budget.category, category):
                return True
        return False

    # =========================================================================
    # Transactions
    # =========================================================================

    async def record_transaction(
        self,
        candidate: TransactionInput,
    ) -> Union[Ok[TransactionWriteResult], Err]:
        """
        Validate, check, persist and (for expenses) alert.

        Returns the stored transaction and the notification it triggered, if any.
        """
        operation = "record_transaction"
        self._audit.trace(operation, MutationState.VALIDATING.value)

        validated = validate_transaction(candidate)
        if isinstance(validated, Err):
            return await self._reject(
                operation, candidate.user_id, validated, MutationState.VALIDATING
            )
        transaction = validated.value

        try:
            known_user = await self._store.get_user(transaction.user_id) is not None
        except Exception as e:
            return await self._store_failed(operation, e, transaction.user_id)
        if not known_user:
            return await self._reject(
                operation, transaction.user_id, _not_found("user"),
                MutationState.VALIDATING,
            )

        async with self._locks.hold(
            self._lock_key(transaction.user_id, transaction.category)
        ):
            try:
                self._audit.trace(operation, MutationState.BUDGET_CHECKING.value)
                overage = await self._check_limit(transaction)
                if overage is None:
                    self._audit.trace(operation, MutationState.PERSISTING.value)
                    await self._store.add_transaction(transaction)
            except Exception as e:
                return await self._store_failed(operation, e, transaction.user_id)
            if overage is not None:
                return await self._reject(
                    operation, transaction.user_id, overage,
                    MutationState.BUDGET_CHECKING,
                )

            # Persisted: nothing below may turn this write into an error
            await self._audit.log_transaction_recorded(
                transaction_id=transaction.id,
                user_id=transaction.user_id,
                kind=transaction.kind.value,
                category=transaction.category,
                amount=str(transaction.amount),
            )
            notification = await self._notify(operation, transaction)

        self._audit.trace(operation, MutationState.DONE.value)
        return Ok(value=TransactionWriteResult(
            transaction=transaction,
            notification=notification,
        ))

    async def update_transaction(
        self,
        transaction_id: UUID,
        candidate: TransactionInput,
    ) -> Union[Ok[TransactionWriteResult], Err]:
        """
        Replace a transaction's fields, keeping its id.

        candidate.user_id must own the transaction. Moving it to another
        category holds the locks of both categories.
        """
        operation = "update_transaction"
        self._audit.trace(operation, MutationState.VALIDATING.value)

        validated = validate_transaction(candidate)
        if isinstance(validated, Err):
            return await self._reject(
                operation, candidate.user_id, validated, MutationState.VALIDATING
            )
        user_id = validated.value.user_id

        try:
            existing = await self._owned_transaction(user_id, transaction_id)
        except Exception as e:
            return await self._store_failed(operation, e, user_id)
        if existing is None:
            return await self._reject(
                operation, user_id, _not_found("transaction"),
                MutationState.VALIDATING,
            )
        updated = validated.value.model_copy(update={"id": existing.id})

        async with self._locks.hold(
            self._lock_key(user_id, existing.category),
            self._lock_key(user_id, updated.category),
        ):
            failure = None
            try:
                # Re-read under the lock; a concurrent edit may have landed
                previous = await self._owned_transaction(user_id, transaction_id)
                if previous is None:
                    failure = (_not_found("transaction"), MutationState.BUDGET_CHECKING)
                else:
                    self._audit.trace(operation, MutationState.BUDGET_CHECKING.value)
                    overage = await self._check_limit(updated, previous=previous)
                    if overage is not None:
                        failure = (overage, MutationState.BUDGET_CHECKING)
                    else:
                        self._audit.trace(operation, MutationState.PERSISTING.value)
                        if await self._store.update_transaction(updated) == 0:
                            failure = (_not_found("transaction"), MutationState.PERSISTING)
            except Exception as e:
                return await self._store_failed(operation, e, user_id)
            if failure is not None:
                return await self._reject(operation, user_id, *failure)

            # Persisted: nothing below may turn this write into an error
            await self._audit.log_transaction_updated(
                transaction_id=updated.id,
                user_id=user_id,
                category=updated.category,
                amount=str(updated.amount),
            )
            notification = await self._notify(operation, updated)

        self._audit.trace(operation, MutationState.DONE.value)
        return Ok(value=TransactionWriteResult(
            transaction=updated,
            notification=notification,
        ))

    async def delete_transaction(
        self,
        user_id: str,
        transaction_id: UUID,
    ) -> Union[Ok[Transaction], Err]:
        """Delete a transaction. No budget check and no alert."""
        operation = "delete_transaction"
        try:
            existing = await self._owned_transaction(user_id, transaction_id)
            if existing is None:
                return await self._reject(
                    operation, user_id, _not_found("transaction"),
                    MutationState.VALIDATING,
                )

            async with self._locks.hold(self._lock_key(user_id, existing.category)):
                self._audit.trace(operation, MutationState.PERSISTING.value)
                if await self._store.delete_transaction(transaction_id) == 0:
                    return await self._reject(
                        operation, user_id, _not_found("transaction"),
                        MutationState.PERSISTING,
                    )
        except Exception as e:
            return await self._store_failed(operation, e, user_id)

        await self._audit.log_transaction_deleted(
            transaction_id=transaction_id,
            user_id=user_id,
        )
        self._audit.trace(operation, MutationState.DONE.value)
        return Ok(value=existing)

    async def get_transaction(
        self,
        user_id: str,
        transaction_id: UUID,
    ) -> Union[Ok[Transaction], Err]:
        try:
            transaction = await self._owned_transaction(user_id, transaction_id)
        except Exception as e:
            return await self._store_failed("get_transaction", e, user_id)
        if transaction is None:
            return _not_found("transaction")
        return Ok(value=transaction)

    async def list_transactions(
        self,
        user_id: str,
        filters: Optional[TransactionFilter] = None,
    ) -> Union[Ok[list[Transaction]], Err]:
        """A user's transactions matching `filters`, newest first."""
        return await self._read(
            "list_transactions",
            user_id,
            self._aggregator.filter_transactions(user_id, filters),
        )

    # =========================================================================
    # Aggregates
    # =========================================================================

    async def spent_in_category(
        self,
        user_id: str,
        category: str,
        period_key: Optional[str] = None,
    ) -> Union[Ok[Decimal], Err]:
        invalid = _invalid_period(period_key)
        if invalid is not None:
            return invalid
        return await self._read(
            "spent_in_category",
            user_id,
            self._aggregator.spent_in_category(user_id, category, period_key),
        )

    async def period_summary(
        self,
        user_id: str,
        period_key: Optional[str] = None,
    ) -> Union[Ok[PeriodSummary], Err]:
        """Income, expense and balance for a month (default: current month)."""
        invalid = _invalid_period(period_key)
        if invalid is not None:
            return invalid
        return await self._read(
            "period_summary",
            user_id,
            self._aggregator.period_summary(user_id, period_key),
        )

    async def group_by_category(self, user_id: str) -> Union[Ok[list[LedgerAggregate]], Err]:
        return await self._read(
            "group_by_category", user_id, self._aggregator.group_by_category(user_id)
        )

    async def group_by_month(self, user_id: str) -> Union[Ok[list[LedgerAggregate]], Err]:
        return await self._read(
            "group_by_month", user_id, self._aggregator.group_by_month(user_id)
        )

    # =========================================================================
    # Budgets
    # =========================================================================

    async def create_budget(self, candidate: BudgetInput) -> Union[Ok[Budget], Err]:
        """Create a budget. One budget per user and normalized category."""
        operation = "create_budget"
        validated = validate_budget(candidate)
        if isinstance(validated, Err):
            return await self._reject(
                operation, candidate.user_id, validated, MutationState.VALIDATING
            )
        budget = validated.value

        try:
            if await self._store.get_user(budget.user_id) is None:
                return await self._reject(
                    operation, budget.user_id, _not_found("user"),
                    MutationState.VALIDATING,
                )

            async with self._locks.hold(self._lock_key(budget.user_id, budget.category)):
                if await self._category_taken(budget.user_id, budget.category):
                    return await self._reject(
                        operation,
                        budget.user_id,
                        Err(
                            kind=ErrorKind.CONFLICT,
                            reason=f"a budget for {budget.category} already exists",
                        ),
                        MutationState.VALIDATING,
                    )
                await self._store.add_budget(budget)
        except Exception as e:
            return await self._store_failed(operation, e, budget.user_id)

        await self._audit.log_budget_changed(
            event_type=AuditEventType.BUDGET_CREATED,
            budget_id=budget.id,
            user_id=budget.user_id,
            category=budget.category,
            limit=str(budget.limit),
        )
        return Ok(value=budget)

    async def update_budget(
        self,
        budget_id: UUID,
        candidate: BudgetInput,
    ) -> Union[Ok[Budget], Err]:
        """Change a budget's category and/or limit. id and created_at are kept."""
        operation = "update_budget"
        validated = validate_budget(candidate)
        if isinstance(validated, Err):
            return await self._reject(
                operation, candidate.user_id, validated, MutationState.VALIDATING
            )
        user_id = validated.value.user_id

        try:
            existing = await self._owned_budget(user_id, budget_id)
            if existing is None:
                return await self._reject(
                    operation, user_id, _not_found("budget"), MutationState.VALIDATING
                )
            updated = existing.model_copy(update={
                "category": validated.value.category,
                "limit": validated.value.limit,
            })

            async with self._locks.hold(
                self._lock_key(user_id, existing.category),
                self._lock_key(user_id, updated.category),
            ):
                if await self._category_taken(user_id, updated.category, exclude=existing.id):
                    return await self._reject(
                        operation,
                        user_id,
                        Err(
                            kind=ErrorKind.CONFLICT,
                            reason=f"a budget for {updated.category} already exists",
                        ),
                        MutationState.VALIDATING,
                    )
                if await self._store.update_budget(updated) == 0:
                    return await self._reject(
                        operation, user_id, _not_found("budget"),
                        MutationState.PERSISTING,
                    )
        except Exception as e:
            return await self._store_failed(operation, e, user_id)

        await self._audit.log_budget_changed(
            event_type=AuditEventType.BUDGET_UPDATED,
            budget_id=updated.id,
            user_id=user_id,
            category=updated.category,
            limit=str(updated.limit),
        )
        return Ok(value=updated)

    async def delete_budget(self, user_id: str, budget_id: UUID) -> Union[Ok[Budget], Err]:
        operation = "delete_budget"
        try:
            existing = await self._owned_budget(user_id, budget_id)
            if existing is None or await self._store.delete_budget(budget_id) == 0:
                return await self._reject(
                    operation, user_id, _not_found("budget"), MutationState.PERSISTING
                )
        except Exception as e:
            return await self._store_failed(operation, e, user_id)

        await self._audit.log_budget_changed(
            event_type=AuditEventType.BUDGET_DELETED,
            budget_id=existing.id,
            user_id=user_id,
            category=existing.category,
        )
        return Ok(value=existing)

    async def list_budgets(self, user_id: str) -> Union[Ok[list[Budget]], Err]:
        return await self._read("list_budgets", user_id, self._store.list_budgets(user_id))

    async def _statuses(self, user_id: str, period_key: str) -> list[BudgetStatus]:
        budgets = await self._store.list_budgets(user_id)
        spent = spent_by_category(
            await self._aggregator.snapshot(user_id), user_id, period_key
        )
        return [
            evaluate(
                budget,
                spent.get(category_key(budget.category), Decimal("0")),
                period_key,
            )
            for budget in budgets
        ]

    async def budget_statuses(
        self,
        user_id: str,
        period_key: Optional[str] = None,
        today: Optional[date] = None,
    ) -> Union[Ok[list[BudgetStatus]], Err]:
        """
        Status of every budget the user has, for one month.

        Defaults to the current calendar month. Always recomputed from the
        store; nothing is cached between calls.
        """
        invalid = _invalid_period(period_key)
        if invalid is not None:
            return invalid
        period_key = period_key or current_period_key(today)
        return await self._read(
            "budget_statuses", user_id, self._statuses(user_id, period_key)
        )

    async def budget_overview(
        self,
        user_id: str,
        period_key: Optional[str] = None,
        today: Optional[date] = None,
    ) -> Union[Ok[BudgetOverview], Err]:
        statuses = await self.budget_statuses(user_id, period_key, today)
        if isinstance(statuses, Err):
            return statuses
        return Ok(value=overview(statuses.value, period_key or current_period_key(today)))

    async def exceeded_budgets(
        self,
        user_id: str,
        period_key: Optional[str] = None,
        today: Optional[date] = None,
    ) -> Union[Ok[list[BudgetStatus]], Err]:
        """Budgets at or over 100%."""
        statuses = await self.budget_statuses(user_id, period_key, today)
        if isinstance(statuses, Err):
            return statuses
        return Ok(value=in_states(statuses.value, BudgetState.EXCEEDED))

    async def alert_budgets(
        self,
        user_id: str,
        period_key: Optional[str] = None,
        today: Optional[date] = None,
    ) -> Union[Ok[list[BudgetStatus]], Err]:
        """Budgets at 80% or more (ALERT and EXCEEDED)."""
        statuses = await self.budget_statuses(user_id, period_key, today)
        if isinstance(statuses, Err):
            return statuses
        return Ok(value=in_states(statuses.value, BudgetState.ALERT, BudgetState.EXCEEDED))

    # =========================================================================
    # Notifications
    # =========================================================================

    async def list_notifications(
        self,
        user_id: str,
        unread_only: bool = False,
    ) -> Union[Ok[list[Notification]], Err]:
        """Newest first."""
        try:
            notifications = await self._store.list_notifications(user_id)
        except Exception as e:
            return await self._store_failed("list_notifications", e, user_id)
        if unread_only:
            notifications = [n for n in notifications if not n.is_read]
        return Ok(value=notifications)

    async def unread_count(self, user_id: str) -> Union[Ok[int], Err]:
        notifications = await self.list_notifications(user_id, unread_only=True)
        if isinstance(notifications, Err):
            return notifications
        return Ok(value=len(notifications.value))

    async def mark_notification_read(
        self,
        user_id: str,
        notification_id: UUID,
    ) -> Union[Ok[Notification], Err]:
        operation = "mark_notification_read"
        try:
            notification = await self._owned_notification(user_id, notification_id)
            if notification is None:
                return _not_found("notification")
            if notification.is_read:
                return Ok(value=notification)
            updated = notification.model_copy(update={"is_read": True})
            if await self._store.update_notification(updated) == 0:
                return _not_found("notification")
        except Exception as e:
            return await self._store_failed(operation, e, user_id)
        return Ok(value=updated)

    async def mark_all_notifications_read(self, user_id: str) -> Union[Ok[int], Err]:
        """Mark every unread notification as read. Returns how many changed."""
        operation = "mark_all_notifications_read"
        changed = 0
        try:
            for notification in await self._store.list_notifications(user_id):
                if notification.is_read:
                    continue
                changed += await self._store.update_notification(
                    notification.model_copy(update={"is_read": True})
                )
        except Exception as e:
            return await self._store_failed(operation, e, user_id)
        return Ok(value=changed)

    async def delete_notification(
        self,
        user_id: str,
        notification_id: UUID,
    ) -> Union[Ok[Notification], Err]:
        operation = "delete_notification"
        try:
            notification = await self._owned_notification(user_id, notification_id)
            if notification is None:
                return _not_found("notification")
            if await self._store.delete_notification(notification_id) == 0:
                return _not_found("notification")
        except Exception as e:
            return await self._store_failed(operation, e, user_id)
        return Ok(value=notification)

    # =========================================================================
    # Users
    # =========================================================================

    async def register_user(self, candidate: UserInput) -> Union[Ok[User], Err]:
        """Register a user. Email and username must both be unused."""
        operation = "register_user"
        validated = validate_user(candidate)
        if isinstance(validated, Err):
            return await self._reject(operation, None, validated, MutationState.VALIDATING)
        user = validated.value

        taken = Err(kind=ErrorKind.CONFLICT, reason="email or username already registered")
        try:
            if await self._store.find_user(email=user.email, username=user.username):
                return await self._reject(operation, None, taken, MutationState.VALIDATING)
            await self._store.add_user(user)
        except DuplicateError:
            return await self._reject(operation, None, taken, MutationState.PERSISTING)
        except Exception as e:
            return await self._store_failed(operation, e)

        await self._audit.log_user_registered(user_id=user.id, username=user.username)
        return Ok(value=user)

    async def update_user_profile(
        self,
        user_id: str,
        candidate: UserInput,
    ) -> Union[Ok[User], Err]:
        """
        Change a user's name, email and username.

        The profile is validated like a registration. A missing credential
        keeps the stored one. Email and username may stay as they are but
        must not belong to any other user. id and created_at are kept.
        """
        operation = "update_user_profile"
        try:
            existing = await self._store.get_user(user_id)
        except Exception as e:
            return await self._store_failed(operation, e, user_id)
        if existing is None:
            return await self._reject(
                operation, user_id, _not_found("user"), MutationState.VALIDATING
            )

        if not candidate.credential_hash:
            candidate = candidate.model_copy(
                update={"credential_hash": existing.credential_hash}
            )
        validated = validate_user(candidate)
        if isinstance(validated, Err):
            return await self._reject(operation, user_id, validated, MutationState.VALIDATING)
        updated = existing.model_copy(update={
            "name": validated.value.name,
            "email": validated.value.email,
            "username": validated.value.username,
            "credential_hash": validated.value.credential_hash,
        })

        taken = Err(kind=ErrorKind.CONFLICT, reason="email or username already registered")
        try:
            for owner in (
                await self._store.find_user(email=updated.email),
                await self._store.find_user(username=updated.username),
            ):
                if owner is not None and owner.id != user_id:
                    return await self._reject(
                        operation, user_id, taken, MutationState.VALIDATING
                    )
            self._audit.trace(operation, MutationState.PERSISTING.value)
            if await self._store.update_user(updated) == 0:
                return await self._reject(
                    operation, user_id, _not_found("user"), MutationState.PERSISTING
                )
        except Exception as e:
            return await self._store_failed(operation, e, user_id)

        await self._audit.log_user_updated(user_id=user_id, username=updated.username)
        return Ok(value=updated)

    async def get_user(self, user_id: str) -> Union[Ok[User], Err]:
        try:
            user = await self._store.get_user(user_id)
        except Exception as e:
            return await self._store_failed("get_user", e, user_id)
        if user is None:
            return _not_found("user")
        return Ok(value=user)


def create_ledger(settings: Optional[LedgerSettings] = None) -> LedgerCoordinator:
    """
    Factory function to create a coordinator with its store and audit log.

    The backend comes from settings.storage_backend:
    - MEMORY: in-memory store and audit log (tests, single process)
    - GOOGLE_SHEETS: one spreadsheet holds the tables and the audit log
    """
    settings = settings or get_settings().ledger

    if settings.storage_backend == StorageBackend.GOOGLE_SHEETS:
        sheets_client = GoogleSheetsClient()
        store = GoogleSheetsLedgerStore(sheets_client)
        audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
    else:
        store = InMemoryLedgerStore()
        audit_logger = AuditLogger(InMemoryAuditStorage())

    return LedgerCoordinator(store, audit_logger=audit_logger, settings=settings)
