"""
In-Memory Storage Implementation

Used for tests and single-process use. Rows live in insertion-ordered
dicts keyed by id.

Every call yields to the event loop once, like a real backend would while
waiting on I/O. That keeps interleavings between concurrent writers
realistic in tests.
"""

import asyncio
from typing import Optional
from uuid import UUID

from ledger_engine.models.audit import AuditEvent
from ledger_engine.models.ledger import Budget, Notification, Transaction, User
from ledger_engine.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStoreInterface,
)


class InMemoryLedgerStore(LedgerStoreInterface):
    """Dict-backed ledger store."""

    def __init__(self):
        self._users: dict[str, User] = {}
        self._transactions: dict[UUID, Transaction] = {}
        self._budgets: dict[UUID, Budget] = {}
        self._notifications: dict[UUID, Notification] = {}

    @staticmethod
    async def _io() -> None:
        await asyncio.sleep(0)

    @staticmethod
    def _insert(table: dict, key, row) -> int:
        if key in table:
            raise DuplicateError(f"Row already exists: {key}")
        table[key] = row
        return 1

    @staticmethod
    def _replace(table: dict, key, row) -> int:
        if key not in table:
            return 0
        table[key] = row
        return 1

    @staticmethod
    def _remove(table: dict, key) -> int:
        return 1 if table.pop(key, None) is not None else 0

    # Users

    async def add_user(self, user: User) -> int:
        await self._io()
        if await self.find_user(email=user.email, username=user.username):
            raise DuplicateError("Email or username already registered")
        return self._insert(self._users, user.id, user)

    async def get_user(self, user_id: str) -> Optional[User]:
        await self._io()
        return self._users.get(user_id)

    async def update_user(self, user: User) -> int:
        await self._io()
        return self._replace(self._users, user.id, user)

    async def find_user(
        self,
        email: Optional[str] = None,
        username: Optional[str] = None,
    ) -> Optional[User]:
        await self._io()
        email = email.lower() if email else None
        username = username.lower() if username else None
        for user in self._users.values():
            if email and user.email.lower() == email:
                return user
            if username and user.username.lower() == username:
                return user
        return None

    # Transactions

    async def add_transaction(self, transaction: Transaction) -> int:
        await self._io()
        return self._insert(self._transactions, transaction.id, transaction)

    async def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        await self._io()
        return self._transactions.get(transaction_id)

    async def update_transaction(self, transaction: Transaction) -> int:
        await self._io()
        return self._replace(self._transactions, transaction.id, transaction)

    async def delete_transaction(self, transaction_id: UUID) -> int:
        await self._io()
        return self._remove(self._transactions, transaction_id)

    async def list_transactions(self, user_id: str) -> list[Transaction]:
        await self._io()
        return [t for t in self._transactions.values() if t.user_id == user_id]

    # Budgets

    async def add_budget(self, budget: Budget) -> int:
        await self._io()
        return self._insert(self._budgets, budget.id, budget)

    async def get_budget(self, budget_id: UUID) -> Optional[Budget]:
        await self._io()
        return self._budgets.get(budget_id)

    async def update_budget(self, budget: Budget) -> int:
        await self._io()
        return self._replace(self._budgets, budget.id, budget)

    async def delete_budget(self, budget_id: UUID) -> int:
        await self._io()
        return self._remove(self._budgets, budget_id)

    async def list_budgets(self, user_id: str) -> list[Budget]:
        await self._io()
        return [b for b in self._budgets.values() if b.user_id == user_id]

    # Notifications

    async def add_notification(self, notification: Notification) -> int:
        await self._io()
        return self._insert(self._notifications, notification.id, notification)

    async def get_notification(self, notification_id: UUID) -> Optional[Notification]:
        await self._io()
        return self._notifications.get(notification_id)

    async def update_notification(self, notification: Notification) -> int:
        await self._io()
        return self._replace(self._notifications, notification.id, notification)

    async def delete_notification(self, notification_id: UUID) -> int:
        await self._io()
        return self._remove(self._notifications, notification_id)

    async def list_notifications(self, user_id: str) -> list[Notification]:
        await self._io()
        owned = [n for n in self._notifications.values() if n.user_id == user_id]
        # Newest first; reversed insertion order breaks created_at ties
        return sorted(reversed(owned), key=lambda n: n.created_at, reverse=True)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
