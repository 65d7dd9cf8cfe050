"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap the in-memory store for Google Sheets (or a real database)
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The engine receives a store handle explicitly; there is no global store.

Write operations return the number of affected rows. 0 means the target
row was not found; adapters do not raise for that case.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from ledger_engine.models.audit import AuditEvent
from ledger_engine.models.ledger import Budget, Notification, Transaction, User


class LedgerStoreInterface(ABC):
    """
    Abstract interface for the ledger's persistence store.

    Any storage implementation (in-memory, Google Sheets, SQL...)
    must implement these methods.
    """

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    @abstractmethod
    async def add_user(self, user: User) -> int:
        """
        Save a new user.

        Raises:
            DuplicateError: If the id, email or username is taken
            StoreError: If the write fails
        """
        pass

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[User]:
        pass

    @abstractmethod
    async def update_user(self, user: User) -> int:
        """Replace the stored user with the same id. Uniqueness is the caller's job."""
        pass

    @abstractmethod
    async def find_user(
        self,
        email: Optional[str] = None,
        username: Optional[str] = None,
    ) -> Optional[User]:
        """
        Find a user by email or username (case-insensitive).

        Returns the first user matching either value, None otherwise.
        """
        pass

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @abstractmethod
    async def add_transaction(self, transaction: Transaction) -> int:
        pass

    @abstractmethod
    async def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        pass

    @abstractmethod
    async def update_transaction(self, transaction: Transaction) -> int:
        """Replace the stored transaction with the same id."""
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: UUID) -> int:
        pass

    @abstractmethod
    async def list_transactions(self, user_id: str) -> list[Transaction]:
        """
        All transactions owned by a user.

        This raw row access is what the aggregator computes totals from.
        """
        pass

    # ------------------------------------------------------------------
    # Budgets
    # ------------------------------------------------------------------

    @abstractmethod
    async def add_budget(self, budget: Budget) -> int:
        pass

    @abstractmethod
    async def get_budget(self, budget_id: UUID) -> Optional[Budget]:
        pass

    @abstractmethod
    async def update_budget(self, budget: Budget) -> int:
        pass

    @abstractmethod
    async def delete_budget(self, budget_id: UUID) -> int:
        pass

    @abstractmethod
    async def list_budgets(self, user_id: str) -> list[Budget]:
        pass

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    @abstractmethod
    async def add_notification(self, notification: Notification) -> int:
        pass

    @abstractmethod
    async def get_notification(self, notification_id: UUID) -> Optional[Notification]:
        pass

    @abstractmethod
    async def update_notification(self, notification: Notification) -> int:
        pass

    @abstractmethod
    async def delete_notification(self, notification_id: UUID) -> int:
        pass

    @abstractmethod
    async def list_notifications(self, user_id: str) -> list[Notification]:
        """A user's notifications, newest first."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """All events for one entity, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """The most recent audit events (newest first)."""
        pass


class StoreError(Exception):
    """Base exception for storage operations."""
    pass


class DuplicateError(StoreError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StoreError):
    """Could not connect to storage backend."""
    pass
