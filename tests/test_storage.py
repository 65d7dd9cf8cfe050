"""
Tests for the storage adapters.

The Google Sheets adapter runs against an in-process fake worksheet;
no network access and no credentials are needed.
"""

import pytest
from datetime import date, datetime
from decimal import Decimal
from unittest.mock import MagicMock
from uuid import uuid4

from ledger_engine.models.audit import AuditEventBuilder
from ledger_engine.models.ledger import (
    Budget,
    Notification,
    NotificationSeverity,
    Transaction,
    TransactionKind,
    User,
)
from ledger_engine.services.storage import (
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsLedgerStore,
    InMemoryAuditStorage,
    InMemoryLedgerStore,
    StoreError,
)
from ledger_engine.services.storage.google_sheets import TABLE_COLUMNS


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the adapter."""

    def __init__(self, header):
        self.rows = [list(header)]

    def get_all_values(self):
        return [list(row) for row in self.rows]

    def append_row(self, row, value_input_option=None):
        self.rows.append([str(value) for value in row])

    def update_cell(self, row, col, value):
        self.rows[row - 1][col - 1] = str(value)

    def delete_rows(self, index):
        del self.rows[index - 1]


class FakeSheetsClient:
    def __init__(self):
        self.tables = {name: FakeWorksheet(cols) for name, cols in TABLE_COLUMNS.items()}

    def get_table(self, table):
        return self.tables[table]


def _transaction(amount="12.50", category="Comida", user_id="u1") -> Transaction:
    return Transaction(
        amount=Decimal(amount),
        category=category,
        date=date(2024, 3, 14),
        description="Lunch",
        kind=TransactionKind.EXPENSE,
        user_id=user_id,
    )


def _user(email="ana@example.com", username="ana") -> User:
    return User(name="Ana", email=email, username=username, credential_hash="h")


@pytest.fixture(params=["memory", "sheets"])
def store(request):
    if request.param == "memory":
        return InMemoryLedgerStore()
    return GoogleSheetsLedgerStore(FakeSheetsClient())


class TestLedgerStore:
    """Contract tests run against both adapters."""

    @pytest.mark.asyncio
    async def test_transaction_crud(self, store):
        """Test add, get, update, delete and affected-row counts."""
        transaction = _transaction()
        assert await store.add_transaction(transaction) == 1
        assert await store.get_transaction(transaction.id) == transaction

        edited = transaction.model_copy(update={"amount": Decimal("20.00")})
        assert await store.update_transaction(edited) == 1
        assert (await store.get_transaction(transaction.id)).amount == Decimal("20.00")

        assert await store.delete_transaction(transaction.id) == 1
        assert await store.get_transaction(transaction.id) is None

    @pytest.mark.asyncio
    async def test_missing_rows_affect_nothing(self, store):
        """Test that 0 signals not found."""
        assert await store.update_transaction(_transaction()) == 0
        assert await store.delete_transaction(uuid4()) == 0
        assert await store.delete_budget(uuid4()) == 0

    @pytest.mark.asyncio
    async def test_lists_are_per_user(self, store):
        """Test that list methods only return the owner's rows."""
        await store.add_transaction(_transaction(user_id="u1"))
        await store.add_transaction(_transaction(user_id="u2"))
        await store.add_budget(Budget(category="Comida", limit=Decimal("400"), user_id="u2"))

        assert len(await store.list_transactions("u1")) == 1
        assert await store.list_budgets("u1") == []
        assert len(await store.list_budgets("u2")) == 1

    @pytest.mark.asyncio
    async def test_budget_round_trip(self, store):
        """Test that budgets keep their Decimal limit."""
        budget = Budget(category="Comida", limit=Decimal("400.50"), user_id="u1")
        await store.add_budget(budget)
        assert await store.get_budget(budget.id) == budget

    @pytest.mark.asyncio
    async def test_notifications_newest_first(self, store):
        """Test notification ordering and the read flag."""
        older = Notification(
            user_id="u1", title="A", message="a",
            created_at=datetime(2024, 3, 1, 9, 0),
        )
        newer = Notification(
            user_id="u1", title="B", message="b",
            severity=NotificationSeverity.DANGER,
            related_category="Comida",
            period_key="2024-03",
            created_at=datetime(2024, 3, 2, 9, 0),
        )
        await store.add_notification(older)
        await store.add_notification(newer)

        assert [n.title for n in await store.list_notifications("u1")] == ["B", "A"]

        await store.update_notification(older.model_copy(update={"is_read": True}))
        assert (await store.get_notification(older.id)).is_read is True
        assert await store.get_notification(newer.id) == newer

    @pytest.mark.asyncio
    async def test_users_unique_email_and_username(self, store):
        """Test user lookup and uniqueness."""
        user = _user()
        await store.add_user(user)

        assert (await store.get_user(user.id)).username == "ana"
        assert (await store.find_user(email="ANA@example.com")).id == user.id
        assert (await store.find_user(username="Ana")).id == user.id
        assert await store.find_user(email="other@example.com") is None

        with pytest.raises(DuplicateError):
            await store.add_user(_user(username="someone"))
        with pytest.raises(DuplicateError):
            await store.add_user(_user(email="x@example.com"))

    @pytest.mark.asyncio
    async def test_update_user(self, store):
        """Test replacing a user's profile in place."""
        user = _user()
        await store.add_user(user)
        renamed = user.model_copy(update={"name": "Ana Maria", "email": "am@example.com"})

        assert await store.update_user(renamed) == 1
        stored = await store.get_user(user.id)
        assert stored.name == "Ana Maria"
        assert stored.email == "am@example.com"
        assert stored.credential_hash == "h"
        assert stored.created_at == user.created_at
        assert (await store.find_user(email="am@example.com")).id == user.id
        assert await store.find_user(email="ana@example.com") is None

        assert await store.update_user(_user(email="ghost@example.com", username="ghost")) == 0


class TestGoogleSheetsAdapter:
    """Tests specific to the Sheets adapter."""

    @pytest.mark.asyncio
    async def test_rows_use_plain_columns(self):
        """Test the row layout written to the sheet."""
        client = FakeSheetsClient()
        store = GoogleSheetsLedgerStore(client)
        transaction = _transaction()
        await store.add_transaction(transaction)

        row = client.tables["transactions"].rows[1]
        assert row == [
            str(transaction.id), "12.50", "Comida", "2024-03-14", "Lunch", "expense", "u1",
        ]

    @pytest.mark.asyncio
    async def test_malformed_rows_are_skipped(self):
        """Test that a hand-edited bad row does not break reads."""
        client = FakeSheetsClient()
        store = GoogleSheetsLedgerStore(client)
        client.tables["transactions"].rows.append(["garbage", "x"])
        client.tables["transactions"].rows.append([])
        await store.add_transaction(_transaction())

        assert len(await store.list_transactions("u1")) == 1

    @pytest.mark.asyncio
    async def test_read_failure_raises_store_error(self):
        """Test that API failures surface as StoreError."""
        client = MagicMock()
        client.get_table.return_value.get_all_values.side_effect = RuntimeError("quota")
        store = GoogleSheetsLedgerStore(client)

        with pytest.raises(StoreError):
            await store.list_budgets("u1")

    @pytest.mark.asyncio
    async def test_audit_storage(self):
        """Test appending and reading audit events."""
        storage = GoogleSheetsAuditStorage(FakeSheetsClient())
        first = AuditEventBuilder.transaction_deleted(uuid4(), "u1")
        second = AuditEventBuilder.store_error("create_budget", "boom", user_id="u1")
        assert await storage.append_event(first)
        assert await storage.append_event(second)

        recent = await storage.get_recent_events(limit=1)
        assert [e.event_id for e in recent] == [second.event_id]

        events = await storage.get_events_by_entity("transaction", first.entity_id)
        assert [e.event_id for e in events] == [first.event_id]
        assert (await storage.get_recent_events())[0].error_message == "boom"


class TestInMemoryAuditStorage:
    """Tests for the in-memory audit log."""

    @pytest.mark.asyncio
    async def test_append_only_log(self):
        storage = InMemoryAuditStorage()
        events = [AuditEventBuilder.user_registered(f"u{i}", f"user{i}") for i in range(3)]
        for event in events:
            await storage.append_event(event)

        recent = await storage.get_recent_events(limit=2)
        assert [e.entity_id for e in recent] == ["u2", "u1"]
        assert len(await storage.get_events_by_entity("user", "u0")) == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
