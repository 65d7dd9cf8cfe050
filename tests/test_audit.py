"""Tests for the audit logger."""

import pytest
from unittest.mock import AsyncMock
from uuid import uuid4

from ledger_engine.audit import AuditLogger
from ledger_engine.models.audit import AuditEventBuilder, AuditEventType, AuditSeverity
from ledger_engine.services.storage import InMemoryAuditStorage


class TestAuditLogger:
    """Tests for AuditLogger."""

    @pytest.mark.asyncio
    async def test_logs_locally_without_storage(self):
        """Test that a logger with no storage still succeeds."""
        logger = AuditLogger()
        assert logger.storage is None
        await logger.log_user_registered(user_id="u1", username="ana")

    @pytest.mark.asyncio
    async def test_persists_events(self):
        """Test that events reach the audit storage."""
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)
        transaction_id = uuid4()

        await logger.log_transaction_recorded(
            transaction_id=transaction_id,
            user_id="u1",
            kind="expense",
            category="Comida",
            amount="200",
        )
        await logger.log_notification_failed(
            user_id="u1", category="Comida", error_message="sheet locked",
        )

        recent = await storage.get_recent_events()
        assert recent[0].event_type == AuditEventType.NOTIFICATION_FAILED
        assert recent[0].severity == AuditSeverity.ERROR
        assert recent[1].entity_id == str(transaction_id)

    @pytest.mark.asyncio
    async def test_storage_failure_is_not_raised(self):
        """Test that a failing audit store never breaks the caller."""
        storage = AsyncMock()
        storage.append_event.side_effect = RuntimeError("disk full")
        logger = AuditLogger(storage)

        await logger.log_store_error(operation="create_budget", error_message="boom")
        storage.append_event.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_budget_events(self):
        """Test the budget change helper."""
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)
        budget_id = uuid4()

        await logger.log_budget_changed(
            event_type=AuditEventType.BUDGET_UPDATED,
            budget_id=budget_id,
            user_id="u1",
            category="Comida",
            limit="500",
        )
        events = await storage.get_events_by_entity("budget", str(budget_id))
        assert events[0].details == {"category": "Comida", "limit": "500"}

    @pytest.mark.asyncio
    async def test_unbuildable_event_is_not_raised(self, monkeypatch):
        """Test that an event failing its own validation never reaches the caller."""
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)

        def broken(**fields):
            raise ValueError("description too long")

        monkeypatch.setattr(AuditEventBuilder, "user_registered", broken)
        await logger.log_user_registered(user_id="u1", username="ana")

        assert await storage.get_recent_events() == []

    @pytest.mark.asyncio
    async def test_long_labels_are_logged(self):
        """Test that a very long username is still audited."""
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)

        await logger.log_user_registered(user_id="u1", username="a" * 600)

        events = await storage.get_recent_events()
        assert events[0].event_type == AuditEventType.USER_REGISTERED
        assert len(events[0].description) <= 500


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
