"""
Tests for the Ledger Engine

Test strategy:
1. Unit tests for pure components (models, normalizer, validators, evaluator)
2. Integration tests for the coordinator against the in-memory store
3. No real API calls in tests (the Sheets adapter runs on fake worksheets)
"""

import pytest
from datetime import date, datetime
from decimal import Decimal
from typing import Union, get_type_hints
from uuid import uuid4

from ledger_engine.models.ledger import (
    Budget,
    BudgetState,
    Notification,
    NotificationSeverity,
    Transaction,
    TransactionKind,
    TransactionWriteResult,
    User,
    clip,
)
from ledger_engine.models.result import Err, ErrorKind, Ok, Result
from ledger_engine.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from ledger_engine.orchestrator import LedgerCoordinator
from ledger_engine.validation import validate_transaction


def _transaction(**overrides) -> Transaction:
    fields = dict(
        amount=Decimal("25.00"),
        category="Comida",
        date=date(2024, 3, 14),
        kind=TransactionKind.EXPENSE,
        user_id="u1",
    )
    fields.update(overrides)
    return Transaction(**fields)


class TestLedgerModels:
    """Tests for ledger records."""

    def test_transaction_creation(self):
        """Test Transaction model creation."""
        transaction = _transaction(description="Lunch")
        assert transaction.amount == Decimal("25.00")
        assert transaction.kind == TransactionKind.EXPENSE
        assert transaction.description == "Lunch"

    def test_transaction_period_key(self):
        """Test that the period key is the calendar month."""
        assert _transaction(date=date(2024, 3, 1)).period_key == "2024-03"
        assert _transaction(date=date(2023, 12, 31)).period_key == "2023-12"

    def test_transaction_rejects_non_positive_amount(self):
        """Test that zero and negative amounts are rejected."""
        with pytest.raises(ValueError):
            _transaction(amount=Decimal("0"))
        with pytest.raises(ValueError):
            _transaction(amount=Decimal("-5"))

    def test_transaction_is_immutable(self):
        """Test that records are frozen and edits produce copies."""
        transaction = _transaction()
        with pytest.raises(ValueError):
            transaction.amount = Decimal("1")

        edited = transaction.model_copy(update={"amount": Decimal("30")})
        assert edited.id == transaction.id
        assert edited.amount == Decimal("30")
        assert transaction.amount == Decimal("25.00")

    def test_budget_rejects_non_positive_limit(self):
        """Test that a budget needs a positive limit."""
        with pytest.raises(ValueError):
            Budget(category="Comida", limit=Decimal("0"), user_id="u1")

    def test_user_credential_not_serialized(self):
        """Test that the credential hash never leaves the model."""
        user = User(
            name="Ana",
            email="ana@example.com",
            username="ana",
            credential_hash="secret-hash",
        )
        dumped = user.model_dump()
        assert "credential_hash" not in dumped
        assert "secret-hash" not in repr(user)
        assert isinstance(user.id, str)

    def test_notification_defaults(self):
        """Test Notification defaults."""
        notification = Notification(user_id="u1", title="Hi", message="Hello")
        assert notification.severity == NotificationSeverity.INFO
        assert notification.is_read is False
        assert notification.related_category is None

    def test_budget_state_values(self):
        """Test the four budget states."""
        assert [s.value for s in BudgetState] == ["SAFE", "CAUTION", "ALERT", "EXCEEDED"]


class TestResultEnvelope:
    """Tests for Ok / Err."""

    def test_ok_envelope_is_json_ready(self):
        """Test that Ok serializes its payload."""
        transaction = _transaction()
        envelope = Ok(value=TransactionWriteResult(transaction=transaction)).to_envelope()

        assert envelope["success"] is True
        assert envelope["data"]["transaction"]["id"] == str(transaction.id)
        assert envelope["data"]["transaction"]["amount"] == "25.00"
        assert envelope["data"]["transaction"]["date"] == "2024-03-14"
        assert envelope["data"]["notification"] is None

    def test_ok_envelope_with_list(self):
        """Test that lists of models serialize item by item."""
        envelope = Ok(value=[_transaction(), _transaction()]).to_envelope()
        assert len(envelope["data"]) == 2
        assert envelope["data"][0]["kind"] == "expense"

    def test_ok_envelope_with_scalar(self):
        """Test that Decimal payloads become strings."""
        assert Ok(value=Decimal("1.50")).to_envelope() == {"success": True, "data": "1.50"}

    def test_err_envelope(self):
        """Test that Err only exposes the reason."""
        err = Err(kind=ErrorKind.VALIDATION, reason="amount must be positive")
        assert err.success is False
        assert err.to_envelope() == {"success": False, "error": "amount must be positive"}

    def test_result_annotations_resolve(self):
        """Test that payload-typed result annotations are usable at runtime."""
        ok_type, err_type = get_type_hints(validate_transaction)["return"].__args__
        assert issubclass(ok_type, Ok)
        assert err_type is Err
        assert Result == Union[Ok, Err]
        hints = get_type_hints(LedgerCoordinator.record_transaction)
        assert Err in hints["return"].__args__


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_RECORDED,
            description="Recorded",
        )
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None
        assert isinstance(event.timestamp, datetime)

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.BUDGET_CREATED,
            entity_type="budget",
            entity_id="b1",
            user_id="u1",
            description="Budget created",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "budget_created"
        assert log_dict["entity_id"] == "b1"
        assert log_dict["user_id"] == "u1"

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.STORE_ERROR,
            severity=AuditSeverity.ERROR,
            description="Store error",
            details={"operation": "create_budget"},
            error_message="boom",
        )
        row = event.to_sheets_row()
        assert len(row) == 10
        assert row[2] == "store_error"
        assert row[3] == "error"
        assert '"operation": "create_budget"' in row[8]
        assert row[9] == "boom"

    def test_audit_event_builder_transaction_recorded(self):
        """Test the transaction_recorded builder."""
        transaction_id = uuid4()
        event = AuditEventBuilder.transaction_recorded(
            transaction_id=transaction_id,
            user_id="u1",
            kind="expense",
            category="Comida",
            amount="25.00",
        )
        assert event.event_type == AuditEventType.TRANSACTION_RECORDED
        assert event.entity_type == "transaction"
        assert event.entity_id == str(transaction_id)
        assert event.details["category"] == "Comida"

    def test_audit_event_builder_mutation_rejected(self):
        """Test that rejections are warnings with their context."""
        event = AuditEventBuilder.mutation_rejected(
            operation="record_transaction",
            user_id="u1",
            error_kind="conflict",
            reason="over budget",
            state="budget_checking",
        )
        assert event.severity == AuditSeverity.WARNING
        assert event.details["state"] == "budget_checking"
        assert "over budget" in event.description

    def test_audit_event_builder_budget_changed(self):
        """Test the budget_changed builder names the change."""
        event = AuditEventBuilder.budget_changed(
            event_type=AuditEventType.BUDGET_DELETED,
            budget_id=uuid4(),
            user_id="u1",
            category="Comida",
        )
        assert event.description == "Budget deleted: Comida"

    def test_audit_event_description_is_clipped(self):
        """Test that a long label shortens the description instead of failing."""
        event = AuditEventBuilder.budget_changed(
            event_type=AuditEventType.BUDGET_CREATED,
            budget_id=uuid4(),
            user_id="u1",
            category="x" * 600,
        )
        assert len(event.description) == 500
        assert event.description.endswith("...")
        assert event.details["category"] == "x" * 600

    def test_audit_event_builder_user_updated(self):
        """Test the profile update builder."""
        event = AuditEventBuilder.user_updated(user_id="u1", username="ana")
        assert event.event_type == AuditEventType.USER_UPDATED
        assert event.entity_id == "u1"

    def test_clip(self):
        """Test text clipping."""
        assert clip("short", 10) == "short"
        assert clip("a" * 20, 10) == "aaaaaaa..."
        assert len(clip("a" * 20, 10)) == 10


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
