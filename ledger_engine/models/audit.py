"""
Audit Models for the Ledger Engine

Every ledger mutation, rejection and alerting side effect is logged.
This provides:
1. Traceability of what happened to a user's ledger
2. Debugging information when a write is rejected or fails
3. A record of which notifications were (or failed to be) emitted

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator

from ledger_engine.models.ledger import clip


DESCRIPTION_MAX_LENGTH = 500


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Transactions
    TRANSACTION_RECORDED = "transaction_recorded"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    MUTATION_REJECTED = "mutation_rejected"

    # Budgets
    BUDGET_CREATED = "budget_created"
    BUDGET_UPDATED = "budget_updated"
    BUDGET_DELETED = "budget_deleted"

    # Alerting
    NOTIFICATION_EMITTED = "notification_emitted"
    NOTIFICATION_FAILED = "notification_failed"

    # Users
    USER_REGISTERED = "user_registered"
    USER_UPDATED = "user_updated"

    # System events
    STORE_ERROR = "store_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'budget')"
    )
    entity_id: Optional[str] = None
    user_id: Optional[str] = None

    description: str = Field(..., max_length=DESCRIPTION_MAX_LENGTH)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    @field_validator("description", mode="before")
    @classmethod
    def clip_description(cls, v: Any) -> Any:
        """Descriptions embed user labels; long ones are shortened, not refused."""
        if isinstance(v, str):
            return clip(v, DESCRIPTION_MAX_LENGTH)
        return v

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "user_id": self.user_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         user_id, description, details_json, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            self.user_id or "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_deleted(transaction_id, user_id)
        event = AuditEventBuilder.store_error("create_budget", str(exc))
    """

    @staticmethod
    def transaction_recorded(
        transaction_id: UUID,
        user_id: str,
        kind: str,
        category: str,
        amount: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_RECORDED,
            entity_type="transaction",
            entity_id=str(transaction_id),
            user_id=user_id,
            description=f"Recorded {kind} of {amount} in {category}",
            details={"kind": kind, "category": category, "amount": amount},
        )

    @staticmethod
    def transaction_updated(
        transaction_id: UUID,
        user_id: str,
        category: str,
        amount: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            entity_type="transaction",
            entity_id=str(transaction_id),
            user_id=user_id,
            description=f"Transaction updated: {amount} in {category}",
            details={"category": category, "amount": amount},
        )

    @staticmethod
    def transaction_deleted(transaction_id: UUID, user_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=str(transaction_id),
            user_id=user_id,
            description="Transaction deleted",
        )

    @staticmethod
    def mutation_rejected(
        operation: str,
        user_id: Optional[str],
        error_kind: str,
        reason: str,
        state: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_REJECTED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            description=f"{operation} rejected: {reason}",
            details={
                "operation": operation,
                "error_kind": error_kind,
                "state": state,
            },
        )

    @staticmethod
    def budget_changed(
        event_type: AuditEventType,
        budget_id: UUID,
        user_id: str,
        category: str,
        limit: Optional[str] = None,
    ) -> AuditEvent:
        verb = event_type.value.split("_", 1)[1]
        return AuditEvent(
            event_type=event_type,
            entity_type="budget",
            entity_id=str(budget_id),
            user_id=user_id,
            description=f"Budget {verb}: {category}",
            details={"category": category, "limit": limit},
        )

    @staticmethod
    def notification_emitted(
        notification_id: UUID,
        user_id: str,
        severity: str,
        category: Optional[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NOTIFICATION_EMITTED,
            entity_type="notification",
            entity_id=str(notification_id),
            user_id=user_id,
            description=f"{severity.capitalize()} notification for {category}",
            details={"severity": severity, "category": category},
        )

    @staticmethod
    def notification_failed(
        user_id: str,
        category: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NOTIFICATION_FAILED,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            description=f"Could not emit budget notification for {category}",
            error_message=error_message,
            details={"category": category},
        )

    @staticmethod
    def user_registered(user_id: str, username: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_REGISTERED,
            entity_type="user",
            entity_id=user_id,
            user_id=user_id,
            description=f"User registered: {username}",
        )

    @staticmethod
    def user_updated(user_id: str, username: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_UPDATED,
            entity_type="user",
            entity_id=user_id,
            user_id=user_id,
            description=f"Profile updated: {username}",
        )

    @staticmethod
    def store_error(
        operation: str,
        error_message: str,
        user_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_ERROR,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            description=f"Store error during {operation}",
            error_message=error_message,
            details={"operation": operation},
        )
