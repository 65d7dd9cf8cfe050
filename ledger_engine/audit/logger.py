"""
Audit Logger

DESIGN DECISION: Every ledger mutation is logged, including rejected ones.
This provides:
1. Traceability of each write
2. Debugging capability when a write is rejected or the store fails
3. A record of alerting side effects

The audit logger:
- Is async so persistence does not block the coordinator
- Gracefully handles failures (a failing audit store never fails a write)
- Never raises from a log_* helper, even when an event cannot be built
"""

from typing import Callable, Optional
from uuid import UUID

import structlog

from ledger_engine.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from ledger_engine.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit store, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("ledger_engine.audit")

    @property
    def storage(self) -> Optional[AuditStorageInterface]:
        return self._storage

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def trace(self, operation: str, state: str, **context) -> None:
        """Local-only log line for a mutation moving to a new state."""
        self._logger.debug("mutation_state", operation=operation, state=state, **context)

    async def _record(self, build: Callable[..., AuditEvent], **fields) -> bool:
        """Build an event and log it. A malformed event is logged locally and dropped."""
        try:
            event = build(**fields)
        except ValueError as e:
            self._logger.error(
                "audit_event_invalid",
                builder=build.__name__,
                error=str(e),
            )
            return False
        return await self.log(event)

    async def log_transaction_recorded(
        self,
        transaction_id: UUID,
        user_id: str,
        kind: str,
        category: str,
        amount: str,
    ) -> None:
        await self._record(
            AuditEventBuilder.transaction_recorded,
            transaction_id=transaction_id,
            user_id=user_id,
            kind=kind,
            category=category,
            amount=amount,
        )

    async def log_transaction_updated(
        self,
        transaction_id: UUID,
        user_id: str,
        category: str,
        amount: str,
    ) -> None:
        await self._record(
            AuditEventBuilder.transaction_updated,
            transaction_id=transaction_id,
            user_id=user_id,
            category=category,
            amount=amount,
        )

    async def log_transaction_deleted(
        self,
        transaction_id: UUID,
        user_id: str,
    ) -> None:
        await self._record(
            AuditEventBuilder.transaction_deleted,
            transaction_id=transaction_id,
            user_id=user_id,
        )

    async def log_mutation_rejected(
        self,
        operation: str,
        user_id: Optional[str],
        error_kind: str,
        reason: str,
        state: str,
    ) -> None:
        """Log a write that was refused (validation, ownership, limit...)."""
        await self._record(
            AuditEventBuilder.mutation_rejected,
            operation=operation,
            user_id=user_id,
            error_kind=error_kind,
            reason=reason,
            state=state,
        )

    async def log_budget_changed(
        self,
        event_type: AuditEventType,
        budget_id: UUID,
        user_id: str,
        category: str,
        limit: Optional[str] = None,
    ) -> None:
        await self._record(
            AuditEventBuilder.budget_changed,
            event_type=event_type,
            budget_id=budget_id,
            user_id=user_id,
            category=category,
            limit=limit,
        )

    async def log_notification_emitted(
        self,
        notification_id: UUID,
        user_id: str,
        severity: str,
        category: Optional[str],
    ) -> None:
        await self._record(
            AuditEventBuilder.notification_emitted,
            notification_id=notification_id,
            user_id=user_id,
            severity=severity,
            category=category,
        )

    async def log_notification_failed(
        self,
        user_id: str,
        category: str,
        error_message: str,
    ) -> None:
        """Log an alerting failure. The triggering write still succeeds."""
        await self._record(
            AuditEventBuilder.notification_failed,
            user_id=user_id,
            category=category,
            error_message=error_message,
        )

    async def log_user_registered(self, user_id: str, username: str) -> None:
        await self._record(
            AuditEventBuilder.user_registered,
            user_id=user_id,
            username=username,
        )

    async def log_user_updated(self, user_id: str, username: str) -> None:
        await self._record(
            AuditEventBuilder.user_updated,
            user_id=user_id,
            username=username,
        )

    async def log_store_error(
        self,
        operation: str,
        error_message: str,
        user_id: Optional[str] = None,
    ) -> None:
        """Log a storage failure with the underlying detail."""
        await self._record(
            AuditEventBuilder.store_error,
            operation=operation,
            error_message=error_message,
            user_id=user_id,
        )
