"""
Data Models Package

This package contains all Pydantic models used by the ledger engine.
All data flowing through the system must conform to these schemas.
"""

from ledger_engine.models.ledger import (
    Budget,
    BudgetInput,
    BudgetOverview,
    BudgetState,
    BudgetStatus,
    LedgerAggregate,
    Notification,
    NotificationSeverity,
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
from ledger_engine.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger records
    "Budget",
    "BudgetInput",
    "BudgetOverview",
    "BudgetState",
    "BudgetStatus",
    "LedgerAggregate",
    "Notification",
    "NotificationSeverity",
    "PeriodSummary",
    "Transaction",
    "TransactionFilter",
    "TransactionInput",
    "TransactionKind",
    "TransactionWriteResult",
    "User",
    "UserInput",
    # Results
    "Err",
    "ErrorKind",
    "Ok",
    "Result",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
