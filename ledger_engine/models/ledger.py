"""
Core Data Models for the Ledger Engine

These models define the records flowing between the validators, the
aggregator, the coordinator and the store.

DESIGN DECISION: Records are immutable (frozen pydantic models).
No behavior lives on the data; validation is done by free functions in
ledger_engine.validation. Edits produce a copy via model_copy(update=...).

Input models (TransactionInput, BudgetInput, UserInput) are deliberately
loose: they hold whatever the caller sent so the validators can report a
readable reason instead of a pydantic traceback.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


TITLE_MAX_LENGTH = 200
MESSAGE_MAX_LENGTH = 1000


def clip(text: str, limit: int) -> str:
    """Shorten text to at most limit characters, marking the cut with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionKind(str, Enum):
    """Direction of a ledger movement."""
    INCOME = "income"
    EXPENSE = "expense"


class BudgetState(str, Enum):
    """
    Consumption classification of a budget.

    Thresholds (percentage of limit used):
    SAFE < 50 <= CAUTION < 80 <= ALERT < 100 <= EXCEEDED
    """
    SAFE = "SAFE"
    CAUTION = "CAUTION"
    ALERT = "ALERT"
    EXCEEDED = "EXCEEDED"


class NotificationSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    DANGER = "danger"
    SUCCESS = "success"


# =============================================================================
# PERSISTED RECORDS
# =============================================================================

class User(BaseModel):
    """
    Owner of transactions, budgets and notifications.

    The engine treats `id` as an opaque key. The credential is stored as
    whatever hash the caller produced and is never serialized.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    username: str = Field(..., min_length=1)
    credential_hash: str = Field(..., min_length=1, exclude=True, repr=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Transaction(BaseModel):
    """A single income or expense movement."""
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    amount: Decimal = Field(..., gt=0, description="Positive, currency-agnostic")
    category: str = Field(..., min_length=1, description="Normalized label")
    date: date
    description: Optional[str] = None
    kind: TransactionKind
    user_id: str = Field(..., min_length=1)

    @property
    def period_key(self) -> str:
        """Calendar month of the transaction, formatted YYYY-MM."""
        return self.date.strftime("%Y-%m")


class Budget(BaseModel):
    """
    Monthly spending limit for one category.

    At most one budget exists per (user_id, normalized category).
    Budgets and transactions are linked by that pair only.
    """
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    category: str = Field(..., min_length=1)
    limit: Decimal = Field(..., gt=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    user_id: str = Field(..., min_length=1)


class Notification(BaseModel):
    """User-facing message produced by the alerting policy."""
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH)
    message: str = Field(..., min_length=1, max_length=MESSAGE_MAX_LENGTH)
    severity: NotificationSeverity = NotificationSeverity.INFO
    related_category: Optional[str] = None
    is_read: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)
    # Month of the transaction that triggered it (used for deduplication)
    period_key: Optional[str] = None


# =============================================================================
# INPUT MODELS - unvalidated candidates
# =============================================================================

class TransactionInput(BaseModel):
    """Candidate transaction as received from the Presentation Layer."""

    amount: Any = None
    category: Optional[str] = None
    date: Any = None
    description: Optional[str] = None
    kind: Any = None
    user_id: Optional[str] = None


class BudgetInput(BaseModel):
    """Candidate budget as received from the Presentation Layer."""

    category: Optional[str] = None
    limit: Any = None
    user_id: Optional[str] = None


class UserInput(BaseModel):
    """Candidate user registration."""

    name: Optional[str] = None
    email: Optional[str] = None
    username: Optional[str] = None
    credential_hash: Optional[str] = None


class TransactionFilter(BaseModel):
    """Optional criteria for listing transactions. Ranges are inclusive."""

    category: Optional[str] = None
    kind: Optional[TransactionKind] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None


# =============================================================================
# DERIVED VIEWS - recomputed on demand, never persisted
# =============================================================================

class BudgetStatus(BaseModel):
    """
    How much of a budget is consumed.

    `available` is negative when the budget is overspent.
    """
    model_config = ConfigDict(frozen=True)

    budget_id: Optional[UUID] = None
    category: str
    limit: Decimal
    spent: Decimal
    available: Decimal
    percentage: Decimal
    state: BudgetState
    period_key: Optional[str] = None


class PeriodSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    period_key: str
    income: Decimal
    expense: Decimal
    balance: Decimal


class LedgerAggregate(BaseModel):
    """Totals for one group (a category label or a YYYY-MM month)."""
    model_config = ConfigDict(frozen=True)

    key: str
    income: Decimal
    expense: Decimal
    total: Decimal
    count: int = Field(ge=0)


class BudgetOverview(BaseModel):
    """All of a user's budgets for one period, added together."""
    model_config = ConfigDict(frozen=True)

    period_key: Optional[str] = None
    total_limit: Decimal
    total_spent: Decimal
    available: Decimal
    percentage: Decimal
    budget_count: int = Field(ge=0)


class TransactionWriteResult(BaseModel):
    """Payload of a successful transaction create/update."""
    model_config = ConfigDict(frozen=True)

    transaction: Transaction
    notification: Optional[Notification] = None
