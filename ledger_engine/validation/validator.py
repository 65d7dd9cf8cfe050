"""
Record Validation

DESIGN DECISION: Validation is a set of free functions over candidate
input. They have no store access and no side effects, and they never raise
for bad input: they return Err(VALIDATION, reason) with the FIRST failing
check only.

Store-dependent rules (budget uniqueness per user and category, referenced
user exists) are enforced by the coordinator, which can read the store.

IMPORTANT: Validation never silently fixes values. The only transformation
applied is category normalization, which is part of the record's identity.
"""

from typing import Any, Optional, Union

from ledger_engine.models.ledger import (
    Budget,
    BudgetInput,
    Transaction,
    TransactionInput,
    TransactionKind,
    User,
    UserInput,
)
from ledger_engine.models.result import Err, ErrorKind, Ok
from ledger_engine.validation.normalizer import (
    normalize_category,
    to_amount,
    to_date,
)


AMOUNT_NOT_POSITIVE = "amount must be positive"
CATEGORY_REQUIRED = "category required"
DATE_REQUIRED = "date required"
INVALID_KIND = "invalid kind"
MISSING_USER = "missing user"
LIMIT_NOT_POSITIVE = "limit must be positive"
CATEGORY_TOO_LONG = "category too long"

# Labels end up in audit descriptions and notification titles, both bounded
MAX_CATEGORY_LENGTH = 60
MAX_NAME_LENGTH = 100
MAX_EMAIL_LENGTH = 254
MAX_USERNAME_LENGTH = 50


def _invalid(reason: str) -> Err:
    return Err(kind=ErrorKind.VALIDATION, reason=reason)


def _parse_kind(value: Any) -> Optional[TransactionKind]:
    if isinstance(value, TransactionKind):
        return value
    if isinstance(value, str):
        try:
            return TransactionKind(value)
        except ValueError:
            return None
    return None


def _has_user(user_id: Optional[str]) -> bool:
    return bool(user_id and str(user_id).strip())


def validate_transaction(candidate: TransactionInput) -> Union[Ok[Transaction], Err]:
    """
    Validate a candidate transaction.

    Checks, in order: amount > 0, category non-empty after normalization
    and at most MAX_CATEGORY_LENGTH characters, date present and
    parseable, kind is income/expense, user present.

    Returns Ok(Transaction) with a fresh id; the coordinator replaces the
    id when the candidate is an edit of an existing transaction.
    """
    amount = to_amount(candidate.amount)
    if amount is None or amount <= 0:
        return _invalid(AMOUNT_NOT_POSITIVE)

    category = normalize_category(candidate.category)
    if not category:
        return _invalid(CATEGORY_REQUIRED)
    if len(category) > MAX_CATEGORY_LENGTH:
        return _invalid(CATEGORY_TOO_LONG)

    when = to_date(candidate.date)
    if when is None:
        return _invalid(DATE_REQUIRED)

    kind = _parse_kind(candidate.kind)
    if kind is None:
        return _invalid(INVALID_KIND)

    if not _has_user(candidate.user_id):
        return _invalid(MISSING_USER)

    description = candidate.description.strip() if candidate.description else None

    return Ok(value=Transaction(
        amount=amount,
        category=category,
        date=when,
        description=description or None,
        kind=kind,
        user_id=str(candidate.user_id).strip(),
    ))


def validate_budget(candidate: BudgetInput) -> Union[Ok[Budget], Err]:
    """
    Validate a candidate budget.

    Checks, in order: category non-empty and not too long after
    normalization, limit > 0, user present.
    """
    category = normalize_category(candidate.category)
    if not category:
        return _invalid(CATEGORY_REQUIRED)
    if len(category) > MAX_CATEGORY_LENGTH:
        return _invalid(CATEGORY_TOO_LONG)

    limit = to_amount(candidate.limit)
    if limit is None or limit <= 0:
        return _invalid(LIMIT_NOT_POSITIVE)

    if not _has_user(candidate.user_id):
        return _invalid(MISSING_USER)

    return Ok(value=Budget(
        category=category,
        limit=limit,
        user_id=str(candidate.user_id).strip(),
    ))


def validate_user(candidate: UserInput) -> Union[Ok[User], Err]:
    """Validate a registration. Uniqueness is checked against the store later."""
    name = (candidate.name or "").strip()
    if not name:
        return _invalid("name required")
    if len(name) > MAX_NAME_LENGTH:
        return _invalid("name too long")

    email = (candidate.email or "").strip().lower()
    if "@" not in email or email.startswith("@") or email.endswith("@"):
        return _invalid("invalid email")
    if len(email) > MAX_EMAIL_LENGTH:
        return _invalid("email too long")

    username = (candidate.username or "").strip()
    if not username:
        return _invalid("username required")
    if len(username) > MAX_USERNAME_LENGTH:
        return _invalid("username too long")

    if not candidate.credential_hash:
        return _invalid("credential required")

    return Ok(value=User(
        name=name,
        email=email,
        username=username,
        credential_hash=candidate.credential_hash,
    ))
