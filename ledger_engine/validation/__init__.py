"""Validation and normalization package."""

from ledger_engine.validation.normalizer import (
    category_key,
    current_period_key,
    format_money,
    normalize_category,
    parse_period_key,
    period_key_of,
    round_money,
    same_category,
    to_amount,
    to_date,
)
from ledger_engine.validation.validator import (
    validate_budget,
    validate_transaction,
    validate_user,
)

__all__ = [
    "category_key",
    "current_period_key",
    "format_money",
    "normalize_category",
    "parse_period_key",
    "period_key_of",
    "round_money",
    "same_category",
    "to_amount",
    "to_date",
    "validate_budget",
    "validate_transaction",
    "validate_user",
]
