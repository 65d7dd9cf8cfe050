"""
Money & Category Normalization

All functions here are pure and total: they never raise for bad input.
A value that cannot be normalized comes back as "" or None, and the
validators turn that into a readable rejection.

DESIGN DECISION: Amounts are Decimal end to end. Rounding to cents only
happens at the boundary (round_money) so that many small transactions do
not accumulate rounding error.
"""

import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional


CENTS = Decimal("0.01")
_PERIOD_KEY = re.compile(r"^(\d{4})-(\d{2})$")
# Plain digits or well-formed thousands groups, optional fraction
_AMOUNT = re.compile(r"[+-]?(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?|[+-]?\.\d+")
# YYYY-MM-DD, optionally followed by a time and UTC offset
_ISO_DATE = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})"
    r"(?:[T ]\d{2}:\d{2}(?::\d{2}(?:\.\d{3}(?:\d{3})?)?)?(?:Z|[+-]\d{2}:\d{2})?)?"
)


# =============================================================================
# CATEGORIES
# =============================================================================

def normalize_category(text: Optional[str]) -> str:
    """
    Canonical form of a category label.

    Trims whitespace, then upper-cases the first character and lower-cases
    the rest of the whole string ("  cOmIdA " -> "Comida",
    "comida rapida" -> "Comida rapida"). Blank input gives "".
    """
    if not text:
        return ""
    trimmed = text.strip()
    if not trimmed:
        return ""
    return trimmed[0].upper() + trimmed[1:].lower()


def category_key(text: Optional[str]) -> str:
    """Identity key for comparing categories (normalized, lower-cased)."""
    return normalize_category(text).lower()


def same_category(a: Optional[str], b: Optional[str]) -> bool:
    """True if both labels refer to the same budget category."""
    key = category_key(a)
    return bool(key) and key == category_key(b)


# =============================================================================
# MONEY
# =============================================================================

def to_amount(value: Any) -> Optional[Decimal]:
    """
    Convert a user-supplied amount to Decimal.

    Returns None for missing, non-numeric, boolean or non-finite values.
    Floats go through str() so 0.1 stays 0.1. Strings may use commas only
    as thousands separators ("1,234.50"); "1,2,3" and "1.000,50" are None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip()
        if not _AMOUNT.fullmatch(text):
            return None
        try:
            amount = Decimal(text.replace(",", ""))
        except InvalidOperation:
            return None
    else:
        return None

    if not amount.is_finite():
        return None
    return amount


def round_money(value: Decimal) -> Decimal:
    """Round to cents, half-up."""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def format_money(value: Decimal, symbol: str = "$") -> str:
    """Format an amount for messages, e.g. $1,234.50 or -$10.00."""
    rounded = round_money(value)
    sign = "-" if rounded < 0 else ""
    return f"{sign}{symbol}{abs(rounded):,.2f}"


# =============================================================================
# DATES & PERIODS
# =============================================================================

def to_date(value: Any) -> Optional[date]:
    """
    Parse a date, datetime or ISO-8601 string. None if not parseable.

    The whole string must be ISO-8601: "2024-03-14" or "2024-03-14T18:30:00Z".
    Trailing text and the compact "20240314" form are refused. The calendar
    day is taken as written, without converting the offset.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        match = _ISO_DATE.fullmatch(text)
        if not match:
            return None
        try:
            day = date(*(int(part) for part in match.groups()))
            if len(text) > 10:
                # Range-check the time part as well
                datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
        return day
    return None


def period_key_of(value: date) -> str:
    """Calendar month of a date as YYYY-MM."""
    return value.strftime("%Y-%m")


def parse_period_key(key: Optional[str]) -> Optional[tuple[int, int]]:
    """(year, month) for a valid YYYY-MM key, otherwise None."""
    if not key:
        return None
    match = _PERIOD_KEY.match(key.strip())
    if not match:
        return None
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        return None
    return year, month


def current_period_key(today: Optional[date] = None) -> str:
    return period_key_of(today or date.today())
