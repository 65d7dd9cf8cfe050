"""Tests for normalization and record validation."""

import pytest
from datetime import date, datetime
from decimal import Decimal

from ledger_engine.models.ledger import (
    BudgetInput,
    TransactionInput,
    TransactionKind,
    UserInput,
)
from ledger_engine.models.result import Err, ErrorKind, Ok
from ledger_engine.validation import (
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
    validate_budget,
    validate_transaction,
    validate_user,
)


def _candidate(**overrides) -> TransactionInput:
    fields = dict(
        amount="200",
        category=" comida ",
        date="2024-03-14",
        kind="expense",
        user_id="u1",
    )
    fields.update(overrides)
    return TransactionInput(**fields)


class TestCategoryNormalization:
    """Tests for category identity."""

    @pytest.mark.parametrize("raw,expected", [
        ("  cOmIdA ", "Comida"),
        ("comida", "Comida"),
        ("COMIDA", "Comida"),
        ("comida rapida", "Comida rapida"),
        ("TRANSPORTE PUBLICO", "Transporte publico"),
        ("x", "X"),
    ])
    def test_normalize_category(self, raw, expected):
        """Test trimming and capitalization."""
        assert normalize_category(raw) == expected

    @pytest.mark.parametrize("raw", ["", "   ", None])
    def test_blank_category_normalizes_to_empty(self, raw):
        """Test that blank input gives an empty string."""
        assert normalize_category(raw) == ""

    def test_normalize_is_idempotent(self):
        """Test that normalizing twice changes nothing."""
        once = normalize_category("  sALud  ")
        assert normalize_category(once) == once

    def test_same_category_ignores_case_and_spaces(self):
        """Test case-insensitive category identity."""
        assert same_category(" comida ", "COMIDA")
        assert category_key("Comida") == category_key("cOMIDA ")
        assert not same_category("Comida", "Transporte")
        assert not same_category("", "")


class TestMoneyHelpers:
    """Tests for amount parsing and formatting."""

    @pytest.mark.parametrize("raw,expected", [
        (10, Decimal("10")),
        (0.1, Decimal("0.1")),
        ("1,234.50", Decimal("1234.50")),
        (" 7.25 ", Decimal("7.25")),
        ("1,234,567", Decimal("1234567")),
        ("-5", Decimal("-5")),
        (".5", Decimal("0.5")),
        (Decimal("3.333"), Decimal("3.333")),
    ])
    def test_to_amount(self, raw, expected):
        """Test accepted amount shapes."""
        assert to_amount(raw) == expected

    @pytest.mark.parametrize("raw", [
        None, True, "abc", "", "nan", "Infinity", float("inf"), [1],
        "1,2,3", "1.000,50", "12,34", ",100", "1e3", "5 usd",
    ])
    def test_to_amount_rejects_non_numeric(self, raw):
        """Test that bad amounts come back as None."""
        assert to_amount(raw) is None

    def test_round_money_half_up(self):
        """Test rounding to cents, half-up."""
        assert round_money(Decimal("2.675")) == Decimal("2.68")
        assert round_money(Decimal("2.674")) == Decimal("2.67")
        assert round_money(Decimal("10")) == Decimal("10.00")

    def test_format_money(self):
        """Test message formatting."""
        assert format_money(Decimal("10")) == "$10.00"
        assert format_money(Decimal("1234.5")) == "$1,234.50"
        assert format_money(Decimal("-10")) == "-$10.00"
        assert format_money(Decimal("5"), "€") == "€5.00"


class TestDatesAndPeriods:
    """Tests for date parsing and period keys."""

    def test_to_date_shapes(self):
        """Test date, datetime and ISO strings."""
        assert to_date(date(2024, 3, 14)) == date(2024, 3, 14)
        assert to_date(datetime(2024, 3, 14, 18, 30)) == date(2024, 3, 14)
        assert to_date("2024-03-14") == date(2024, 3, 14)
        assert to_date("2024-03-14T18:30:00Z") == date(2024, 3, 14)
        assert to_date(" 2024-03-14 18:30 ") == date(2024, 3, 14)
        assert to_date("2024-03-14T18:30:00.123+02:00") == date(2024, 3, 14)

    @pytest.mark.parametrize("raw", [
        None, "", "yesterday", "2024-13-01", 20240314, "20240314",
        "2024-03-14 garbage!!", "2024-03-14T25:00", "2024-02-30", "2024-3-14",
    ])
    def test_to_date_rejects_unparseable(self, raw):
        """Test that bad dates come back as None."""
        assert to_date(raw) is None

    def test_period_keys(self):
        """Test period key helpers."""
        assert period_key_of(date(2024, 3, 14)) == "2024-03"
        assert parse_period_key("2024-03") == (2024, 3)
        assert parse_period_key("2024-13") is None
        assert parse_period_key("March") is None
        assert parse_period_key(None) is None
        assert current_period_key(date(2025, 1, 31)) == "2025-01"


class TestTransactionValidator:
    """Tests for validate_transaction."""

    def test_valid_candidate(self):
        """Test that a valid candidate is normalized."""
        result = validate_transaction(_candidate(description="  lunch "))
        assert isinstance(result, Ok)
        transaction = result.value
        assert transaction.amount == Decimal("200")
        assert transaction.category == "Comida"
        assert transaction.date == date(2024, 3, 14)
        assert transaction.kind == TransactionKind.EXPENSE
        assert transaction.description == "lunch"
        assert transaction.user_id == "u1"

    @pytest.mark.parametrize("overrides,reason", [
        ({"amount": 0}, "amount must be positive"),
        ({"amount": "-5"}, "amount must be positive"),
        ({"amount": "ten"}, "amount must be positive"),
        ({"amount": None}, "amount must be positive"),
        ({"category": "   "}, "category required"),
        ({"category": "x" * 61}, "category too long"),
        ({"amount": "1,2,3"}, "amount must be positive"),
        ({"date": "2024-03-14 garbage!!"}, "date required"),
        ({"date": None}, "date required"),
        ({"date": "not a date"}, "date required"),
        ({"kind": "transfer"}, "invalid kind"),
        ({"kind": "Expense"}, "invalid kind"),
        ({"user_id": None}, "missing user"),
        ({"user_id": "  "}, "missing user"),
    ])
    def test_rejections(self, overrides, reason):
        """Test each check and its reason."""
        result = validate_transaction(_candidate(**overrides))
        assert isinstance(result, Err)
        assert result.kind == ErrorKind.VALIDATION
        assert result.reason == reason

    def test_first_failure_wins(self):
        """Test that only the first failing check is reported."""
        result = validate_transaction(TransactionInput(
            amount=-1, category="", date=None, kind="x", user_id=None,
        ))
        assert result.reason == "amount must be positive"

        result = validate_transaction(TransactionInput(
            amount=5, category="", date=None, kind="x", user_id=None,
        ))
        assert result.reason == "category required"

    def test_category_at_length_limit(self):
        """Test that a category of exactly the maximum length is accepted."""
        result = validate_transaction(_candidate(category="c" * 60))
        assert isinstance(result, Ok)
        assert len(result.value.category) == 60

    def test_income_kind(self):
        """Test that income is accepted as a kind."""
        result = validate_transaction(_candidate(kind=TransactionKind.INCOME))
        assert result.value.kind == TransactionKind.INCOME


class TestBudgetValidator:
    """Tests for validate_budget."""

    def test_valid_budget(self):
        """Test a valid budget candidate."""
        result = validate_budget(BudgetInput(category=" comida", limit="400", user_id="u1"))
        assert isinstance(result, Ok)
        assert result.value.category == "Comida"
        assert result.value.limit == Decimal("400")

    @pytest.mark.parametrize("candidate,reason", [
        (BudgetInput(category="", limit=100, user_id="u1"), "category required"),
        (BudgetInput(category="c" * 200, limit=100, user_id="u1"), "category too long"),
        (BudgetInput(category="Comida", limit=0, user_id="u1"), "limit must be positive"),
        (BudgetInput(category="Comida", limit="abc", user_id="u1"), "limit must be positive"),
        (BudgetInput(category="Comida", limit=100, user_id=None), "missing user"),
    ])
    def test_rejections(self, candidate, reason):
        """Test each budget check."""
        result = validate_budget(candidate)
        assert isinstance(result, Err)
        assert result.reason == reason


class TestUserValidator:
    """Tests for validate_user."""

    def test_valid_user(self):
        """Test that the email is lower-cased."""
        result = validate_user(UserInput(
            name="Ana", email="Ana@Example.com", username="ana", credential_hash="h",
        ))
        assert isinstance(result, Ok)
        assert result.value.email == "ana@example.com"

    @pytest.mark.parametrize("overrides,reason", [
        ({"name": " "}, "name required"),
        ({"email": "ana.example.com"}, "invalid email"),
        ({"email": "@example.com"}, "invalid email"),
        ({"username": ""}, "username required"),
        ({"name": "A" * 101}, "name too long"),
        ({"email": "a" * 250 + "@example.com"}, "email too long"),
        ({"username": "u" * 600}, "username too long"),
        ({"credential_hash": None}, "credential required"),
    ])
    def test_rejections(self, overrides, reason):
        """Test each registration check."""
        fields = dict(name="Ana", email="ana@example.com", username="ana", credential_hash="h")
        fields.update(overrides)
        result = validate_user(UserInput(**fields))
        assert isinstance(result, Err)
        assert result.reason == reason


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
