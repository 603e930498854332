"""
Reconciliation rules: rounding, parsing, interest and pending amounts.

These are pure functions; installments are stand-ins carrying only the two
attributes the rules read.
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from mandal.core.errors import ValidationFailed
from mandal.models.loan import InstallmentStatus
from mandal.services.ledger import (
    approved_total,
    calculate_interest,
    calculate_total_payable,
    derive_pending_amount,
    derive_provisional_amount,
    format_currency,
    MAX_AMOUNT,
    MAX_RATE,
    parse_amount,
    parse_rate,
    payable_total,
    round_currency,
)


def inst(amount, status=InstallmentStatus.APPROVED):
    return SimpleNamespace(amount=Decimal(str(amount)), status=status)


class TestRoundCurrency:

    @pytest.mark.parametrize("raw, expected", [
        ("2.675", "2.68"),
        ("2.665", "2.67"),
        ("-2.675", "-2.68"),
        ("10", "10.00"),
        (0.1 + 0.2, "0.30"),
    ])
    def test_half_away_from_zero(self, raw, expected):
        assert round_currency(raw) == Decimal(expected)

    def test_none_is_zero(self):
        assert round_currency(None) == Decimal("0.00")


class TestParseAmount:

    def test_accepts_positive_values(self):
        assert parse_amount("500") == Decimal("500.00")
        assert parse_amount(" 1234.567 ") == Decimal("1234.57")
        assert parse_amount(Decimal("10")) == Decimal("10.00")

    @pytest.mark.parametrize("raw", ["0", "-5", "abc", "", None, "0.004", "NaN", "Infinity"])
    def test_rejects_non_positive_or_garbage(self, raw):
        with pytest.raises(ValidationFailed) as exc:
            parse_amount(raw)
        assert exc.value.code == "INVALID_AMOUNT"
        assert exc.value.kind == "VALIDATION"

    def test_largest_storable_amount_is_accepted(self):
        assert parse_amount("9999999999.99") == MAX_AMOUNT

    @pytest.mark.parametrize("raw", ["10000000000", "9999999999.995", "1e12", "1e40"])
    def test_rejects_amounts_too_large_to_store(self, raw):
        with pytest.raises(ValidationFailed) as exc:
            parse_amount(raw)
        assert exc.value.code == "INVALID_AMOUNT"


class TestParseRate:

    @pytest.mark.parametrize("raw", [None, "", "abc"])
    def test_absent_or_unparseable_is_zero(self, raw):
        assert parse_rate(raw) == Decimal("0.00")

    def test_parses_percentage(self):
        assert parse_rate("12") == Decimal("12.00")
        assert parse_rate(Decimal("7.5")) == Decimal("7.50")

    def test_negative_rate_rejected(self):
        with pytest.raises(ValidationFailed) as exc:
            parse_rate("-1")
        assert exc.value.code == "INVALID_RATE"

    def test_rate_upper_bound(self):
        assert parse_rate("999.99") == MAX_RATE
        for raw in ("1000", "999.995", "1e30"):
            with pytest.raises(ValidationFailed) as exc:
                parse_rate(raw)
            assert exc.value.code == "INVALID_RATE"


class TestInterest:

    def test_one_year_at_twelve_percent(self):
        interest = calculate_interest(Decimal("6000"), Decimal("12"), 12)
        assert interest == Decimal("720.00")
        assert calculate_total_payable(Decimal("6000"), interest) == Decimal("6720.00")

    def test_prorated_over_months(self):
        assert calculate_interest(Decimal("10000"), Decimal("10"), 6) == Decimal("500.00")
        assert calculate_interest(Decimal("1000"), Decimal("7"), 5) == Decimal("29.17")

    def test_zero_rate(self):
        assert calculate_interest(Decimal("5000"), Decimal("0"), 12) == Decimal("0.00")


class TestPendingAmounts:

    def test_only_approved_installments_count(self):
        installments = [
            inst("2000"),
            inst("1000", InstallmentStatus.PENDING),
            inst("500", InstallmentStatus.REJECTED),
        ]
        assert approved_total(installments) == Decimal("2000.00")
        assert derive_pending_amount(Decimal("6720"), installments) == Decimal("4720.00")

    def test_provisional_also_counts_installments_in_review(self):
        installments = [inst("2000"), inst("1000", InstallmentStatus.PENDING)]
        assert derive_provisional_amount(Decimal("6720"), installments) == Decimal("3720.00")

    def test_never_negative(self):
        installments = [inst("5000"), inst("3000")]
        assert derive_pending_amount(Decimal("6720"), installments) == Decimal("0.00")
        assert derive_provisional_amount(Decimal("6720"), installments) == Decimal("0.00")

    def test_no_installments(self):
        assert derive_pending_amount(Decimal("6720"), []) == Decimal("6720.00")

    def test_payable_total_falls_back_to_principal(self):
        assert payable_total(SimpleNamespace(total_payable=None, amount=Decimal("3000"))) == Decimal("3000.00")
        assert payable_total(SimpleNamespace(total_payable=Decimal("0"), amount=Decimal("3000"))) == Decimal("3000.00")
        assert payable_total(SimpleNamespace(total_payable=Decimal("3360"), amount=Decimal("3000"))) == Decimal("3360.00")


def test_format_currency():
    assert format_currency(Decimal("7000")) == "₹7,000.00"
