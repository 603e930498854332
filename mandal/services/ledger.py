"""Reconciliation rules shared by the contribution and loan lifecycles.

All currency values are ``Decimal`` rounded to two places, half away from
zero, every time a value is about to be stored.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Optional

from mandal.core.config import settings
from mandal.core.errors import ValidationFailed
from mandal.models.loan import InstallmentStatus

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
MONTHS_PER_YEAR = Decimal("12")
# Largest values the Numeric(12, 2) money columns and Numeric(5, 2) rate column hold.
MAX_AMOUNT = Decimal("9999999999.99")
MAX_RATE = Decimal("999.99")


def round_currency(value) -> Decimal:
    """Round to paise using round-half-up (away from zero for negatives too)."""
    if value is None:
        return ZERO
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def parse_amount(raw) -> Decimal:
    """Parse a positive currency amount, rounded to two places."""
    try:
        amount = Decimal(str(raw).strip())
    except (InvalidOperation, AttributeError):
        raise ValidationFailed("INVALID_AMOUNT", "Amount must be a positive number")
    if not amount.is_finite() or amount <= 0:
        raise ValidationFailed("INVALID_AMOUNT", "Amount must be a positive number")
    if amount > MAX_AMOUNT:
        raise ValidationFailed("INVALID_AMOUNT", f"Amount cannot exceed {MAX_AMOUNT:,.2f}")
    amount = round_currency(amount)
    if amount <= 0:
        raise ValidationFailed("INVALID_AMOUNT", "Amount must be a positive number")
    return amount


def parse_rate(raw) -> Decimal:
    """Parse an annual interest rate percentage; absent or unparseable means 0."""
    if raw is None or raw == "":
        return ZERO
    try:
        rate = Decimal(str(raw).strip())
    except (InvalidOperation, AttributeError):
        return ZERO
    if not rate.is_finite():
        return ZERO
    if rate < 0:
        raise ValidationFailed("INVALID_RATE", "Interest rate cannot be negative")
    if rate > MAX_RATE:
        raise ValidationFailed("INVALID_RATE", f"Interest rate cannot exceed {MAX_RATE}%")
    return round_currency(rate)


def calculate_interest(principal, rate_percent, duration_months) -> Decimal:
    """Simple interest: the annual rate applied pro-rata over the loan's months."""
    principal = Decimal(str(principal))
    rate = Decimal(str(rate_percent)) / Decimal("100")
    years = Decimal(str(duration_months)) / MONTHS_PER_YEAR
    return round_currency(principal * rate * years)


def calculate_total_payable(principal, interest_amount) -> Decimal:
    return round_currency(Decimal(str(principal)) + Decimal(str(interest_amount)))


def _sum_amounts(installments: Iterable, statuses) -> Decimal:
    total = ZERO
    for inst in installments:
        if inst.status in statuses:
            total += Decimal(str(inst.amount or 0))
    return round_currency(total)


def approved_total(installments: Iterable) -> Decimal:
    """Sum of installment amounts that an admin has approved."""
    return _sum_amounts(installments, (InstallmentStatus.APPROVED,))


def derive_pending_amount(total_payable, installments: Iterable) -> Decimal:
    """Authoritative balance: total payable minus approved installments, never negative."""
    remaining = round_currency(Decimal(str(total_payable)) - approved_total(installments))
    return max(ZERO, remaining)


def derive_provisional_amount(total_payable, installments: Iterable) -> Decimal:
    """Member-facing estimate that also counts installments still awaiting review."""
    in_flight = _sum_amounts(installments, (InstallmentStatus.APPROVED, InstallmentStatus.PENDING))
    return max(ZERO, round_currency(Decimal(str(total_payable)) - in_flight))


def payable_total(loan) -> Decimal:
    """Total owed on a loan; legacy loans approved without interest fall back to principal."""
    total: Optional[Decimal] = loan.total_payable
    if total is None or Decimal(str(total)) <= 0:
        total = loan.amount
    return round_currency(total)


def format_currency(value) -> str:
    return f"{settings.CURRENCY_SYMBOL}{round_currency(value):,.2f}"
