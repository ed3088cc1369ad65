"""
Tests for `services/settlement_service.py`.

Covers rules:
- Exact and over-payments settle as PAID; overpayment becomes change.
- EXACT mode rejects any shortfall unless partial payment is allowed.
- TOLERANCE mode accepts shortfalls up to the tolerance.
- Partial payments are recorded as PARTIAL with the outstanding amount due.
- CREDIT payments mark the settlement as on credit.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from config import Settings
from domain.sale import PaymentStatus
from domain.validation import ValidationError
from services.sale_aggregator import validate_and_build
from services.settlement_service import (
    ReconciliationError,
    ReconciliationMode,
    ReconciliationPolicy,
    settle,
)


def _sale(*amounts, method="CASH", **adjustments):
    return validate_and_build(
        [{"productId": "p-1", "quantity": 2, "unitPrice": "5.00"}],
        [{"method": method, "amount": a} for a in amounts],
        adjustments or None,
    )


def test_exact_payment_is_paid_without_change() -> None:
    settlement = settle(_sale("10.00"))

    assert settlement.payment_status is PaymentStatus.PAID
    assert settlement.total_amount == Decimal("10.00")
    assert settlement.amount_due == 0
    assert settlement.change_given == 0
    assert settlement.discrepancy == 0
    assert not settlement.is_on_credit


def test_overpayment_returns_change() -> None:
    settlement = settle(_sale("5.00", "10.00"))

    assert settlement.payment_status is PaymentStatus.PAID
    assert settlement.amount_paid == Decimal("15.00")
    assert settlement.change_given == Decimal("5.00")
    assert settlement.discrepancy == Decimal("5.00")


def test_underpayment_is_rejected_in_exact_mode() -> None:
    with pytest.raises(ReconciliationError) as excinfo:
        settle(_sale("9.99"))

    assert isinstance(excinfo.value, ValidationError)
    assert excinfo.value.violations[0].field == "payments"
    assert excinfo.value.violations[0].code == "underpaid"


def test_tolerance_mode_accepts_small_shortfall() -> None:
    policy = ReconciliationPolicy(mode=ReconciliationMode.TOLERANCE, tolerance=Decimal("0.05"))

    settlement = settle(_sale("9.95"), policy)
    assert settlement.payment_status is PaymentStatus.PAID
    assert settlement.amount_due == 0
    assert settlement.discrepancy == Decimal("-0.05")

    with pytest.raises(ReconciliationError):
        settle(_sale("9.94"), policy)


def test_tolerance_is_ignored_in_exact_mode() -> None:
    policy = ReconciliationPolicy(mode=ReconciliationMode.EXACT, tolerance=Decimal("1.00"))

    with pytest.raises(ReconciliationError):
        settle(_sale("9.50"), policy)


def test_partial_payment_when_allowed() -> None:
    settlement = settle(_sale("4.00"), ReconciliationPolicy(allow_partial=True))

    assert settlement.payment_status is PaymentStatus.PARTIAL
    assert settlement.amount_due == Decimal("6.00")
    assert settlement.change_given == 0
    assert settlement.is_on_credit


def test_credit_payment_is_flagged() -> None:
    settlement = settle(_sale("10.00", method="CREDIT"))

    assert settlement.payment_status is PaymentStatus.PAID
    assert settlement.credit_amount == Decimal("10.00")
    assert settlement.is_on_credit


def test_cashback_and_service_charge_are_part_of_the_total() -> None:
    sale = _sale("40.00", cashbackAmount="25.00", serviceCharge="5.00")

    settlement = settle(sale)

    assert settlement.total_amount == Decimal("40.00")
    assert settlement.payment_status is PaymentStatus.PAID


def test_policy_from_settings() -> None:
    settings = Settings(
        reconciliation_mode="TOLERANCE",
        reconciliation_tolerance=Decimal("0.10"),
        allow_partial_payment=True,
    )

    policy = ReconciliationPolicy.from_settings(settings)

    assert policy.mode is ReconciliationMode.TOLERANCE
    assert policy.effective_tolerance == Decimal("0.10")
    assert policy.allow_partial is True


def test_negative_tolerance_is_rejected() -> None:
    with pytest.raises(ValueError):
        ReconciliationPolicy(tolerance=Decimal("-0.01"))
