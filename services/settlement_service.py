"""
Settlement service for reconciling payments against a sale.

The aggregator only checks the shape of a sale. Whether the payments cover
the sale total is a business rule configured per deployment:

- EXACT: any shortfall is an underpayment.
- TOLERANCE: a shortfall up to `tolerance` still settles the sale as PAID
  (rounding on cash tenders, small discounts at the till).
- allow_partial: an underpayment beyond tolerance is accepted and the sale is
  recorded as PARTIAL (a credit sale) instead of being rejected.

Overpayment is always accepted; the excess is returned as change.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from config import Settings
from domain.sale import PaymentStatus, Sale
from domain.validation import FieldViolation, ValidationError

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


class ReconciliationMode(str, Enum):
    EXACT = "EXACT"
    TOLERANCE = "TOLERANCE"


class ReconciliationError(ValidationError):
    """Payments do not cover the sale under the configured policy."""

    default_message = "Payments do not settle the sale"


@dataclass(frozen=True, slots=True)
class ReconciliationPolicy:
    mode: ReconciliationMode = ReconciliationMode.EXACT
    tolerance: Decimal = ZERO
    allow_partial: bool = False

    def __post_init__(self) -> None:
        if self.tolerance < 0:
            raise ValueError("tolerance must be >= 0")

    @property
    def effective_tolerance(self) -> Decimal:
        return self.tolerance if self.mode is ReconciliationMode.TOLERANCE else ZERO

    @staticmethod
    def from_settings(settings: Settings) -> "ReconciliationPolicy":
        return ReconciliationPolicy(
            mode=ReconciliationMode(settings.reconciliation_mode),
            tolerance=settings.reconciliation_tolerance,
            allow_partial=settings.allow_partial_payment,
        )


@dataclass(frozen=True, slots=True)
class Settlement:
    """
    Outcome of reconciling a sale's payments.

    total_amount: what the customer owes (items + cashback + service charge)
    amount_paid: sum of all payments, CREDIT included
    amount_due: outstanding balance (0 when fully paid or within tolerance)
    change_given: excess returned to the customer
    discrepancy: amount_paid - total_amount (negative means short)
    credit_amount: portion paid with CREDIT payments
    """

    total_amount: Decimal
    amount_paid: Decimal
    amount_due: Decimal
    change_given: Decimal
    payment_status: PaymentStatus
    discrepancy: Decimal
    credit_amount: Decimal = ZERO

    @property
    def is_on_credit(self) -> bool:
        return self.payment_status is PaymentStatus.PARTIAL or self.credit_amount > 0


def settle(sale: Sale, policy: ReconciliationPolicy = ReconciliationPolicy()) -> Settlement:
    """
    Reconcile a validated sale under the given policy.

    Args:
        sale: Sale returned by the aggregator
        policy: Reconciliation policy (defaults to EXACT, no partial payments)

    Returns:
        Settlement describing totals, change and payment status

    Raises:
        ReconciliationError: If the sale is underpaid beyond tolerance and
            partial payment is not allowed
    """
    total = sale.expected_total
    paid = sale.total_paid
    shortfall = total - paid

    if shortfall <= policy.effective_tolerance:
        status = PaymentStatus.PAID
        amount_due = ZERO
    elif policy.allow_partial:
        status = PaymentStatus.PARTIAL
        amount_due = shortfall
    else:
        logger.warning(
            "Rejected underpaid %s sale: total=%s paid=%s tolerance=%s",
            sale.transaction_type.value, total, paid, policy.effective_tolerance,
        )
        raise ReconciliationError([
            FieldViolation(
                field="payments",
                message=f"Insufficient payment. Total: {total}, Paid: {paid}",
                code="underpaid",
            )
        ])

    return Settlement(
        total_amount=total,
        amount_paid=paid,
        amount_due=amount_due,
        change_given=paid - total if paid > total else ZERO,
        payment_status=status,
        discrepancy=paid - total,
        credit_amount=sale.credit_amount,
    )


__all__ = [
    "ReconciliationError",
    "ReconciliationMode",
    "ReconciliationPolicy",
    "Settlement",
    "settle",
]
