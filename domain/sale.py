"""
Domain: Sale transactions.

Contract excerpts implemented here:
- A Sale aggregates an ordered list of priced items and an ordered list of
  payments (at least one).
- Every SaleItem has quantity > 0 (whole units) and unit_price >= 0.
- Every Payment has amount > 0.
- cashback_amount and service_charge, when present, are >= 0.
- A Sale is immutable once built; amendments produce new values.
- Reconciliation of payments against the sale total is a policy decision made
  outside this module (see services/settlement_service.py).

This module contains only pure domain entities/value objects: no I/O, no
database, no frameworks.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Tuple, Union
from uuid import UUID

from .time import require_utc_timestamp

ZERO = Decimal("0.00")


class PaymentMethod(str, Enum):
    CASH = "CASH"
    CARD = "CARD"
    TRANSFER = "TRANSFER"
    MOBILE = "MOBILE"
    CREDIT = "CREDIT"


class TransactionType(str, Enum):
    STANDARD = "STANDARD"
    CASHBACK = "CASHBACK"

    @classmethod
    def _missing_(cls, value: object) -> Optional["TransactionType"]:
        # Older clients send PURCHASE for an ordinary sale.
        if isinstance(value, str) and value.upper() == "PURCHASE":
            return cls.STANDARD
        return None


class PaymentStatus(str, Enum):
    # Settlement only produces PARTIAL and PAID. PENDING and CANCELLED are
    # read back from stored rows (e.g. voided sales) and never count as revenue.
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True, slots=True)
class SaleItem:
    """One priced line in a sale."""

    product_id: str
    quantity: int
    unit_price: Decimal
    variant_id: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.product_id:
            raise ValueError("product_id is required")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int) or self.quantity <= 0:
            raise ValueError("quantity must be a positive integer")
        if self.unit_price < 0:
            raise ValueError("unit_price must be >= 0")

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True, slots=True)
class Payment:
    method: PaymentMethod
    amount: Decimal
    reference: Optional[str] = None  # External transaction id (card terminal, transfer ref)
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise ValueError("amount must be > 0")


@dataclass(frozen=True, slots=True)
class CustomerInfo:
    name: Optional[str] = None
    phone: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.name and not self.phone


@dataclass(frozen=True, slots=True)
class Sale:
    """
    Validated, immutable sale transaction.

    Items and payments are tuples, kept in caller-supplied order (receipts and
    audit trails render them in that order).

    Derived amounts:
    - subtotal: sum of quantity * unit_price
    - expected_total: subtotal + cashback_amount + service_charge
      (cashback cash handed to the customer and the fee for it are paid for
      alongside the items)
    - discrepancy: total_paid - expected_total (zero means exact)
    """

    items: Tuple[SaleItem, ...]
    payments: Tuple[Payment, ...]
    transaction_type: TransactionType = TransactionType.STANDARD
    cashback_amount: Optional[Decimal] = None
    service_charge: Optional[Decimal] = None
    customer: Optional[CustomerInfo] = None
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.items, tuple) or not isinstance(self.payments, tuple):
            raise TypeError("items and payments must be tuples")
        if not self.payments:
            raise ValueError("a sale requires at least one payment")
        if self.cashback_amount is not None and self.cashback_amount < 0:
            raise ValueError("cashback_amount must be >= 0")
        if self.service_charge is not None and self.service_charge < 0:
            raise ValueError("service_charge must be >= 0")

    @property
    def subtotal(self) -> Decimal:
        return compute_subtotal(self.items)

    @property
    def total_paid(self) -> Decimal:
        return sum((p.amount for p in self.payments), ZERO)

    @property
    def credit_amount(self) -> Decimal:
        """Portion of the payments taken on credit rather than settled."""
        return sum((p.amount for p in self.payments if p.method is PaymentMethod.CREDIT), ZERO)

    @property
    def expected_total(self) -> Decimal:
        return self.subtotal + (self.cashback_amount or ZERO) + (self.service_charge or ZERO)

    @property
    def discrepancy(self) -> Decimal:
        return self.total_paid - self.expected_total

    @property
    def is_cashback(self) -> bool:
        return self.transaction_type is TransactionType.CASHBACK


def compute_subtotal(items: Iterable[Union[SaleItem, Mapping[str, Any]]]) -> Decimal:
    """
    Sum of quantity * unit_price across items.

    Accepts SaleItem values or raw mappings with quantity / unitPrice
    (or unit_price) keys. An empty sequence yields 0.
    """

    total = ZERO
    for item in items:
        if isinstance(item, SaleItem):
            total += item.line_total
            continue
        quantity = item.get("quantity", 0)
        unit_price = item.get("unit_price", item.get("unitPrice", 0))
        total += Decimal(str(unit_price)) * Decimal(str(quantity))
    return total


@dataclass(frozen=True, slots=True)
class SaleRecord:
    """
    Immutable record of a sale as stored by the persistence layer.

    Captures the validated Sale together with the settlement outcome and who
    recorded it. All timestamps must be passed explicitly.
    """

    sale_id: UUID
    receipt_number: str
    cashier_id: str
    branch_id: str
    sale: Sale
    total_amount: Decimal
    amount_paid: Decimal
    amount_due: Decimal
    change_given: Decimal
    payment_status: PaymentStatus
    created_at: datetime
    session_id: Optional[str] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)


__all__ = [
    "CustomerInfo",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "Sale",
    "SaleItem",
    "SaleRecord",
    "TransactionType",
    "compute_subtotal",
]
