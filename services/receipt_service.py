"""
Receipt numbering and receipt rendering data.

Receipt numbers have the form RCP-YYYYMMDD-NNNN where NNNN is the 1-based
sequence of the sale within that UTC day, zero-padded to four digits.
Cashback transactions are a cash service rather than a sale of goods and do
not produce receipts.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import List, Mapping, Optional, Union

from domain.sale import SaleRecord, TransactionType

DEFAULT_FOOTER = "Thank you for your purchase!"


def generate_receipt_number(on: Union[date, datetime], existing_count: int) -> str:
    """
    Build the next receipt number for a day.

    Args:
        on: Day (or timestamp) the sale is recorded on
        existing_count: Number of sales already recorded that day

    Example:
        generate_receipt_number(date(2024, 1, 15), 5)  # 'RCP-20240115-0006'
    """
    if existing_count < 0:
        raise ValueError("existing_count must be >= 0")
    day = on.date() if isinstance(on, datetime) else on
    return f"RCP-{day:%Y%m%d}-{existing_count + 1:04d}"


@dataclass(frozen=True, slots=True)
class BranchInfo:
    """Branch details printed on receipts, plus the cash float available for cashback."""

    name: str
    business_name: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    receipt_footer: Optional[str] = None
    currency: str = "NGN"
    cashback_capital: Optional[Decimal] = None


@dataclass(frozen=True, slots=True)
class ReceiptLine:
    name: str
    product_id: str
    variant_id: Optional[str]
    quantity: int
    unit_price: Decimal
    total: Decimal


@dataclass(frozen=True, slots=True)
class ReceiptPayment:
    method: str
    amount: Decimal
    reference: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Receipt:
    business_name: str
    business_address: str
    business_phone: str
    branch: str
    receipt_number: str
    transaction_type: str
    issued_at: datetime
    cashier: str
    items: List[ReceiptLine]
    subtotal: Decimal
    total: Decimal
    payments: List[ReceiptPayment]
    change: Decimal
    amount_due: Decimal
    footer: str
    currency: str
    customer_name: Optional[str] = None
    notes: Optional[str] = None


def build_receipt(
    record: SaleRecord,
    branch: BranchInfo,
    *,
    cashier_name: Optional[str] = None,
    item_names: Optional[Mapping[str, str]] = None,
) -> Receipt:
    """
    Assemble printable receipt data for a recorded sale.

    Args:
        record: Recorded sale
        branch: Branch details for header/footer
        cashier_name: Display name (falls back to the cashier id)
        item_names: Display names keyed by variant id or product id
            (falls back to the product id)

    Raises:
        ValueError: If the sale is a cashback transaction
    """
    sale = record.sale
    if sale.transaction_type is TransactionType.CASHBACK:
        raise ValueError("Cashback transactions do not generate receipts")

    names = item_names or {}
    lines = [
        ReceiptLine(
            name=names.get(item.variant_id or "", names.get(item.product_id, item.product_id)),
            product_id=item.product_id,
            variant_id=item.variant_id,
            quantity=item.quantity,
            unit_price=item.unit_price,
            total=item.line_total,
        )
        for item in sale.items
    ]
    payments = [
        ReceiptPayment(method=p.method.value, amount=p.amount, reference=p.reference)
        for p in sale.payments
    ]

    return Receipt(
        business_name=branch.business_name or branch.name,
        business_address=branch.address or "",
        business_phone=branch.phone or "",
        branch=branch.name,
        receipt_number=record.receipt_number,
        transaction_type=sale.transaction_type.value,
        issued_at=record.created_at,
        cashier=cashier_name or record.cashier_id,
        items=lines,
        subtotal=sale.subtotal,
        total=record.total_amount,
        payments=payments,
        change=record.change_given,
        amount_due=record.amount_due,
        footer=branch.receipt_footer or DEFAULT_FOOTER,
        currency=branch.currency,
        customer_name=sale.customer.name if sale.customer else None,
        notes=sale.notes,
    )


__all__ = [
    "BranchInfo",
    "Receipt",
    "ReceiptLine",
    "ReceiptPayment",
    "build_receipt",
    "generate_receipt_number",
]
