"""
Sale repository (persistence).

This module provides *only* persistence operations for SaleRecord. It does
not validate or settle sales; callers hand it records that already passed
the aggregator and the settlement policy.

Items and payments are stored as JSON arrays on the sale row, in the order
they were rung up.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple
from uuid import UUID

from domain.sale import (
    CustomerInfo,
    Payment,
    PaymentMethod,
    PaymentStatus,
    Sale,
    SaleItem,
    SaleRecord,
    TransactionType,
)
from domain.time import parse_utc_datetime, require_utc_timestamp
from repositories.client import get_supabase
from services.receipt_service import BranchInfo

# Supabase table names.
# Keep these aligned with your database schema.
_SALES_TABLE: str = "sales"
_BRANCHES_TABLE: str = "branches"

# Columns matched by the free-text search on sale listings.
_SEARCH_COLUMNS = ("receipt_number", "customer_name", "customer_phone")

# Characters with meaning inside a PostgREST or=() filter.
_FILTER_SYNTAX = re.compile(r"[,()%*\\]")


def _to_iso_utc(dt: datetime, *, name: str) -> str:
    """Serialize a UTC datetime to ISO-8601 (timezone-aware, offset 0)."""

    require_utc_timestamp(name, dt)
    return dt.astimezone(timezone.utc).isoformat()


def _optional_decimal(value: Any) -> Optional[Decimal]:
    return None if value is None else Decimal(str(value))


def _item_to_json(item: SaleItem) -> Dict[str, Any]:
    return {
        "product_id": item.product_id,
        "variant_id": item.variant_id,
        "quantity": item.quantity,
        "unit_price": str(item.unit_price),
        "total": str(item.line_total),
    }


def _payment_to_json(payment: Payment) -> Dict[str, Any]:
    return {
        "method": payment.method.value,
        "amount": str(payment.amount),
        "reference": payment.reference,
        "notes": payment.notes,
    }


def record_to_row(record: SaleRecord) -> Dict[str, Any]:
    """Convert a SaleRecord into a Supabase row payload."""

    sale = record.sale
    return {
        "sale_id": str(record.sale_id),
        "receipt_number": record.receipt_number,
        "cashier_id": record.cashier_id,
        "branch_id": record.branch_id,
        "session_id": record.session_id,
        "transaction_type": sale.transaction_type.value,
        "subtotal": str(sale.subtotal),
        "cashback_amount": None if sale.cashback_amount is None else str(sale.cashback_amount),
        "service_charge": None if sale.service_charge is None else str(sale.service_charge),
        "total_amount": str(record.total_amount),
        "amount_paid": str(record.amount_paid),
        "amount_due": str(record.amount_due),
        "change_given": str(record.change_given),
        "payment_status": record.payment_status.value,
        "customer_name": sale.customer.name if sale.customer else None,
        "customer_phone": sale.customer.phone if sale.customer else None,
        "notes": sale.notes,
        "items": [_item_to_json(i) for i in sale.items],
        "payments": [_payment_to_json(p) for p in sale.payments],
        "created_at_utc": _to_iso_utc(record.created_at, name="created_at"),
    }


def row_to_record(row: Mapping[str, Any]) -> SaleRecord:
    """Convert a Supabase row into a SaleRecord."""

    items = tuple(
        SaleItem(
            product_id=str(i["product_id"]),
            variant_id=i.get("variant_id"),
            quantity=int(i["quantity"]),
            unit_price=Decimal(str(i["unit_price"])),
        )
        for i in row.get("items") or []
    )
    payments = tuple(
        Payment(
            method=PaymentMethod(str(p["method"])),
            amount=Decimal(str(p["amount"])),
            reference=p.get("reference"),
            notes=p.get("notes"),
        )
        for p in row.get("payments") or []
    )

    customer = None
    if row.get("customer_name") or row.get("customer_phone"):
        customer = CustomerInfo(name=row.get("customer_name"), phone=row.get("customer_phone"))

    sale = Sale(
        items=items,
        payments=payments,
        transaction_type=TransactionType(str(row["transaction_type"])),
        cashback_amount=_optional_decimal(row.get("cashback_amount")),
        service_charge=_optional_decimal(row.get("service_charge")),
        customer=customer,
        notes=row.get("notes"),
    )

    return SaleRecord(
        sale_id=UUID(str(row["sale_id"])),
        receipt_number=str(row["receipt_number"]),
        cashier_id=str(row["cashier_id"]),
        branch_id=str(row["branch_id"]),
        session_id=row.get("session_id"),
        sale=sale,
        total_amount=Decimal(str(row["total_amount"])),
        amount_paid=Decimal(str(row["amount_paid"])),
        amount_due=Decimal(str(row["amount_due"])),
        change_given=Decimal(str(row["change_given"])),
        payment_status=PaymentStatus(str(row["payment_status"])),
        created_at=parse_utc_datetime(row["created_at_utc"]),
    )


def insert_sale(record: SaleRecord) -> SaleRecord:
    """
    Insert a new sale into Supabase.

    Returns:
        The record as given (the row is stored verbatim)
    """

    response = get_supabase().table(_SALES_TABLE).insert(record_to_row(record)).execute()
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to record sale: {error}")
    return record


def count_sales_between(start: datetime, end: datetime) -> int:
    """Count sales (all branches) created in [start, end); used for receipt numbering."""

    response = (
        get_supabase()
        .table(_SALES_TABLE)
        .select("sale_id", count="exact")
        .gte("created_at_utc", _to_iso_utc(start, name="start"))
        .lt("created_at_utc", _to_iso_utc(end, name="end"))
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to count sales: {error}")

    count = getattr(response, "count", None)
    if count is None:
        count = len(getattr(response, "data", None) or [])
    return int(count)


def get_sale_by_id(sale_id: UUID) -> Optional[SaleRecord]:
    """
    Retrieve a single sale by its ID.

    Returns:
        SaleRecord or None if not found
    """

    response = (
        get_supabase()
        .table(_SALES_TABLE)
        .select("*")
        .eq("sale_id", str(sale_id))
        .limit(1)
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to get sale: {error}")

    rows = getattr(response, "data", None) or []

    if not rows:
        return None

    return row_to_record(rows[0])


def list_sales_for_cashier(
    cashier_id: str,
    branch_id: str,
    start: datetime,
    end: datetime,
) -> List[SaleRecord]:
    """
    Retrieve a cashier's sales at a branch created in [start, end).

    Returns:
        List[SaleRecord] (possibly empty), newest first
    """

    response = (
        get_supabase()
        .table(_SALES_TABLE)
        .select("*")
        .eq("cashier_id", cashier_id)
        .eq("branch_id", branch_id)
        .gte("created_at_utc", _to_iso_utc(start, name="start"))
        .lt("created_at_utc", _to_iso_utc(end, name="end"))
        .order("created_at_utc", desc=True)
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to list sales: {error}")

    rows = getattr(response, "data", None) or []
    return [row_to_record(row) for row in rows]


def list_sales(
    *,
    skip: int = 0,
    take: int = 20,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    cashier_id: Optional[str] = None,
    branch_id: Optional[str] = None,
    payment_status: Optional[PaymentStatus] = None,
    transaction_type: Optional[TransactionType] = None,
    search: Optional[str] = None,
) -> Tuple[List[SaleRecord], int]:
    """
    Retrieve one page of sales matching every given filter, newest first.

    Args:
        skip: Rows to skip
        take: Page size
        start / end: created_at_utc window [start, end)
        search: Case-insensitive substring of receipt number, customer name
            or customer phone

    Returns:
        (records on this page, total number of matching sales)
    """

    query = get_supabase().table(_SALES_TABLE).select("*", count="exact")

    if cashier_id:
        query = query.eq("cashier_id", cashier_id)
    if branch_id:
        query = query.eq("branch_id", branch_id)
    if payment_status is not None:
        query = query.eq("payment_status", payment_status.value)
    if transaction_type is not None:
        query = query.eq("transaction_type", transaction_type.value)
    if start is not None:
        query = query.gte("created_at_utc", _to_iso_utc(start, name="start"))
    if end is not None:
        query = query.lt("created_at_utc", _to_iso_utc(end, name="end"))

    term = _FILTER_SYNTAX.sub("", search or "").strip()
    if term:
        query = query.or_(",".join(f"{column}.ilike.%{term}%" for column in _SEARCH_COLUMNS))

    response = query.order("created_at_utc", desc=True).range(skip, skip + take - 1).execute()
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to list sales: {error}")

    rows = getattr(response, "data", None) or []
    total = getattr(response, "count", None)
    if total is None:
        total = skip + len(rows)
    return [row_to_record(row) for row in rows], int(total)


def get_branch_info(branch_id: str) -> Optional[BranchInfo]:
    """Fetch receipt details and the cashback capital for a branch."""

    response = (
        get_supabase()
        .table(_BRANCHES_TABLE)
        .select("name, business_name, business_address, business_phone, receipt_footer, currency, cashback_capital")
        .eq("id", branch_id)
        .limit(1)
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to get branch: {error}")

    rows = getattr(response, "data", None) or []
    if not rows:
        return None

    row = rows[0]
    return BranchInfo(
        name=str(row["name"]),
        business_name=row.get("business_name"),
        address=row.get("business_address"),
        phone=row.get("business_phone"),
        receipt_footer=row.get("receipt_footer"),
        currency=row.get("currency") or "NGN",
        cashback_capital=_optional_decimal(row.get("cashback_capital")),
    )


def set_cashback_capital(branch_id: str, expected: Decimal, new_amount: Decimal) -> None:
    """
    Replace a branch's cashback capital, provided it still equals `expected`.

    Raises:
        RuntimeError: If the update fails or the capital changed since it was read
    """

    response = (
        get_supabase()
        .table(_BRANCHES_TABLE)
        .update({"cashback_capital": str(new_amount)})
        .eq("id", branch_id)
        .eq("cashback_capital", str(expected))
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to update cashback capital: {error}")

    if not (getattr(response, "data", None) or []):
        raise RuntimeError(f"Cashback capital for branch {branch_id} changed concurrently")


__all__ = [
    "count_sales_between",
    "get_branch_info",
    "get_sale_by_id",
    "insert_sale",
    "list_sales",
    "list_sales_for_cashier",
    "record_to_row",
    "row_to_record",
    "set_cashback_capital",
]
