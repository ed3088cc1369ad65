"""
Tests for the row mapping in `repositories/sale_repository.py`.

The conversion helpers are exercised directly; query building runs against a
recording stand-in for the Supabase client. No database is contacted.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from uuid import UUID

import pytest

from domain.sale import PaymentMethod, PaymentStatus, SaleRecord, TransactionType
from repositories import sale_repository
from repositories.sale_repository import record_to_row, row_to_record
from services.sale_aggregator import validate_payload


def _record() -> SaleRecord:
    sale = validate_payload({
        "items": [{"productId": "p-1", "variantId": "v-1", "quantity": 3, "unitPrice": "2.50"}],
        "payments": [{"method": "CARD", "amount": "7.50", "reference": "T-77"}],
        "customerPhone": "0803",
    })
    return SaleRecord(
        sale_id=UUID("00000000-0000-0000-0000-000000000042"),
        receipt_number="RCP-20240115-0003",
        cashier_id="cashier-1",
        branch_id="branch-1",
        session_id="session-9",
        sale=sale,
        total_amount=Decimal("7.50"),
        amount_paid=Decimal("7.50"),
        amount_due=Decimal("0.00"),
        change_given=Decimal("0.00"),
        payment_status=PaymentStatus.PAID,
        created_at=datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc),
    )


def test_record_to_row_serializes_amounts_as_strings() -> None:
    row = record_to_row(_record())

    assert row["sale_id"] == "00000000-0000-0000-0000-000000000042"
    assert row["transaction_type"] == "STANDARD"
    assert row["subtotal"] == "7.50"
    assert row["cashback_amount"] is None
    assert row["items"] == [
        {"product_id": "p-1", "variant_id": "v-1", "quantity": 3, "unit_price": "2.50", "total": "7.50"}
    ]
    assert row["payments"][0]["method"] == "CARD"
    assert row["customer_name"] is None
    assert row["customer_phone"] == "0803"
    assert row["created_at_utc"] == "2024-01-15T10:00:00+00:00"


def test_row_to_record_reads_supabase_row() -> None:
    row = record_to_row(_record())
    row["created_at_utc"] = "2024-01-15T10:00:00Z"
    row["total_amount"] = 7.5

    record = row_to_record(row)

    assert record.sale_id == UUID("00000000-0000-0000-0000-000000000042")
    assert record.session_id == "session-9"
    assert record.sale.transaction_type is TransactionType.STANDARD
    assert record.sale.items[0].quantity == 3
    assert record.sale.payments[0].method is PaymentMethod.CARD
    assert record.sale.payments[0].reference == "T-77"
    assert record.sale.customer is not None and record.sale.customer.phone == "0803"
    assert record.total_amount == Decimal("7.5")
    assert record.created_at == datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)


def test_row_to_record_reads_cancelled_status() -> None:
    row = record_to_row(_record())
    row["payment_status"] = "CANCELLED"

    assert row_to_record(row).payment_status is PaymentStatus.CANCELLED


class RecordingQuery:
    """Chains like a postgrest builder and remembers every call."""

    def __init__(self, response) -> None:
        self.calls = []
        self._response = response

    def __getattr__(self, name):
        def call(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self

        return call

    def execute(self):
        return self._response


def test_list_sales_builds_filtered_page_query(monkeypatch) -> None:
    row = record_to_row(_record())
    query = RecordingQuery(SimpleNamespace(data=[row], count=41, error=None))
    monkeypatch.setattr(sale_repository, "get_supabase", lambda: query)

    records, total = sale_repository.list_sales(
        skip=20,
        take=10,
        branch_id="branch-1",
        payment_status=PaymentStatus.PAID,
        search="Ada, (RCP)*",
    )

    assert total == 41
    assert records[0].receipt_number == "RCP-20240115-0003"
    assert ("select", ("*",), {"count": "exact"}) in query.calls
    assert ("eq", ("branch_id", "branch-1"), {}) in query.calls
    assert ("eq", ("payment_status", "PAID"), {}) in query.calls
    assert (
        "or_",
        ("receipt_number.ilike.%Ada RCP%,customer_name.ilike.%Ada RCP%,customer_phone.ilike.%Ada RCP%",),
        {},
    ) in query.calls
    assert ("range", (20, 29), {}) in query.calls
    assert not any(name == "eq" and args[0] == "cashier_id" for name, args, _ in query.calls)


def test_get_branch_info_reads_cashback_capital(monkeypatch) -> None:
    query = RecordingQuery(SimpleNamespace(data=[{"name": "Main", "cashback_capital": 2500.5}], error=None))
    monkeypatch.setattr(sale_repository, "get_supabase", lambda: query)

    branch = sale_repository.get_branch_info("branch-1")

    assert branch is not None
    assert branch.cashback_capital == Decimal("2500.5")
    assert branch.currency == "NGN"


def test_set_cashback_capital_fails_when_capital_moved(monkeypatch) -> None:
    query = RecordingQuery(SimpleNamespace(data=[], error=None))
    monkeypatch.setattr(sale_repository, "get_supabase", lambda: query)

    with pytest.raises(RuntimeError, match="changed concurrently"):
        sale_repository.set_cashback_capital("branch-1", Decimal("100"), Decimal("50"))

    assert ("eq", ("cashback_capital", "100"), {}) in query.calls
