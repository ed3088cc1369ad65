"""
Tests for `services/sale_service.py` with an in-memory sale store.

Covers rules:
- Invalid payloads are rejected before anything is written.
- Recorded sales carry settlement totals and sequential receipt numbers per day.
- Receipts fall back to the branch id when no branch details exist.
- Cashback sales need enough branch cashback capital and deduct it.
- Sale listings filter, search and paginate newest first.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest

from config import Settings
from domain.sale import PaymentStatus
from domain.validation import SchemaError, ValidationError
from services import sale_service
from services.receipt_service import BranchInfo
from services.settlement_service import ReconciliationError

PAYLOAD = {
    "items": [{"productId": "p-1", "quantity": 2, "unitPrice": "5.00"}],
    "payments": [{"method": "CASH", "amount": "12.00"}],
}


def test_create_sale_records_settled_sale(sales_store, fixed_now) -> None:
    record = sale_service.create_sale(PAYLOAD, "cashier-1", "branch-1", settings=Settings(), now=fixed_now)

    assert record.receipt_number == "RCP-20240115-0001"
    assert record.total_amount == Decimal("10.00")
    assert record.change_given == Decimal("2.00")
    assert record.payment_status is PaymentStatus.PAID
    assert sales_store.records[record.sale_id] is record


def test_receipt_numbers_increase_within_a_day_and_reset_next_day(sales_store, fixed_now) -> None:
    first = sale_service.create_sale(PAYLOAD, "c", "b", settings=Settings(), now=fixed_now)
    second = sale_service.create_sale(PAYLOAD, "c", "b", settings=Settings(), now=fixed_now + timedelta(hours=1))
    next_day = sale_service.create_sale(PAYLOAD, "c", "b", settings=Settings(), now=fixed_now + timedelta(days=1))

    assert first.receipt_number == "RCP-20240115-0001"
    assert second.receipt_number == "RCP-20240115-0002"
    assert next_day.receipt_number == "RCP-20240116-0001"


def test_invalid_payload_writes_nothing(sales_store, fixed_now) -> None:
    payload = {"items": PAYLOAD["items"], "payments": [{"method": "IOU", "amount": 10}]}

    with pytest.raises(SchemaError):
        sale_service.create_sale(payload, "c", "b", settings=Settings(), now=fixed_now)

    assert sales_store.records == {}


def test_underpaid_sale_follows_policy(sales_store, fixed_now) -> None:
    payload = {"items": PAYLOAD["items"], "payments": [{"method": "CASH", "amount": "4.00"}]}

    with pytest.raises(ReconciliationError):
        sale_service.create_sale(payload, "c", "b", settings=Settings(), now=fixed_now)

    record = sale_service.create_sale(
        payload, "c", "b", settings=Settings(allow_partial_payment=True), now=fixed_now
    )
    assert record.payment_status is PaymentStatus.PARTIAL
    assert record.amount_due == Decimal("6.00")


def test_get_sale_raises_when_missing(sales_store) -> None:
    from uuid import uuid4

    with pytest.raises(sale_service.SaleNotFoundError):
        sale_service.get_sale(uuid4())


def test_get_receipt_without_branch_details(sales_store, fixed_now) -> None:
    record = sale_service.create_sale(PAYLOAD, "cashier-1", "branch-1", settings=Settings(), now=fixed_now)

    receipt = sale_service.get_receipt(record.sale_id)

    assert receipt.branch == "branch-1"
    assert receipt.receipt_number == record.receipt_number


def test_daily_summary_reads_cashier_sales(sales_store, fixed_now) -> None:
    sale_service.create_sale(PAYLOAD, "cashier-1", "branch-1", settings=Settings(), now=fixed_now)
    sale_service.create_sale(PAYLOAD, "cashier-2", "branch-1", settings=Settings(), now=fixed_now)

    summary = sale_service.get_daily_summary("cashier-1", "branch-1", date(2024, 1, 15))

    assert summary.total_sales == 1
    assert summary.total_revenue == Decimal("10.00")
    assert summary.payment_breakdown["CASH"] == Decimal("12.00")


CASHBACK = {
    "payments": [{"method": "TRANSFER", "amount": "5100"}],
    "transactionType": "CASHBACK",
    "cashbackAmount": "5000",
    "serviceCharge": "100",
}


def test_cashback_sale_deducts_branch_capital(sales_store, fixed_now) -> None:
    sales_store.branches["branch-1"] = BranchInfo(name="Main", cashback_capital=Decimal("20000.00"))

    record = sale_service.create_sale(CASHBACK, "c", "branch-1", settings=Settings(), now=fixed_now)

    assert record.sale.is_cashback
    assert sales_store.branches["branch-1"].cashback_capital == Decimal("15000.00")


def test_cashback_beyond_branch_capital_is_rejected(sales_store, fixed_now) -> None:
    sales_store.branches["branch-1"] = BranchInfo(name="Main", cashback_capital=Decimal("4999.99"))

    with pytest.raises(sale_service.InsufficientCapitalError) as excinfo:
        sale_service.create_sale(CASHBACK, "c", "branch-1", settings=Settings(), now=fixed_now)

    assert isinstance(excinfo.value, ValidationError)
    assert excinfo.value.violations[0].field == "cashbackAmount"
    assert excinfo.value.violations[0].code == "insufficient_capital"
    assert "Available: 4999.99, Required: 5000" in excinfo.value.violations[0].message
    assert sales_store.records == {}
    assert sales_store.branches["branch-1"].cashback_capital == Decimal("4999.99")


def test_cashback_at_unknown_branch_is_not_found(sales_store, fixed_now) -> None:
    with pytest.raises(sale_service.BranchNotFoundError):
        sale_service.create_sale(CASHBACK, "c", "nowhere", settings=Settings(), now=fixed_now)

    assert sales_store.records == {}


def test_standard_sale_leaves_capital_untouched(sales_store, fixed_now) -> None:
    sales_store.branches["branch-1"] = BranchInfo(name="Main", cashback_capital=Decimal("100"))

    sale_service.create_sale(PAYLOAD, "c", "branch-1", settings=Settings(), now=fixed_now)

    assert sales_store.branches["branch-1"].cashback_capital == Decimal("100")


def test_list_sales_filters_searches_and_paginates(sales_store, fixed_now) -> None:
    for hour in range(5):
        sale_service.create_sale(
            {**PAYLOAD, "customerName": f"Customer {hour}"},
            "cashier-1",
            "branch-1",
            settings=Settings(),
            now=fixed_now + timedelta(hours=hour),
        )
    sale_service.create_sale(PAYLOAD, "cashier-2", "branch-1", settings=Settings(), now=fixed_now)

    page = sale_service.list_sales(skip=2, take=2, cashier_id="cashier-1")

    assert page.total == 5
    assert page.page == 2
    assert page.last_page == 3
    assert [r.sale.customer.name for r in page.records] == ["Customer 2", "Customer 1"]

    found = sale_service.list_sales(search="customer 4")
    assert [r.receipt_number for r in found.records] == ["RCP-20240115-0005"]

    assert sale_service.list_sales(start_date=date(2024, 1, 16)).total == 0
    assert sale_service.list_sales(payment_status="paid", transaction_type="PURCHASE").total == 6


def test_list_sales_rejects_bad_paging_and_filters(sales_store) -> None:
    with pytest.raises(ValidationError) as excinfo:
        sale_service.list_sales(skip=-1, take=0, start_date=date(2024, 1, 2), end_date=date(2024, 1, 1))
    assert excinfo.value.fields() == ["skip", "take", "end_date"]

    with pytest.raises(SchemaError) as excinfo:
        sale_service.list_sales(payment_status="REFUNDED")
    assert excinfo.value.fields() == ["payment_status"]
