"""
Sales API Endpoints.

Endpoints for ringing up sales, dry-run validation, listing recorded sales,
receipts and the cashier's daily summary.

Validation and settlement errors are raised as domain exceptions and turned
into responses by the handlers registered in api/main.py.
"""

from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query

from api.models import (
    CreateSaleRequest,
    DailySummaryResponse,
    PageMeta,
    PaymentResponse,
    ReceiptLineResponse,
    ReceiptResponse,
    SaleItemResponse,
    SaleListResponse,
    SalePreviewResponse,
    SaleResponse,
    SettlementResponse,
)
from domain.sale import Sale, SaleRecord
from services import sale_service
from services.sale_service import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, BranchNotFoundError, SaleNotFoundError

router = APIRouter()


def _items(sale: Sale):
    return [
        SaleItemResponse(
            product_id=i.product_id,
            variant_id=i.variant_id,
            quantity=i.quantity,
            unit_price=i.unit_price,
            total=i.line_total,
        )
        for i in sale.items
    ]


def _payments(sale: Sale):
    return [
        PaymentResponse(method=p.method.value, amount=p.amount, reference=p.reference, notes=p.notes)
        for p in sale.payments
    ]


def _sale_response(record: SaleRecord) -> SaleResponse:
    sale = record.sale
    return SaleResponse(
        sale_id=record.sale_id,
        receipt_number=record.receipt_number,
        cashier_id=record.cashier_id,
        branch_id=record.branch_id,
        session_id=record.session_id,
        transaction_type=sale.transaction_type.value,
        items=_items(sale),
        payments=_payments(sale),
        subtotal=sale.subtotal,
        cashback_amount=sale.cashback_amount,
        service_charge=sale.service_charge,
        total_amount=record.total_amount,
        amount_paid=record.amount_paid,
        amount_due=record.amount_due,
        change_given=record.change_given,
        payment_status=record.payment_status.value,
        customer_name=sale.customer.name if sale.customer else None,
        customer_phone=sale.customer.phone if sale.customer else None,
        notes=sale.notes,
        created_at=record.created_at,
    )


@router.post(
    "/sales",
    response_model=SaleResponse,
    status_code=201,
    summary="Create Sale",
    description="Validate, settle and record a sale with one or more payments."
)
def create_sale(
    request: CreateSaleRequest,
    cashier_id: str = Query(..., description="Cashier ringing up the sale"),
    branch_id: str = Query(..., description="Branch the sale belongs to"),
    session_id: Optional[str] = Query(None, description="Open till session"),
):
    """
    Ring up a sale.

    **Process:**
    1. Validates items, payments and adjustments (every problem is reported)
    2. Settles payments against items + cashback + service charge
    3. For cashback, checks and deducts the branch's cashback capital
    4. Assigns the next receipt number for the day
    5. Records the sale

    **Example request:**
    ```json
    {
      "items": [{"productId": "prod-001", "quantity": 2, "unitPrice": "5.00"}],
      "payments": [{"method": "CASH", "amount": "10.00"}]
    }
    ```
    """
    try:
        record = sale_service.create_sale(
            request.to_payload(),
            cashier_id=cashier_id,
            branch_id=branch_id,
            session_id=session_id,
        )
    except BranchNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _sale_response(record)


@router.get(
    "/sales",
    response_model=SaleListResponse,
    summary="List Sales",
    description="Recorded sales, newest first, with filters and skip/take pagination."
)
def list_sales(
    skip: int = Query(0, description="Sales to skip"),
    take: int = Query(DEFAULT_PAGE_SIZE, description=f"Page size (1-{MAX_PAGE_SIZE})"),
    start_date: Optional[date] = Query(None, description="First UTC day (inclusive)"),
    end_date: Optional[date] = Query(None, description="Last UTC day (inclusive)"),
    cashier_id: Optional[str] = Query(None),
    branch_id: Optional[str] = Query(None),
    payment_status: Optional[str] = Query(None, description="PENDING, PARTIAL, PAID or CANCELLED"),
    transaction_type: Optional[str] = Query(None, description="STANDARD or CASHBACK"),
    search: Optional[str] = Query(None, description="Receipt number, customer name or phone"),
):
    """
    List recorded sales.

    Bad paging values and unknown status/type filters are reported with the
    same violation body as sale payloads (422).
    """
    page = sale_service.list_sales(
        skip=skip,
        take=take,
        start_date=start_date,
        end_date=end_date,
        cashier_id=cashier_id,
        branch_id=branch_id,
        payment_status=payment_status,
        transaction_type=transaction_type,
        search=search,
    )
    return SaleListResponse(
        data=[_sale_response(r) for r in page.records],
        meta=PageMeta(total=page.total, page=page.page, last_page=page.last_page),
    )


@router.post(
    "/sales/validate",
    response_model=SalePreviewResponse,
    summary="Validate Sale",
    description="Validate and settle a sale payload without recording it."
)
def validate_sale(request: CreateSaleRequest):
    preview = sale_service.preview_sale(request.to_payload())
    sale, settlement = preview.sale, preview.settlement

    return SalePreviewResponse(
        transaction_type=sale.transaction_type.value,
        items=_items(sale),
        payments=_payments(sale),
        subtotal=sale.subtotal,
        cashback_amount=sale.cashback_amount,
        service_charge=sale.service_charge,
        customer_name=sale.customer.name if sale.customer else None,
        customer_phone=sale.customer.phone if sale.customer else None,
        notes=sale.notes,
        settlement=SettlementResponse(
            total_amount=settlement.total_amount,
            amount_paid=settlement.amount_paid,
            amount_due=settlement.amount_due,
            change_given=settlement.change_given,
            payment_status=settlement.payment_status.value,
            discrepancy=settlement.discrepancy,
            credit_amount=settlement.credit_amount,
            is_on_credit=settlement.is_on_credit,
        ),
    )


@router.get(
    "/sales/daily-summary",
    response_model=DailySummaryResponse,
    summary="Daily Summary",
    description="Paid sales count, revenue and payment breakdown for a cashier on a day."
)
def daily_summary(
    cashier_id: str = Query(...),
    branch_id: str = Query(...),
    day: Optional[date] = Query(None, alias="date", description="UTC day (defaults to today)"),
):
    summary = sale_service.get_daily_summary(cashier_id, branch_id, day)
    return DailySummaryResponse(
        day=summary.day,
        total_sales=summary.total_sales,
        total_revenue=summary.total_revenue,
        payment_breakdown=summary.payment_breakdown,
    )


@router.get(
    "/sales/{sale_id}",
    response_model=SaleResponse,
    summary="Get Sale"
)
def get_sale(sale_id: UUID):
    try:
        record = sale_service.get_sale(sale_id)
    except SaleNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _sale_response(record)


@router.get(
    "/sales/{sale_id}/receipt",
    response_model=ReceiptResponse,
    summary="Get Receipt",
    description="Printable receipt data. Cashback transactions have no receipt."
)
def get_receipt(sale_id: UUID):
    try:
        receipt = sale_service.get_receipt(sale_id)
    except SaleNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return ReceiptResponse(
        business_name=receipt.business_name,
        business_address=receipt.business_address,
        business_phone=receipt.business_phone,
        branch=receipt.branch,
        receipt_number=receipt.receipt_number,
        transaction_type=receipt.transaction_type,
        issued_at=receipt.issued_at,
        cashier=receipt.cashier,
        items=[
            ReceiptLineResponse(name=l.name, quantity=l.quantity, unit_price=l.unit_price, total=l.total)
            for l in receipt.items
        ],
        subtotal=receipt.subtotal,
        total=receipt.total,
        payments=[
            PaymentResponse(method=p.method, amount=p.amount, reference=p.reference)
            for p in receipt.payments
        ],
        change=receipt.change,
        amount_due=receipt.amount_due,
        footer=receipt.footer,
        currency=receipt.currency,
        customer_name=receipt.customer_name,
        notes=receipt.notes,
    )
