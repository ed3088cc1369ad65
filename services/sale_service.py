"""
Sale service for recording point-of-sale transactions.

Handles:
- Validation of the incoming payload (sale aggregator)
- Settlement under the configured reconciliation policy
- Receipt numbering and persistence
- Cashback capital checks and deduction for cashback transactions
- Receipt data, sale listings and the cashier's daily summary for recorded sales
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, List, Mapping, Optional
from uuid import UUID, uuid4

from config import Settings, load_settings
from domain.sale import PaymentStatus, Sale, SaleRecord, TransactionType
from domain.time import utc_day_bounds
from domain.validation import FieldViolation, ValidationCollector, ValidationError, parse_enum
from repositories import sale_repository
from services.receipt_service import BranchInfo, Receipt, build_receipt, generate_receipt_number
from services.sale_aggregator import validate_payload
from services.settlement_service import ReconciliationPolicy, Settlement, settle
from services.summary_service import DailySummary, summarize_daily_sales

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


class SaleNotFoundError(LookupError):
    """No sale exists for the given id."""


class BranchNotFoundError(LookupError):
    """No branch exists for the given id."""


class InsufficientCapitalError(ValidationError):
    """The branch does not hold enough cashback capital to pay out."""

    default_message = "Insufficient cashback capital"


@dataclass(frozen=True, slots=True)
class SalePreview:
    """A validated and settled sale that has not been recorded."""

    sale: Sale
    settlement: Settlement


@dataclass(frozen=True, slots=True)
class SalePage:
    """One page of recorded sales, newest first."""

    records: List[SaleRecord]
    total: int
    page: int
    last_page: int


def _require_cashback_capital(branch_id: str, cashback_amount: Decimal) -> Decimal:
    """Return the branch's current capital, rejecting the payout if it falls short."""

    branch = sale_repository.get_branch_info(branch_id)
    if branch is None:
        raise BranchNotFoundError(f"Branch not found: {branch_id}")

    available = branch.cashback_capital or Decimal("0")
    if available < cashback_amount:
        logger.warning(
            "Rejected cashback at branch %s: capital=%s required=%s",
            branch_id, available, cashback_amount,
        )
        raise InsufficientCapitalError([
            FieldViolation(
                field="cashbackAmount",
                message=f"Insufficient cashback capital. Available: {available}, Required: {cashback_amount}",
                code="insufficient_capital",
            )
        ])
    return available


def preview_sale(payload: Mapping[str, Any], settings: Optional[Settings] = None) -> SalePreview:
    """
    Validate and settle a sale payload without recording it.

    Raises:
        SchemaError / ValidationError: If the payload is malformed
        ReconciliationError: If payments do not settle the sale
    """
    settings = settings or load_settings()

    try:
        sale = validate_payload(payload, min_payment_amount=settings.min_payment_amount)
    except ValidationError as e:
        logger.info("Rejected sale payload: %s", e)
        raise

    settlement = settle(sale, ReconciliationPolicy.from_settings(settings))
    return SalePreview(sale=sale, settlement=settlement)


def create_sale(
    payload: Mapping[str, Any],
    cashier_id: str,
    branch_id: str,
    *,
    session_id: Optional[str] = None,
    settings: Optional[Settings] = None,
    now: Optional[datetime] = None,
) -> SaleRecord:
    """
    Validate, settle and record a sale.

    Process:
    1. Validate the payload into a Sale (nothing is written on failure)
    2. Settle payments under the configured policy
    3. For a cashback sale, check the branch holds enough cashback capital
    4. Number the receipt from today's sale count
    5. Insert the sale row, then deduct the cashback from the branch capital

    Args:
        payload: Request record with items, payments and adjustment fields
        cashier_id: Cashier ringing up the sale
        branch_id: Branch the sale belongs to
        session_id: Open till session, if any
        settings: Settings override (defaults to environment)
        now: Recording timestamp override (UTC)

    Returns:
        SaleRecord as stored

    Raises:
        SchemaError / ValidationError: If the payload is malformed
        ReconciliationError: If payments do not settle the sale
        BranchNotFoundError: If a cashback sale names an unknown branch
        InsufficientCapitalError: If the branch cannot cover the cashback

    Example:
        record = create_sale(
            {"items": [{"productId": "p-1", "quantity": 1, "unitPrice": 500}],
             "payments": [{"method": "CASH", "amount": 500}]},
            cashier_id="cashier-1",
            branch_id="branch-1",
        )
        print(record.receipt_number)  # RCP-20250101-0001
    """
    preview = preview_sale(payload, settings)
    settlement = preview.settlement
    sale = preview.sale

    capital = None
    if sale.is_cashback:
        capital = _require_cashback_capital(branch_id, sale.cashback_amount)

    created_at = now or datetime.now(timezone.utc)
    start, end = utc_day_bounds(created_at.date())
    existing = sale_repository.count_sales_between(start, end)

    record = SaleRecord(
        sale_id=uuid4(),
        receipt_number=generate_receipt_number(created_at, existing),
        cashier_id=cashier_id,
        branch_id=branch_id,
        session_id=session_id,
        sale=sale,
        total_amount=settlement.total_amount,
        amount_paid=settlement.amount_paid,
        amount_due=settlement.amount_due,
        change_given=settlement.change_given,
        payment_status=settlement.payment_status,
        created_at=created_at,
    )

    stored = sale_repository.insert_sale(record)
    if capital is not None:
        sale_repository.set_cashback_capital(branch_id, capital, capital - sale.cashback_amount)

    logger.info(
        "Recorded %s sale %s (%s) total=%s status=%s",
        sale.transaction_type.value,
        stored.sale_id,
        stored.receipt_number,
        stored.total_amount,
        stored.payment_status.value,
    )
    return stored


def get_sale(sale_id: UUID) -> SaleRecord:
    record = sale_repository.get_sale_by_id(sale_id)
    if record is None:
        raise SaleNotFoundError(f"Sale not found: {sale_id}")
    return record


def list_sales(
    *,
    skip: int = 0,
    take: int = DEFAULT_PAGE_SIZE,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    cashier_id: Optional[str] = None,
    branch_id: Optional[str] = None,
    payment_status: Optional[str] = None,
    transaction_type: Optional[str] = None,
    search: Optional[str] = None,
) -> SalePage:
    """
    List recorded sales matching the given filters, newest first.

    Args:
        skip: Sales to skip (offset)
        take: Page size, 1 to MAX_PAGE_SIZE
        start_date / end_date: Inclusive UTC days to restrict created_at to
        cashier_id / branch_id: Exact matches
        payment_status: PaymentStatus value
        transaction_type: TransactionType value (PURCHASE accepted for STANDARD)
        search: Substring of receipt number, customer name or customer phone

    Returns:
        SalePage with the page's records, the total match count, the 1-based
        page number and the last page number

    Raises:
        SchemaError: If payment_status or transaction_type is unknown
        ValidationError: If skip, take or the date range is out of bounds
    """
    errors = ValidationCollector()

    if skip < 0:
        errors.add("skip", "must be at least 0")
    if not 1 <= take <= MAX_PAGE_SIZE:
        errors.add("take", f"must be between 1 and {MAX_PAGE_SIZE}")
    if start_date is not None and end_date is not None and end_date < start_date:
        errors.add("end_date", "must not be before start_date")

    status = parse_enum(PaymentStatus, payment_status)
    if payment_status is not None and status is None:
        allowed = ", ".join(s.value for s in PaymentStatus)
        errors.add_schema("payment_status", f"{payment_status!r} is not one of: {allowed}")

    kind = parse_enum(TransactionType, transaction_type)
    if transaction_type is not None and kind is None:
        allowed = ", ".join(t.value for t in TransactionType)
        errors.add_schema("transaction_type", f"{transaction_type!r} is not one of: {allowed}")

    errors.raise_if_any()

    records, total = sale_repository.list_sales(
        skip=skip,
        take=take,
        start=utc_day_bounds(start_date)[0] if start_date else None,
        end=utc_day_bounds(end_date)[1] if end_date else None,
        cashier_id=cashier_id,
        branch_id=branch_id,
        payment_status=status,
        transaction_type=kind,
        search=search,
    )
    return SalePage(
        records=records,
        total=total,
        page=skip // take + 1,
        last_page=-(-total // take),
    )


def get_receipt(sale_id: UUID, *, cashier_name: Optional[str] = None) -> Receipt:
    """
    Build receipt data for a recorded sale.

    Raises:
        SaleNotFoundError: If the sale does not exist
        ValueError: If the sale is a cashback transaction
    """
    record = get_sale(sale_id)
    branch = sale_repository.get_branch_info(record.branch_id)
    if branch is None:
        branch = BranchInfo(name=record.branch_id, currency=load_settings().currency)
    return build_receipt(record, branch, cashier_name=cashier_name)


def get_daily_summary(cashier_id: str, branch_id: str, day: Optional[date] = None) -> DailySummary:
    day = day or datetime.now(timezone.utc).date()
    start, end = utc_day_bounds(day)
    records = sale_repository.list_sales_for_cashier(cashier_id, branch_id, start, end)
    return summarize_daily_sales(records, day)


__all__ = [
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "BranchNotFoundError",
    "InsufficientCapitalError",
    "SaleNotFoundError",
    "SalePage",
    "SalePreview",
    "create_sale",
    "get_daily_summary",
    "get_receipt",
    "get_sale",
    "list_sales",
    "preview_sale",
]
