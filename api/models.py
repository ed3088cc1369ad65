"""
API Request and Response Models.

Pydantic models for receiving sale requests and serializing responses.

Sale request fields are typed loosely on purpose: field-level rules live in
the sale aggregator, which reports every violation in one response instead
of stopping at the first type mismatch.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


# ============================================================================
# Sale Request Models
# ============================================================================

class CreateSaleRequest(BaseModel):
    """Request to ring up a sale."""
    items: Optional[Any] = Field(
        None,
        description="Line items: productId, variantId?, quantity, unitPrice"
    )
    payments: Optional[Any] = Field(
        None,
        description="Payments: method, amount, reference?, notes?"
    )
    transactionType: Optional[Any] = Field(None, description="STANDARD (default) or CASHBACK")
    cashbackAmount: Optional[Any] = Field(None, description="Cash handed to the customer")
    serviceCharge: Optional[Any] = Field(None, description="Fee retained for a cashback")
    customerName: Optional[Any] = None
    customerPhone: Optional[Any] = None
    notes: Optional[Any] = None

    class Config:
        json_schema_extra = {
            "example": {
                "items": [
                    {"productId": "prod-001", "quantity": 2, "unitPrice": "5.00"},
                    {"productId": "prod-002", "variantId": "var-010", "quantity": 1, "unitPrice": "3.50"}
                ],
                "payments": [
                    {"method": "CASH", "amount": "10.00"},
                    {"method": "CARD", "amount": "3.50", "reference": "TRX-88812"}
                ],
                "customerName": "Ada",
                "customerPhone": "08030000000"
            }
        }

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


# ============================================================================
# Sale Response Models
# ============================================================================

class SaleItemResponse(BaseModel):
    product_id: str
    variant_id: Optional[str] = None
    quantity: int
    unit_price: Decimal
    total: Decimal


class PaymentResponse(BaseModel):
    method: str
    amount: Decimal
    reference: Optional[str] = None
    notes: Optional[str] = None


class SettlementResponse(BaseModel):
    total_amount: Decimal
    amount_paid: Decimal
    amount_due: Decimal
    change_given: Decimal
    payment_status: str
    discrepancy: Decimal
    credit_amount: Decimal
    is_on_credit: bool


class SalePreviewResponse(BaseModel):
    """Validated and settled sale that was not recorded."""
    transaction_type: str
    items: List[SaleItemResponse]
    payments: List[PaymentResponse]
    subtotal: Decimal
    cashback_amount: Optional[Decimal] = None
    service_charge: Optional[Decimal] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    notes: Optional[str] = None
    settlement: SettlementResponse


class SaleResponse(BaseModel):
    """Recorded sale."""
    sale_id: UUID
    receipt_number: str
    cashier_id: str
    branch_id: str
    session_id: Optional[str] = None
    transaction_type: str
    items: List[SaleItemResponse]
    payments: List[PaymentResponse]
    subtotal: Decimal
    cashback_amount: Optional[Decimal] = None
    service_charge: Optional[Decimal] = None
    total_amount: Decimal
    amount_paid: Decimal
    amount_due: Decimal
    change_given: Decimal
    payment_status: str
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        json_schema_extra = {
            "example": {
                "sale_id": "123e4567-e89b-12d3-a456-426614174003",
                "receipt_number": "RCP-20250101-0001",
                "cashier_id": "cashier-1",
                "branch_id": "branch-1",
                "transaction_type": "STANDARD",
                "items": [],
                "payments": [],
                "subtotal": "13.50",
                "total_amount": "13.50",
                "amount_paid": "13.50",
                "amount_due": "0.00",
                "change_given": "0.00",
                "payment_status": "PAID",
                "created_at": "2025-01-01T12:00:00Z"
            }
        }


class PageMeta(BaseModel):
    total: int
    page: int
    last_page: int


class SaleListResponse(BaseModel):
    """One page of recorded sales, newest first."""
    data: List[SaleResponse]
    meta: PageMeta


# ============================================================================
# Receipt / Summary Models
# ============================================================================

class ReceiptLineResponse(BaseModel):
    name: str
    quantity: int
    unit_price: Decimal
    total: Decimal


class ReceiptResponse(BaseModel):
    business_name: str
    business_address: str
    business_phone: str
    branch: str
    receipt_number: str
    transaction_type: str
    issued_at: datetime
    cashier: str
    items: List[ReceiptLineResponse]
    subtotal: Decimal
    total: Decimal
    payments: List[PaymentResponse]
    change: Decimal
    amount_due: Decimal
    footer: str
    currency: str
    customer_name: Optional[str] = None
    notes: Optional[str] = None


class DailySummaryResponse(BaseModel):
    day: date
    total_sales: int
    total_revenue: Decimal
    payment_breakdown: Dict[str, Decimal]


# ============================================================================
# Error Models
# ============================================================================

class ViolationResponse(BaseModel):
    field: str
    message: str
    code: str


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    violations: List[ViolationResponse] = Field(default_factory=list)
    status_code: int

    class Config:
        json_schema_extra = {
            "example": {
                "error": "Sale payload failed validation",
                "violations": [
                    {"field": "payments[0].amount", "message": "must be greater than 0", "code": "invalid"}
                ],
                "status_code": 422
            }
        }
