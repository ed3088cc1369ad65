"""
Sale aggregator.

Turns a loosely-typed sale request (line items, payments and adjustment
fields) into a validated, immutable Sale, or rejects it with every problem
found.

Accepted input keys use the wire names (productId, unitPrice, cashbackAmount,
...) or their snake_case equivalents. Numeric values may be strings, ints,
floats or Decimals; they are normalized to Decimal (amounts) and int
(quantities).

Rules:
- items[i].productId is required; quantity is a whole number > 0;
  unitPrice is a number >= 0.
- Every amount and quantity must be below MAX_MAGNITUDE (10^12).
- payments must contain at least one entry; payments[i].method is one of
  PaymentMethod; amount is > 0 and at least `min_payment_amount`.
- transactionType, when given, is one of TransactionType (default STANDARD).
- cashbackAmount and serviceCharge, when given, are numbers >= 0.
- A STANDARD sale needs at least one item; a CASHBACK sale needs
  cashbackAmount > 0 and may have no items.

Everything here is pure: no I/O, no shared state. Persistence, stock
movement and audit logging happen after a Sale is returned.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence

from domain.sale import (
    CustomerInfo,
    Payment,
    PaymentMethod,
    Sale,
    SaleItem,
    TransactionType,
    compute_subtotal,
)
from domain.validation import (
    ValidationCollector,
    Validator,
    is_decimal,
    is_integer,
    is_string,
    min_value,
    optional_string,
    parse_enum,
    required,
    run_rules,
    to_decimal,
    to_int,
    when_present,
    within_limit,
)

DEFAULT_MIN_PAYMENT_AMOUNT = Decimal("0.01")

# snake_case -> wire name
_KEY_ALIASES: Dict[str, str] = {
    "product_id": "productId",
    "variant_id": "variantId",
    "unit_price": "unitPrice",
    "transaction_type": "transactionType",
    "cashback_amount": "cashbackAmount",
    "service_charge": "serviceCharge",
    "customer_name": "customerName",
    "customer_phone": "customerPhone",
}

_ITEM_RULES: Dict[str, List[Validator]] = {
    "productId": [required, is_string],
    "variantId": when_present(is_string),
    "quantity": [required, within_limit, is_integer, min_value(Decimal("0"), inclusive=False)],
    "unitPrice": [required, is_decimal, within_limit, min_value(Decimal("0"))],
}

_ADJUSTMENT_RULES: Dict[str, List[Validator]] = {
    "cashbackAmount": when_present(is_decimal, within_limit, min_value(Decimal("0"))),
    "serviceCharge": when_present(is_decimal, within_limit, min_value(Decimal("0"))),
    "customerName": [optional_string],
    "customerPhone": [optional_string],
    "notes": [optional_string],
}


def _payment_rules(min_payment_amount: Decimal) -> Dict[str, List[Validator]]:
    return {
        "amount": [
            required,
            is_decimal,
            within_limit,
            min_value(Decimal("0"), inclusive=False),
            min_value(min_payment_amount),
        ],
        "reference": [optional_string],
        "notes": [optional_string],
    }


def _normalize_keys(raw: Mapping[str, Any]) -> Dict[str, Any]:
    normalized: Dict[str, Any] = {}
    for key, value in raw.items():
        normalized[_KEY_ALIASES.get(key, key)] = value
    return normalized


def _as_sequence(value: Any) -> Optional[Sequence[Any]]:
    if value is None:
        return ()
    if isinstance(value, (list, tuple)):
        return value
    return None


def _blank_to_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def _build_items(raw_items: Any, errors: ValidationCollector) -> List[SaleItem]:
    items: List[SaleItem] = []
    sequence = _as_sequence(raw_items)
    if sequence is None:
        errors.add("items", "must be a list", code="type")
        return items

    for index, raw in enumerate(sequence):
        path = f"items[{index}]"
        if not isinstance(raw, Mapping):
            errors.add(path, "must be an object", code="type")
            continue

        values = _normalize_keys(raw)
        violations = run_rules(values, _ITEM_RULES, prefix=f"{path}.")
        if violations:
            errors.extend(violations)
            continue

        items.append(SaleItem(
            product_id=values["productId"].strip(),
            variant_id=_blank_to_none(values.get("variantId")),
            quantity=to_int(values["quantity"]),  # type: ignore[arg-type]
            unit_price=to_decimal(values["unitPrice"]),  # type: ignore[arg-type]
        ))
    return items


def _build_payments(
    raw_payments: Any,
    errors: ValidationCollector,
    min_payment_amount: Decimal,
) -> List[Payment]:
    payments: List[Payment] = []
    sequence = _as_sequence(raw_payments)
    if sequence is None:
        errors.add("payments", "must be a list", code="type")
        return payments
    if not sequence:
        errors.add("payments", "at least one payment is required", code="empty")
        return payments

    rules = _payment_rules(min_payment_amount)
    for index, raw in enumerate(sequence):
        path = f"payments[{index}]"
        if not isinstance(raw, Mapping):
            errors.add(path, "must be an object", code="type")
            continue

        values = _normalize_keys(raw)
        ok = True

        raw_method = values.get("method")
        method = parse_enum(PaymentMethod, raw_method)
        if raw_method is None:
            errors.add(f"{path}.method", "is required")
            ok = False
        elif method is None:
            allowed = ", ".join(m.value for m in PaymentMethod)
            errors.add_schema(f"{path}.method", f"{raw_method!r} is not one of: {allowed}")
            ok = False

        violations = run_rules(values, rules, prefix=f"{path}.")
        if violations:
            errors.extend(violations)
            ok = False

        if ok:
            payments.append(Payment(
                method=method,  # type: ignore[arg-type]
                amount=to_decimal(values["amount"]),  # type: ignore[arg-type]
                reference=_blank_to_none(values.get("reference")),
                notes=_blank_to_none(values.get("notes")),
            ))
    return payments


def validate_and_build(
    raw_items: Any,
    raw_payments: Any,
    raw_adjustments: Optional[Mapping[str, Any]] = None,
    *,
    min_payment_amount: Decimal = DEFAULT_MIN_PAYMENT_AMOUNT,
) -> Sale:
    """
    Validate candidate fields and assemble a Sale.

    Args:
        raw_items: Sequence of item mappings (may be None for cashback-only sales)
        raw_payments: Sequence of payment mappings (must be non-empty)
        raw_adjustments: Optional mapping with transactionType, cashbackAmount,
            serviceCharge, customerName, customerPhone, notes
        min_payment_amount: Smallest accepted payment amount

    Returns:
        Sale with normalized values, items and payments in input order

    Raises:
        SchemaError: If a payment method or transaction type is not in its set
            (carries every other violation found in the same pass as well)
        ValidationError: If any other field-level rule fails

    Example:
        sale = validate_and_build(
            [{"productId": "p-1", "quantity": 2, "unitPrice": "5.00"}],
            [{"method": "CASH", "amount": "10.00"}],
        )
        assert sale.discrepancy == 0
    """
    errors = ValidationCollector()

    if raw_adjustments is None:
        adjustments: Dict[str, Any] = {}
    elif isinstance(raw_adjustments, Mapping):
        adjustments = _normalize_keys(raw_adjustments)
    else:
        adjustments = {}
        errors.add("adjustments", "must be an object", code="type")

    items = _build_items(raw_items, errors)
    payments = _build_payments(raw_payments, errors, min_payment_amount)

    transaction_type = TransactionType.STANDARD
    raw_type = adjustments.get("transactionType")
    if raw_type is not None:
        parsed = parse_enum(TransactionType, raw_type)
        if parsed is None:
            allowed = ", ".join(t.value for t in TransactionType)
            errors.add_schema("transactionType", f"{raw_type!r} is not one of: {allowed}")
        else:
            transaction_type = parsed

    adjustment_violations = run_rules(adjustments, _ADJUSTMENT_RULES)
    errors.extend(adjustment_violations)
    failed = {v.field for v in adjustment_violations}

    cashback_amount = None if "cashbackAmount" in failed else to_decimal(adjustments.get("cashbackAmount"))
    service_charge = None if "serviceCharge" in failed else to_decimal(adjustments.get("serviceCharge"))

    raw_item_count = len(_as_sequence(raw_items) or ())
    if transaction_type is TransactionType.STANDARD and raw_item_count == 0:
        errors.add("items", "a standard sale requires at least one item", code="empty")
    if transaction_type is TransactionType.CASHBACK and "cashbackAmount" not in failed:
        if cashback_amount is None or cashback_amount <= 0:
            errors.add("cashbackAmount", "is required and must be greater than 0 for a cashback sale")

    errors.raise_if_any()

    customer = CustomerInfo(
        name=_blank_to_none(adjustments.get("customerName")),
        phone=_blank_to_none(adjustments.get("customerPhone")),
    )

    return Sale(
        items=tuple(items),
        payments=tuple(payments),
        transaction_type=transaction_type,
        cashback_amount=cashback_amount,
        service_charge=service_charge,
        customer=None if customer.is_empty else customer,
        notes=_blank_to_none(adjustments.get("notes")),
    )


def validate_payload(
    payload: Mapping[str, Any],
    *,
    min_payment_amount: Decimal = DEFAULT_MIN_PAYMENT_AMOUNT,
) -> Sale:
    """
    Validate a whole request record: `items`, `payments` and the adjustment
    fields side by side, as the HTTP layer receives them.
    """
    adjustments = {k: v for k, v in payload.items() if k not in ("items", "payments")}
    return validate_and_build(
        payload.get("items"),
        payload.get("payments"),
        adjustments,
        min_payment_amount=min_payment_amount,
    )


__all__ = [
    "DEFAULT_MIN_PAYMENT_AMOUNT",
    "compute_subtotal",
    "validate_and_build",
    "validate_payload",
]
