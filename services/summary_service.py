"""
Daily sales summary for a cashier's till.

Only fully paid sales recorded on the requested UTC day are counted.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable

from domain.sale import PaymentMethod, PaymentStatus, SaleRecord
from domain.time import utc_day_bounds

# Methods always reported, even when nothing was taken with them.
_BASE_METHODS = (PaymentMethod.CASH, PaymentMethod.CARD, PaymentMethod.TRANSFER)


@dataclass(frozen=True, slots=True)
class DailySummary:
    day: date
    total_sales: int
    total_revenue: Decimal
    payment_breakdown: Dict[str, Decimal]


def summarize_daily_sales(records: Iterable[SaleRecord], on: date) -> DailySummary:
    start, end = utc_day_bounds(on)

    total_sales = 0
    revenue = Decimal("0.00")
    breakdown: Dict[str, Decimal] = {m.value: Decimal("0.00") for m in _BASE_METHODS}

    for record in records:
        if record.payment_status is not PaymentStatus.PAID:
            continue
        if not (start <= record.created_at < end):
            continue

        total_sales += 1
        revenue += record.total_amount
        for payment in record.sale.payments:
            key = payment.method.value
            breakdown[key] = breakdown.get(key, Decimal("0.00")) + payment.amount

    return DailySummary(
        day=on,
        total_sales=total_sales,
        total_revenue=revenue,
        payment_breakdown=breakdown,
    )


__all__ = ["DailySummary", "summarize_daily_sales"]
