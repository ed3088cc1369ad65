"""
Pytest configuration and shared fixtures.

This file adds the project root to the Python path so that tests can import
domain, services, repositories and api, and provides an in-memory stand-in
for the sale repository.
"""

import sys
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from uuid import UUID

import pytest

# Add the project root to the Python path
# so tests can import domain, services, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from domain.sale import PaymentStatus, SaleRecord, TransactionType  # noqa: E402
from services.receipt_service import BranchInfo  # noqa: E402


class InMemorySales:
    """Replaces repositories.sale_repository functions for service/API tests."""

    def __init__(self) -> None:
        self.records: Dict[UUID, SaleRecord] = {}
        self.branches: Dict[str, BranchInfo] = {}

    def insert_sale(self, record: SaleRecord) -> SaleRecord:
        self.records[record.sale_id] = record
        return record

    def count_sales_between(self, start: datetime, end: datetime) -> int:
        return sum(1 for r in self.records.values() if start <= r.created_at < end)

    def get_sale_by_id(self, sale_id: UUID) -> Optional[SaleRecord]:
        return self.records.get(sale_id)

    def list_sales_for_cashier(self, cashier_id: str, branch_id: str, start: datetime, end: datetime) -> List[SaleRecord]:
        return [
            r for r in self.records.values()
            if r.cashier_id == cashier_id and r.branch_id == branch_id and start <= r.created_at < end
        ]

    def list_sales(
        self,
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
        def matches(r: SaleRecord) -> bool:
            customer = r.sale.customer
            haystack = [r.receipt_number, customer.name if customer else None, customer.phone if customer else None]
            return (
                (cashier_id is None or r.cashier_id == cashier_id)
                and (branch_id is None or r.branch_id == branch_id)
                and (payment_status is None or r.payment_status is payment_status)
                and (transaction_type is None or r.sale.transaction_type is transaction_type)
                and (start is None or r.created_at >= start)
                and (end is None or r.created_at < end)
                and (not search or any(search.lower() in (h or "").lower() for h in haystack))
            )

        found = sorted((r for r in self.records.values() if matches(r)), key=lambda r: r.created_at, reverse=True)
        return found[skip:skip + take], len(found)

    def get_branch_info(self, branch_id: str) -> Optional[BranchInfo]:
        return self.branches.get(branch_id)

    def set_cashback_capital(self, branch_id: str, expected: Decimal, new_amount: Decimal) -> None:
        branch = self.branches[branch_id]
        assert branch.cashback_capital == expected
        self.branches[branch_id] = replace(branch, cashback_capital=new_amount)


@pytest.fixture
def sales_store(monkeypatch) -> InMemorySales:
    from repositories import sale_repository

    store = InMemorySales()
    for name in (
        "insert_sale",
        "count_sales_between",
        "get_sale_by_id",
        "list_sales",
        "list_sales_for_cashier",
        "get_branch_info",
        "set_cashback_capital",
    ):
        monkeypatch.setattr(sale_repository, name, getattr(store, name))
    return store


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2024, 1, 15, 10, 0, 0, tzinfo=timezone.utc)
