#!/usr/bin/env python3
"""
Sale Payload Validator

Validates a sale request saved as JSON and shows how it would settle under
the configured reconciliation policy. Nothing is written to the database.

Usage:
    python validate_sale.py sale.json
    python validate_sale.py sale.json --json
    python validate_sale.py sale.json --tolerance 0.50 --allow-partial
"""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config import load_settings
from domain.validation import ValidationError
from services.sale_service import SalePreview, preview_sale


def _amount(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"not a valid amount: {value!r}")


def preview_to_dict(preview: SalePreview) -> Dict[str, Any]:
    sale, settlement = preview.sale, preview.settlement
    return {
        "valid": True,
        "transaction_type": sale.transaction_type.value,
        "items": len(sale.items),
        "payments": len(sale.payments),
        "subtotal": str(sale.subtotal),
        "total_amount": str(settlement.total_amount),
        "amount_paid": str(settlement.amount_paid),
        "amount_due": str(settlement.amount_due),
        "change_given": str(settlement.change_given),
        "payment_status": settlement.payment_status.value,
        "on_credit": settlement.is_on_credit,
    }


def main() -> int:
    parser = argparse.ArgumentParser(description="Validate a sale payload JSON file")
    parser.add_argument("payload", type=Path, help="Path to the sale JSON file")
    parser.add_argument("--json", action="store_true", help="Print machine-readable JSON")
    parser.add_argument("--tolerance", type=_amount, help="Allowed shortfall (switches to TOLERANCE mode)")
    parser.add_argument("--allow-partial", action="store_true", help="Accept underpaid sales as PARTIAL")
    args = parser.parse_args()

    try:
        payload = json.loads(args.payload.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        print(f"✗ Could not read {args.payload}: {e}", file=sys.stderr)
        return 2

    if not isinstance(payload, dict):
        print("✗ Payload must be a JSON object", file=sys.stderr)
        return 2

    settings = load_settings()
    if args.tolerance is not None:
        settings = replace(settings, reconciliation_mode="TOLERANCE", reconciliation_tolerance=args.tolerance)
    if args.allow_partial:
        settings = replace(settings, allow_partial_payment=True)

    try:
        preview = preview_sale(payload, settings)
    except ValidationError as e:
        if args.json:
            print(json.dumps({"valid": False, **e.to_dict()}, indent=2))
        else:
            print(f"✗ {e.message}")
            for violation in e.violations:
                print(f"   - {violation.field}: {violation.message}")
        return 1

    result = preview_to_dict(preview)
    if args.json:
        print(json.dumps(result, indent=2))
    else:
        print(f"✓ Valid {result['transaction_type']} sale")
        print(f"   Items: {result['items']}  Payments: {result['payments']}")
        print(f"   Total: {result['total_amount']}  Paid: {result['amount_paid']}")
        print(f"   Change: {result['change_given']}  Due: {result['amount_due']}")
        print(f"   Status: {result['payment_status']}{' (on credit)' if result['on_credit'] else ''}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
