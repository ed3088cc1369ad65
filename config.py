"""
Application settings.

Values are read from the environment after loading an optional `.env` file
that sits next to this module. Nothing here talks to the network.

Environment variables:
- POS_MIN_PAYMENT_AMOUNT: smallest accepted payment amount (default 0.01)
- POS_RECONCILIATION_MODE: EXACT or TOLERANCE (default EXACT)
- POS_RECONCILIATION_TOLERANCE: allowed shortfall in TOLERANCE mode (default 0.00)
- POS_ALLOW_PARTIAL_PAYMENT: accept underpaid sales as PARTIAL (default false)
- POS_CURRENCY: receipt currency code (default NGN)
- LOG_LEVEL: logging level for the API process (default INFO)
- SUPABASE_URL / SUPABASE_KEY: persistence credentials (only needed by repositories)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

env_path = Path(__file__).parent / ".env"
load_dotenv(dotenv_path=env_path)

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True, slots=True)
class Settings:
    min_payment_amount: Decimal = Decimal("0.01")
    reconciliation_mode: str = "EXACT"
    reconciliation_tolerance: Decimal = Decimal("0.00")
    allow_partial_payment: bool = False
    currency: str = "NGN"
    log_level: str = "INFO"
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None


def _decimal_setting(env: Mapping[str, str], name: str, default: Decimal) -> Decimal:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = Decimal(raw)
    except InvalidOperation:
        raise RuntimeError(f"Invalid decimal for {name}: {raw!r}")
    if value < 0:
        raise RuntimeError(f"{name} must be >= 0")
    return value


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from the given mapping (defaults to os.environ).

    Raises:
        RuntimeError: If a variable is present but malformed.
    """

    env = os.environ if env is None else env

    mode = env.get("POS_RECONCILIATION_MODE", "EXACT").strip().upper()
    if mode not in ("EXACT", "TOLERANCE"):
        raise RuntimeError(
            f"Invalid POS_RECONCILIATION_MODE: {mode!r}. Use EXACT or TOLERANCE."
        )

    return Settings(
        min_payment_amount=_decimal_setting(env, "POS_MIN_PAYMENT_AMOUNT", Decimal("0.01")),
        reconciliation_mode=mode,
        reconciliation_tolerance=_decimal_setting(env, "POS_RECONCILIATION_TOLERANCE", Decimal("0.00")),
        allow_partial_payment=env.get("POS_ALLOW_PARTIAL_PAYMENT", "").strip().lower() in _TRUE_VALUES,
        currency=env.get("POS_CURRENCY", "NGN"),
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
        supabase_url=env.get("SUPABASE_URL") or None,
        supabase_key=env.get("SUPABASE_KEY") or None,
    )


__all__ = ["Settings", "load_settings"]
