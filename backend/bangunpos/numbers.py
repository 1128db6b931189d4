# Overview: Decimal helpers for money and base-unit quantities.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

MONEY_QUANTUM = Decimal("0.01")
QUANTITY_QUANTUM = Decimal("0.0001")
RATE_QUANTUM = Decimal("0.000001")


def to_decimal(value: Any, *, field: str = "value") -> Decimal:
    """
    Convert user or DB input to Decimal.

    Floats go through str() so 0.025 stays 0.025 instead of its binary expansion.
    Booleans, NaN and infinities are rejected.
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool) or value is None:
        raise ValueError(f"{field} must be a number")
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"{field} must be a number")
    else:
        raise ValueError(f"{field} must be a number")

    if not result.is_finite():
        raise ValueError(f"{field} must be a finite number")
    return result


def quantize_money(value: Any) -> Decimal:
    return to_decimal(value).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def quantize_quantity(value: Any) -> Decimal:
    return to_decimal(value).quantize(QUANTITY_QUANTUM, rounding=ROUND_HALF_UP)


def as_number(value: Any) -> int | float | None:
    """JSON projection: integral decimals become ints, the rest floats."""
    if value is None:
        return None
    d = to_decimal(value)
    if d == d.to_integral_value():
        return int(d)
    return float(d.normalize())


def format_rupiah(amount: Any) -> str:
    """Format an amount as Indonesian Rupiah without decimals, e.g. 'Rp 65.000'."""
    d = to_decimal(amount).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    sign = "-" if d < 0 else ""
    grouped = f"{abs(int(d)):,}".replace(",", ".")
    return f"{sign}Rp {grouped}"
