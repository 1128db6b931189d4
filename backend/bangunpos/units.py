"""
Unit conversion between a product's sales units and its base unit.

Stock is always stored in base units. A unit's conversion_rate is the number
of base units equal to one of that unit (a 40 kg cement sack stocked in
"sak" sells per "kg" at 0.025).

Pure functions, no database access.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from .numbers import to_decimal
from .validation import ValidationError


def conversion_rate_of(unit: Any) -> Decimal:
    """Read conversion_rate from a ProductUnit, a TransactionItem snapshot or a mapping."""
    if isinstance(unit, dict):
        raw = unit.get("conversion_rate")
    else:
        raw = getattr(unit, "conversion_rate", None)
    if raw is None:
        raise ValidationError("unit has no conversion_rate")
    try:
        rate = to_decimal(raw, field="conversion_rate")
    except ValueError as e:
        raise ValidationError(str(e))
    if rate <= 0:
        raise ValidationError("conversion_rate must be > 0")
    return rate


def to_base_quantity(quantity: Any, unit: Any) -> Decimal:
    """Quantity in `unit` -> quantity in base units."""
    return to_decimal(quantity, field="quantity") * conversion_rate_of(unit)


def to_unit_quantity(base_quantity: Any, unit: Any) -> Decimal:
    """Quantity in base units -> quantity in `unit` (display)."""
    return to_decimal(base_quantity, field="base_quantity") / conversion_rate_of(unit)


def has_sufficient_stock(current_stock: Any, quantity: Any, unit: Any) -> bool:
    return to_decimal(current_stock, field="stock") >= to_base_quantity(quantity, unit)


def line_total(quantity: Any, unit_price: Any) -> Decimal:
    return to_decimal(quantity, field="quantity") * to_decimal(unit_price, field="unit_price")
