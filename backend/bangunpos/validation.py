from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from bangunpos.time_utils import parse_iso_datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from .errors import PosError
from .numbers import to_decimal


# Upper bound for any money field; keeps values inside Numeric(14, 2)
MAX_AMOUNT = Decimal("999999999999.99")


class ValidationError(PosError, ValueError):
    """400-level input problem."""
    kind = "ValidationError"
    status_code = 400


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - extra_fields: non-column keys passed through untouched (nested lists etc.)
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    extra_fields: set[str] | None = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Numeric before Integer: Numeric is not an Integer subclass, but keep the order explicit
    if isinstance(coltype, Numeric):
        if isinstance(value, bool):
            raise ValidationError(f"{col.key} must be a number")
        try:
            return to_decimal(value, field=col.key)
        except ValueError as e:
            raise ValidationError(str(e))

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer")
            if 'e' in stripped.lower():
                raise ValidationError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            if '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        raise ValidationError(f"{col.key} must be an integer")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            return value.strip().lower() == "true"
        raise ValidationError(f"{col.key} must be a boolean")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, (String, Text)):
        if isinstance(value, (dict, list)):
            raise ValidationError(f"{col.key} must be a string")
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    extra = policy.extra_fields or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k in extra:
            continue
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        if k in extra:
            patch[k] = raw
            continue

        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _require_range(patch: dict, field: str, *, minimum: Decimal, strict: bool = False, maximum: Decimal | None = None) -> None:
    if field not in patch or patch[field] is None:
        return
    try:
        value = to_decimal(patch[field], field=field)
    except ValueError as e:
        raise ValidationError(str(e))
    if strict and value <= minimum:
        raise ValidationError(f"{field} must be > {minimum}")
    if not strict and value < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    if maximum is not None and value > maximum:
        raise ValidationError(f"{field} cannot exceed {maximum}")


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    _require_range(patch, "cost", minimum=Decimal("0"), maximum=MAX_AMOUNT)
    _require_range(patch, "stock", minimum=Decimal("0"))
    _require_range(patch, "min_stock", minimum=Decimal("0"))


def enforce_rules_units(units: Any, *, base_unit: str | None = None) -> list[dict]:
    """
    Validate a product's unit list.

    - at least one unit, names unique
    - price > 0, conversion_rate > 0
    - exactly one is_base_unit, whose conversion_rate is 1
    - if base_unit is given, the base unit row carries that name
    """
    from .models import ProductUnit

    if not isinstance(units, list) or not units:
        raise ValidationError("units must be a non-empty list")

    policy = ModelValidationPolicy(
        writable_fields={"name", "price", "conversion_rate", "is_base_unit"},
        required_on_create={"name", "price", "conversion_rate"},
    )

    cleaned: list[dict] = []
    seen: set[str] = set()
    for i, raw in enumerate(units):
        if not isinstance(raw, dict):
            raise ValidationError(f"units[{i}] must be an object")
        unit = validate_payload(model=ProductUnit, payload=raw, policy=policy, partial=False)
        unit.setdefault("is_base_unit", False)
        _require_range(unit, "price", minimum=Decimal("0"), strict=True, maximum=MAX_AMOUNT)
        _require_range(unit, "conversion_rate", minimum=Decimal("0"), strict=True)
        if unit["name"] in seen:
            raise ValidationError(f"Duplicate unit name: {unit['name']}")
        seen.add(unit["name"])
        cleaned.append(unit)

    base_units = [u for u in cleaned if u["is_base_unit"]]
    if len(base_units) != 1:
        raise ValidationError("Exactly one unit must be the base unit")
    if base_units[0]["conversion_rate"] != 1:
        raise ValidationError("Base unit conversion_rate must be 1")
    if base_unit is not None and base_units[0]["name"] != base_unit:
        raise ValidationError(f"Base unit row must be named '{base_unit}'")

    return cleaned


def enforce_rules_stock_adjustment(patch: dict) -> None:
    movement_type = patch.get("type")
    if movement_type not in ("IN", "OUT", "ADJUSTMENT"):
        raise ValidationError("type must be one of IN, OUT, ADJUSTMENT")

    quantity = patch.get("quantity")
    if quantity is None or quantity == 0:
        raise ValidationError("quantity must be non-zero")
    if movement_type in ("IN", "OUT") and quantity < 0:
        raise ValidationError(f"quantity must be > 0 for {movement_type}")


def enforce_rules_transaction(patch: dict) -> None:
    if patch.get("payment_method") not in ("CASH", "DEBT"):
        raise ValidationError("payment_method must be CASH or DEBT")
    _require_range(patch, "payment_amount", minimum=Decimal("0"), maximum=MAX_AMOUNT)


def enforce_rules_transaction_item(item: dict, index: int) -> None:
    quantity = item.get("quantity")
    if quantity is None or quantity <= 0:
        raise ValidationError(f"items[{index}].quantity must be > 0")
    for field in ("unit_price", "subtotal"):
        if field in item and item[field] is not None and item[field] <= 0:
            raise ValidationError(f"items[{index}].{field} must be > 0")


def enforce_rules_debt_payment(patch: dict) -> None:
    amount = patch.get("amount")
    if amount is None or amount <= 0:
        raise ValidationError("amount must be > 0")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"amount cannot exceed {MAX_AMOUNT}")
    method = patch.get("method", "CASH")
    if method not in ("CASH", "TRANSFER", "OTHER"):
        raise ValidationError("method must be one of CASH, TRANSFER, OTHER")


def parse_bool_arg(value: str | None) -> bool | None:
    """Query-string boolean: true/false, 1/0, yes/no; empty means not given."""
    if value is None or value.strip() == "":
        return None
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes"):
        return True
    if lowered in ("0", "false", "no"):
        return False
    raise ValidationError(f"Invalid boolean value: {value}")
