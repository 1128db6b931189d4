# Overview: Stock ledger; keeps Product.stock and the StockMovement log consistent.

# backend/bangunpos/services/stock_service.py

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import func, update

from ..errors import InsufficientStockError, InvalidStateError, NotFoundError
from ..extensions import db
from ..models import Product, StockMovement
from ..models.stock import (
    MOVEMENT_ADJUSTMENT,
    MOVEMENT_IN,
    MOVEMENT_OUT,
    MOVEMENT_TYPES,
    REFERENCE_MANUAL,
)
from ..numbers import as_number, quantize_quantity, to_decimal
from ..validation import ValidationError, enforce_rules_stock_adjustment
from .concurrency import lock_for_update, run_atomic
"""
Stock Ledger Invariants (authoritative)

- Product.stock is expressed in base units and is never negative.
- Every stock change goes through apply_stock_delta(), which performs a
  conditional UPDATE and appends exactly one StockMovement carrying the same
  signed delta and the resulting stock.
- apply_stock_delta() never commits; it joins the caller's unit of work so a
  sale, a cancellation or a manual adjustment is all-or-nothing.
- Low-stock is derived on every read from live stock/min_stock; there is no
  stored flag.
"""

STATUS_NORMAL = "NORMAL"
STATUS_LOW = "LOW"
STATUS_CRITICAL = "CRITICAL"

URGENCY_CRITICAL = "CRITICAL"
URGENCY_HIGH = "HIGH"
URGENCY_MEDIUM = "MEDIUM"

STOCK_SCALE = 4


def stock_status(stock, min_stock) -> str:
    """
    Single source of truth for stock status.

    CRITICAL: stock <= 0 or stock <= min_stock
    LOW:      stock <= 2 * min_stock
    NORMAL:   otherwise
    """
    stock = to_decimal(stock, field="stock")
    min_stock = to_decimal(min_stock, field="min_stock")
    if stock <= 0:
        return STATUS_CRITICAL
    if stock <= min_stock:
        return STATUS_CRITICAL
    if stock <= min_stock * 2:
        return STATUS_LOW
    return STATUS_NORMAL


def is_low_stock(stock, min_stock) -> bool:
    return to_decimal(stock, field="stock") <= to_decimal(min_stock, field="min_stock")


def low_stock_urgency(stock, min_stock) -> str:
    stock = to_decimal(stock, field="stock")
    min_stock = to_decimal(min_stock, field="min_stock")
    if stock <= 0:
        return URGENCY_CRITICAL
    if stock <= (min_stock // 2):
        return URGENCY_HIGH
    return URGENCY_MEDIUM


def apply_stock_delta(
    *,
    product_id: int,
    delta,
    movement_type: str,
    reference_type: str = REFERENCE_MANUAL,
    transaction_id: int | None = None,
    note: str | None = None,
    shortage_error: type = InsufficientStockError,
) -> StockMovement:
    """
    Apply a signed base-unit delta to a product's stock and log it.

    The write is `stock = stock + delta WHERE id = :id AND stock + delta >= 0`,
    so two concurrent decrements can never jointly overdraw: the second one
    matches zero rows and raises `shortage_error`.
    """
    if movement_type not in MOVEMENT_TYPES:
        raise ValidationError(f"Invalid movement type: {movement_type}")

    delta = quantize_quantity(delta)
    if delta == 0:
        raise ValidationError("Stock delta must be non-zero")

    new_stock_expr = func.round(Product.stock + delta, STOCK_SCALE)
    stmt = (
        update(Product)
        .where(Product.id == product_id)
        .where(new_stock_expr >= 0)
        .values(stock=new_stock_expr, version_id=Product.version_id + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)

    if not result.rowcount:
        current = db.session.query(Product.stock).filter(Product.id == product_id).scalar()
        if current is None:
            raise NotFoundError(f"Product {product_id} not found")
        current_app.logger.info(
            "Stock shortfall on product %s: available=%s requested=%s",
            product_id, current, -delta,
        )
        raise shortage_error(
            "Stock would become negative",
            details={
                "product_id": product_id,
                "available": as_number(current),
                "requested": as_number(-delta),
            },
        )

    # The UPDATE bypassed the identity map; reload the columns it touched
    product = db.session.get(Product, product_id)
    db.session.expire(product, ["stock", "version_id"])
    new_stock = product.stock

    movement = StockMovement(
        product_id=product_id,
        type=movement_type,
        quantity=delta,
        stock_after=new_stock,
        reference_type=reference_type,
        transaction_id=transaction_id,
        note=note,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def _signed_adjustment(quantity: Decimal, movement_type: str) -> Decimal:
    if movement_type == MOVEMENT_OUT:
        return -quantity
    return quantity


def adjust_stock(
    *,
    product_id: int,
    quantity,
    movement_type: str = MOVEMENT_ADJUSTMENT,
    note: str | None = None,
) -> dict:
    """
    Manual stock adjustment (receiving, shrink, corrections).

    quantity is in base units. IN adds, OUT removes (entered positive),
    ADJUSTMENT is applied as signed. Fails with InvalidStateError when the
    result would be negative.
    """
    if movement_type not in MOVEMENT_TYPES:
        raise ValidationError(f"Invalid movement type: {movement_type}")
    try:
        quantity = to_decimal(quantity, field="quantity")
    except ValueError as e:
        raise ValidationError(str(e))
    enforce_rules_stock_adjustment({"type": movement_type, "quantity": quantity})

    def _op():
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")

        previous_stock = product.stock
        delta = _signed_adjustment(quantity, movement_type)
        movement = apply_stock_delta(
            product_id=product.id,
            delta=delta,
            movement_type=movement_type,
            reference_type=REFERENCE_MANUAL,
            note=note or f"Stock {movement_type.lower()} adjustment",
            shortage_error=InvalidStateError,
        )
        return product, previous_stock, movement

    product, previous_stock, movement = run_atomic(_op)

    data = product.to_dict()
    data.update({
        "previous_stock": as_number(previous_stock),
        "new_stock": as_number(product.stock),
        "stock_status": stock_status(product.stock, product.min_stock),
        "movement": movement.to_dict(),
    })
    return data


def list_low_stock_products() -> list[dict]:
    """
    Products at or below their reorder threshold.

    Scans the whole catalog on every call so the answer always reflects
    live stock.
    """
    products = (
        db.session.query(Product)
        .order_by(Product.stock.asc(), Product.name.asc())
        .all()
    )

    rows = []
    for p in products:
        if not is_low_stock(p.stock, p.min_stock):
            continue
        data = p.to_dict()
        data["stock_status"] = stock_status(p.stock, p.min_stock)
        data["urgency_level"] = low_stock_urgency(p.stock, p.min_stock)
        rows.append(data)
    return rows


def count_low_stock_products() -> int:
    rows = db.session.query(Product.stock, Product.min_stock).all()
    return sum(1 for stock, min_stock in rows if is_low_stock(stock, min_stock))


def list_stock_movements(
    *,
    product_id: int | None = None,
    movement_type: str | None = None,
    transaction_id: int | None = None,
    limit: int = 200,
) -> list[StockMovement]:
    if product_id is not None:
        if db.session.get(Product, product_id) is None:
            raise NotFoundError(f"Product {product_id} not found")
    if movement_type is not None and movement_type not in MOVEMENT_TYPES:
        raise ValidationError(f"Invalid movement type: {movement_type}")

    q = db.session.query(StockMovement)
    if product_id is not None:
        q = q.filter(StockMovement.product_id == product_id)
    if movement_type is not None:
        q = q.filter(StockMovement.type == movement_type)
    if transaction_id is not None:
        q = q.filter(StockMovement.transaction_id == transaction_id)

    return (
        q.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .limit(limit)
        .all()
    )


def stock_report() -> dict:
    """Every product's stock position, valued at cost, plus counts per status."""
    products = db.session.query(Product).order_by(Product.name.asc(), Product.id.asc()).all()

    items = []
    counts = {STATUS_NORMAL: 0, STATUS_LOW: 0, STATUS_CRITICAL: 0}
    total_value = Decimal("0")
    for p in products:
        status = stock_status(p.stock, p.min_stock)
        counts[status] += 1
        value = to_decimal(p.stock) * to_decimal(p.cost)
        total_value += value
        items.append({
            "product_id": p.id,
            "sku": p.sku,
            "name": p.name,
            "category_name": p.category.name if p.category else None,
            "stock": as_number(p.stock),
            "min_stock": as_number(p.min_stock),
            "base_unit": p.base_unit,
            "stock_value": as_number(value.quantize(Decimal("0.01"))),
            "stock_status": status,
        })

    return {
        "items": items,
        "count": len(items),
        "status_counts": counts,
        "total_stock_value": as_number(total_value.quantize(Decimal("0.01"))),
    }
