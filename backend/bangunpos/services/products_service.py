# backend/bangunpos/services/products_service.py
"""
Products Service

STOCK: product stock is never written here directly. Initial stock goes
through stock_service.apply_stock_delta as an INITIAL movement; later changes
go through stock adjustments and sales.

SALES HISTORY: once any TransactionItem references a product, its SKU is
frozen, the product cannot be deleted, and units that were sold cannot be
removed.
"""
from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func, or_

from ..errors import ConflictError, InvalidStateError, NotFoundError
from ..extensions import db
from ..models import Category, Product, ProductUnit, StockMovement, Supplier, TransactionItem
from ..models.stock import MOVEMENT_IN, REFERENCE_INITIAL
from ..numbers import as_number, to_decimal
from ..pagination import paginate
from ..validation import ValidationError, enforce_rules_product, enforce_rules_units
from .concurrency import lock_for_update, run_atomic
from .stock_service import apply_stock_delta, is_low_stock, stock_status

PRODUCT_MUTABLE_FIELDS = {"sku", "name", "description", "category_id", "supplier_id", "cost", "min_stock"}

SORT_FIELDS = {
    "name": Product.name,
    "sku": Product.sku,
    "stock": Product.stock,
    "cost": Product.cost,
    "created_at": Product.created_at,
}

RECENT_MOVEMENTS = 10


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _sold_product_ids(product_ids) -> set[int]:
    if not product_ids:
        return set()
    rows = (
        db.session.query(TransactionItem.product_id)
        .filter(TransactionItem.product_id.in_(list(product_ids)))
        .distinct()
        .all()
    )
    return {r[0] for r in rows}


def has_sales(product_id: int) -> bool:
    return bool(_sold_product_ids([product_id]))


def _require_product(product_id: int, *, lock: bool = False) -> Product:
    q = db.session.query(Product).filter_by(id=product_id)
    if lock:
        q = lock_for_update(q)
    product = q.first()
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def _check_references(patch: dict) -> None:
    if patch.get("category_id") is not None and db.session.get(Category, patch["category_id"]) is None:
        raise NotFoundError(f"Category {patch['category_id']} not found")
    if patch.get("supplier_id") is not None and db.session.get(Supplier, patch["supplier_id"]) is None:
        raise NotFoundError(f"Supplier {patch['supplier_id']} not found")


def _ensure_unique_sku(sku: str, *, exclude_id: int | None = None) -> None:
    q = db.session.query(Product).filter(Product.sku == sku)
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    if q.first() is not None:
        raise ConflictError(f"SKU '{sku}' already exists")


def _annotate(data: dict, *, sold: bool) -> dict:
    data["stock_status"] = stock_status(data["stock"], data["min_stock"])
    data["is_low_stock"] = is_low_stock(data["stock"], data["min_stock"])
    data["has_transactions"] = sold
    return data


def list_products(
    *,
    page=None,
    per_page=None,
    search: str | None = None,
    category_id: int | None = None,
    supplier_id: int | None = None,
    low_stock: bool = False,
    sort_by: str = "name",
    sort_order: str = "asc",
) -> dict:
    """
    Catalog listing with search, filters and pagination.

    Each item carries stock_status and has_transactions.
    """
    if sort_by not in SORT_FIELDS:
        raise ValidationError(f"sort_by must be one of {', '.join(sorted(SORT_FIELDS))}")
    if sort_order not in ("asc", "desc"):
        raise ValidationError("sort_order must be asc or desc")

    q = db.session.query(Product)
    if search:
        term = f"%{search.strip().lower()}%"
        q = q.filter(or_(
            func.lower(Product.name).like(term),
            func.lower(Product.sku).like(term),
            func.lower(Product.description).like(term),
        ))
    if category_id is not None:
        q = q.filter(Product.category_id == category_id)
    if supplier_id is not None:
        q = q.filter(Product.supplier_id == supplier_id)
    if low_stock:
        q = q.filter(Product.stock <= Product.min_stock)

    column = SORT_FIELDS[sort_by]
    q = q.order_by(column.asc() if sort_order == "asc" else column.desc(), Product.id.asc())

    result = paginate(q, page=page, per_page=per_page)
    sold = _sold_product_ids({row["id"] for row in result["items"]})
    for row in result["items"]:
        _annotate(row, sold=row["id"] in sold)
    return result


def get_product(product_id: int) -> dict:
    product = _require_product(product_id)
    movements = (
        product.stock_movements
        .order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .limit(RECENT_MOVEMENTS)
        .all()
    )
    data = _annotate(product.to_dict(), sold=has_sales(product.id))
    data["recent_movements"] = [m.to_dict() for m in movements]
    return data


def create_product(*, patch: dict) -> dict:
    """
    Create a product with its units.

    `patch` carries product fields plus `units` (list of unit dicts) and an
    optional initial `stock` in base units. When base_unit is omitted it is
    taken from the unit flagged is_base_unit.
    """
    for field in ("sku", "name", "category_id"):
        if patch.get(field) in (None, ""):
            raise ValidationError(f"{field} is required")

    enforce_rules_product(patch)
    units = enforce_rules_units(patch.get("units"), base_unit=patch.get("base_unit"))
    base_row = next(u for u in units if u["is_base_unit"])

    try:
        initial_stock = to_decimal(patch.get("stock") or 0, field="stock")
    except ValueError as e:
        raise ValidationError(str(e))

    def _op():
        _ensure_unique_sku(patch["sku"])
        _check_references(patch)

        p = Product(stock=Decimal("0"), base_unit=base_row["name"])
        apply_product_patch(p, patch)
        for u in units:
            p.units.append(ProductUnit(**u))

        db.session.add(p)
        db.session.flush()

        if initial_stock > 0:
            apply_stock_delta(
                product_id=p.id,
                delta=initial_stock,
                movement_type=MOVEMENT_IN,
                reference_type=REFERENCE_INITIAL,
                note="Initial stock",
            )
        return p

    return _annotate(run_atomic(_op).to_dict(), sold=False)


def _replace_units(product: Product, units: list[dict], *, sold: bool) -> None:
    """Replace the unit list by name: matching names are updated in place."""
    keep = {u["name"] for u in units}

    for existing in list(product.units):
        if existing.name in keep:
            continue
        if sold:
            used = (
                db.session.query(TransactionItem.id)
                .filter(TransactionItem.unit_id == existing.id)
                .first()
            )
            if used is not None:
                raise InvalidStateError(
                    f"Unit '{existing.name}' has been sold and cannot be removed",
                    details={"unit_id": existing.id},
                )
        product.units.remove(existing)

    # Removals first so the (product_id, name) constraint never sees two rows
    db.session.flush()

    for u in units:
        row = product.find_unit(u["name"])
        if row is None:
            product.units.append(ProductUnit(**u))
            continue
        row.price = u["price"]
        row.conversion_rate = u["conversion_rate"]
        row.is_base_unit = u["is_base_unit"]


def update_product(*, product_id: int, patch: dict) -> dict:
    """
    Update a product. Stock is not editable here (use a stock adjustment);
    the SKU is frozen once the product has been sold.
    """
    if "stock" in patch:
        raise ValidationError("stock can only be changed through a stock adjustment")
    enforce_rules_product(patch)
    if "base_unit" in patch and "units" not in patch:
        raise ValidationError("Changing base_unit requires the units list")

    units = None
    if "units" in patch:
        units = enforce_rules_units(patch["units"], base_unit=patch.get("base_unit"))

    def _op():
        p = _require_product(product_id, lock=True)
        sold = has_sales(p.id)

        if "sku" in patch and patch["sku"] != p.sku:
            if sold:
                raise InvalidStateError(
                    "SKU cannot be changed after the product has been sold",
                    details={"sku": p.sku},
                )
            _ensure_unique_sku(patch["sku"], exclude_id=p.id)

        _check_references(patch)
        apply_product_patch(p, patch)

        if units is not None:
            _replace_units(p, units, sold=sold)
            p.base_unit = next(u["name"] for u in units if u["is_base_unit"])

        db.session.flush()
        return p, sold

    p, sold = run_atomic(_op)
    return _annotate(p.to_dict(), sold=sold)


def delete_product(product_id: int) -> None:
    """Hard delete; only products that were never sold."""
    def _op():
        p = _require_product(product_id, lock=True)
        if has_sales(p.id):
            raise InvalidStateError(
                f"Product '{p.name}' has sales history and cannot be deleted",
                details={"product_id": p.id},
            )

        db.session.query(StockMovement).filter(StockMovement.product_id == p.id).delete(
            synchronize_session=False
        )
        db.session.delete(p)

    run_atomic(_op)


def product_stats() -> dict:
    products = db.session.query(Product.stock, Product.min_stock, Product.cost).all()

    total_stock = Decimal("0")
    total_value = Decimal("0")
    low = 0
    out = 0
    for stock, min_stock, cost in products:
        stock = to_decimal(stock)
        total_stock += stock
        total_value += stock * to_decimal(cost)
        if stock <= 0:
            out += 1
        if is_low_stock(stock, min_stock):
            low += 1

    breakdown = (
        db.session.query(Category.id, Category.name, func.count(Product.id))
        .outerjoin(Product, Product.category_id == Category.id)
        .group_by(Category.id, Category.name)
        .order_by(Category.name.asc())
        .all()
    )

    return {
        "total_products": len(products),
        "low_stock_count": low,
        "out_of_stock_count": out,
        "total_stock": as_number(total_stock),
        "total_stock_value": as_number(total_value.quantize(Decimal("0.01"))),
        "categories": [
            {"category_id": cid, "name": name, "product_count": count}
            for cid, name, count in breakdown
        ],
    }
