# Overview: Service-layer operations for suppliers.

"""
Supplier Service

Suppliers are optional on products. A supplier that still supplies any
product cannot be deleted; detach or reassign the products first.
"""

from __future__ import annotations

from sqlalchemy import func, or_

from ..errors import InvalidStateError, NotFoundError
from ..extensions import db
from ..models import Product, Supplier
from ..validation import ValidationError

SUPPLIER_MUTABLE_FIELDS = {"name", "contact", "address"}


def _require_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise NotFoundError(f"Supplier {supplier_id} not found")
    return supplier


def list_suppliers(search: str | None = None) -> list[dict]:
    counts = dict(
        db.session.query(Product.supplier_id, func.count(Product.id))
        .filter(Product.supplier_id.isnot(None))
        .group_by(Product.supplier_id)
        .all()
    )

    q = db.session.query(Supplier)
    if search:
        term = f"%{search.strip().lower()}%"
        q = q.filter(or_(
            func.lower(Supplier.name).like(term),
            func.lower(Supplier.contact).like(term),
        ))

    rows = []
    for s in q.order_by(Supplier.name.asc(), Supplier.id.asc()).all():
        data = s.to_dict()
        data["product_count"] = counts.get(s.id, 0)
        rows.append(data)
    return rows


def get_supplier(supplier_id: int) -> dict:
    supplier = _require_supplier(supplier_id)
    products = (
        db.session.query(Product)
        .filter(Product.supplier_id == supplier.id)
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )
    data = supplier.to_dict()
    data["product_count"] = len(products)
    data["products"] = [p.to_dict(include_units=False) for p in products]
    return data


def create_supplier(*, patch: dict) -> dict:
    name = (patch.get("name") or "").strip()
    if not name:
        raise ValidationError("Supplier name is required")

    supplier = Supplier(name=name, contact=patch.get("contact"), address=patch.get("address"))
    db.session.add(supplier)
    db.session.commit()
    return supplier.to_dict()


def update_supplier(*, supplier_id: int, patch: dict) -> dict:
    supplier = _require_supplier(supplier_id)
    for k, v in patch.items():
        if k in SUPPLIER_MUTABLE_FIELDS:
            setattr(supplier, k, v)
    db.session.commit()
    return supplier.to_dict()


def delete_supplier(supplier_id: int) -> None:
    supplier = _require_supplier(supplier_id)

    count = (
        db.session.query(func.count(Product.id))
        .filter(Product.supplier_id == supplier.id)
        .scalar()
    ) or 0
    if count:
        raise InvalidStateError(
            f"Supplier '{supplier.name}' still supplies {count} product(s)",
            details={"product_count": count},
        )

    db.session.delete(supplier)
    db.session.commit()
