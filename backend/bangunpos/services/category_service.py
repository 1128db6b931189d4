# Overview: Service-layer operations for product categories.

from __future__ import annotations

from sqlalchemy import func

from ..errors import ConflictError, InvalidStateError, NotFoundError
from ..extensions import db
from ..models import Category, Product
from ..validation import ValidationError

CATEGORY_MUTABLE_FIELDS = {"name", "description"}


def _require_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if category is None:
        raise NotFoundError(f"Category {category_id} not found")
    return category


def _ensure_unique_name(name: str, *, exclude_id: int | None = None) -> None:
    q = db.session.query(Category).filter(func.lower(Category.name) == name.strip().lower())
    if exclude_id is not None:
        q = q.filter(Category.id != exclude_id)
    if q.first() is not None:
        raise ConflictError(f"Category '{name}' already exists")


def _product_count(category_id: int) -> int:
    return db.session.query(func.count(Product.id)).filter(Product.category_id == category_id).scalar() or 0


def list_categories() -> list[dict]:
    counts = dict(
        db.session.query(Product.category_id, func.count(Product.id))
        .group_by(Product.category_id)
        .all()
    )
    categories = db.session.query(Category).order_by(Category.name.asc(), Category.id.asc()).all()
    rows = []
    for c in categories:
        data = c.to_dict()
        data["product_count"] = counts.get(c.id, 0)
        rows.append(data)
    return rows


def get_category(category_id: int) -> dict:
    category = _require_category(category_id)
    products = (
        db.session.query(Product)
        .filter(Product.category_id == category.id)
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )
    data = category.to_dict()
    data["product_count"] = len(products)
    data["products"] = [p.to_dict(include_units=False) for p in products]
    return data


def create_category(*, patch: dict) -> dict:
    name = (patch.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required")
    _ensure_unique_name(name)

    category = Category(name=name, description=patch.get("description"))
    db.session.add(category)
    db.session.commit()
    return category.to_dict()


def update_category(*, category_id: int, patch: dict) -> dict:
    category = _require_category(category_id)

    if "name" in patch and patch["name"] != category.name:
        _ensure_unique_name(patch["name"], exclude_id=category.id)

    for k, v in patch.items():
        if k in CATEGORY_MUTABLE_FIELDS:
            setattr(category, k, v)
    db.session.commit()
    return category.to_dict()


def delete_category(category_id: int) -> None:
    """Categories still holding products cannot be deleted."""
    category = _require_category(category_id)

    count = _product_count(category.id)
    if count:
        raise InvalidStateError(
            f"Category '{category.name}' still has {count} product(s)",
            details={"product_count": count},
        )

    db.session.delete(category)
    db.session.commit()
