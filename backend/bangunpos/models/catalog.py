from __future__ import annotations

from ..extensions import db
from ..numbers import as_number
from bangunpos.time_utils import to_utc_z


class Category(db.Model):
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Category id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Supplier(db.Model):
    __tablename__ = "suppliers"
    __table_args__ = (
        db.Index("ix_suppliers_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    contact = db.Column(db.String(128), nullable=True)
    address = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Supplier id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contact": self.contact,
            "address": self.address,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Product(db.Model):
    """
    Product master data.

    STOCK: `stock` is always expressed in base units (`base_unit`) and is never
    negative. It is only written through stock_service.apply_stock_delta, which
    appends a StockMovement for every change and bumps version_id.

    SKU: unique across the catalog and immutable once the product has sales.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.CheckConstraint("stock >= 0", name="ck_products_stock_nonnegative"),
        db.CheckConstraint("min_stock >= 0", name="ck_products_min_stock_nonnegative"),
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_category", "category_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)

    # Purchase cost per base unit
    cost = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    stock = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    min_stock = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    base_unit = db.Column(db.String(32), nullable=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", backref=db.backref("products", lazy=True))
    supplier = db.relationship("Supplier", backref=db.backref("products", lazy=True))
    units = db.relationship(
        "ProductUnit",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by=lambda: [ProductUnit.is_base_unit.desc(), ProductUnit.id],
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} stock={self.stock}>"

    def find_unit(self, name: str) -> "ProductUnit | None":
        for unit in self.units:
            if unit.name == name:
                return unit
        return None

    @property
    def base_unit_row(self) -> "ProductUnit | None":
        for unit in self.units:
            if unit.is_base_unit:
                return unit
        return None

    def to_dict(self, *, include_units: bool = True) -> dict:
        data = {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "category_id": self.category_id,
            "category_name": self.category.name if self.category else None,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.name if self.supplier else None,
            "cost": as_number(self.cost),
            "stock": as_number(self.stock),
            "min_stock": as_number(self.min_stock),
            "base_unit": self.base_unit,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_units:
            data["units"] = [u.to_dict() for u in self.units]
        return data


class ProductUnit(db.Model):
    """
    A sales unit of a product.

    conversion_rate = base units per one of this unit. Exactly one unit per
    product is the base unit, and its conversion_rate is 1.
    """
    __tablename__ = "product_units"
    __table_args__ = (
        db.UniqueConstraint("product_id", "name", name="uq_product_units_product_name"),
        db.CheckConstraint("conversion_rate > 0", name="ck_product_units_rate_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    name = db.Column(db.String(32), nullable=False)
    price = db.Column(db.Numeric(14, 2), nullable=False)
    conversion_rate = db.Column(db.Numeric(14, 6), nullable=False, default=1)
    is_base_unit = db.Column(db.Boolean, nullable=False, default=False)

    product = db.relationship("Product", back_populates="units")

    def __repr__(self) -> str:
        return f"<ProductUnit id={self.id} product_id={self.product_id} name={self.name!r} rate={self.conversion_rate}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "name": self.name,
            "price": as_number(self.price),
            "conversion_rate": as_number(self.conversion_rate),
            "is_base_unit": self.is_base_unit,
        }
