from __future__ import annotations

from ..extensions import db
from ..numbers import as_number
from bangunpos.time_utils import to_utc_z

MOVEMENT_IN = "IN"
MOVEMENT_OUT = "OUT"
MOVEMENT_ADJUSTMENT = "ADJUSTMENT"
MOVEMENT_TYPES = (MOVEMENT_IN, MOVEMENT_OUT, MOVEMENT_ADJUSTMENT)

REFERENCE_TRANSACTION = "TRANSACTION"
REFERENCE_CANCELLATION = "CANCELLATION"
REFERENCE_MANUAL = "MANUAL"
REFERENCE_INITIAL = "INITIAL"


class StockMovement(db.Model):
    """
    Append-only audit entry for a single stock change.

    quantity is signed and in base units (negative for outflow). stock_after
    is the product's stock right after the change, so the log can be replayed
    and checked against Product.stock.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
        db.Index("ix_stock_movements_transaction", "transaction_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    type = db.Column(db.String(16), nullable=False, index=True)
    quantity = db.Column(db.Numeric(14, 4), nullable=False)
    stock_after = db.Column(db.Numeric(14, 4), nullable=True)

    reference_type = db.Column(db.String(16), nullable=False, default=REFERENCE_MANUAL)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=True)

    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship(
        "Product",
        backref=db.backref("stock_movements", lazy="dynamic"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "type": self.type,
            "quantity": as_number(self.quantity),
            "stock_after": as_number(self.stock_after),
            "reference_type": self.reference_type,
            "transaction_id": self.transaction_id,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }
