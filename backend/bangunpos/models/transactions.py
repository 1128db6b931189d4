from __future__ import annotations

from ..extensions import db
from ..numbers import as_number
from bangunpos.time_utils import to_utc_z

PAYMENT_CASH = "CASH"
PAYMENT_DEBT = "DEBT"
PAYMENT_METHODS = (PAYMENT_CASH, PAYMENT_DEBT)

STATUS_ACTIVE = "ACTIVE"
STATUS_CANCELLED = "CANCELLED"

STATE_CREATED = "CREATED"
STATE_CREATED_WITH_DEBT = "CREATED_WITH_DEBT"
STATE_CANCELLED = "CANCELLED"

DEBT_PENDING = "PENDING"
DEBT_PARTIAL = "PARTIAL"
DEBT_PAID = "PAID"
DEBT_STATUSES = (DEBT_PENDING, DEBT_PARTIAL, DEBT_PAID)

DEBT_PAYMENT_METHODS = ("CASH", "TRANSFER", "OTHER")


class Transaction(db.Model):
    """
    Sale document.

    LIFECYCLE:
    - Created ACTIVE, either CASH (is_paid at creation) or DEBT (owns a DebtRecord).
    - Cancellation sets status=CANCELLED with a reason; rows are never deleted.
    - is_paid flips to True for DEBT sales once the debt is settled.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.UniqueConstraint("receipt_number", name="uq_transactions_receipt_number"),
        db.Index("ix_transactions_status_created", "status", "created_at"),
        db.Index("ix_transactions_customer_name", "customer_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable receipt number (e.g., "TXN-20250101-000001")
    receipt_number = db.Column(db.String(64), nullable=False)

    customer_name = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=True)
    customer_address = db.Column(db.String(255), nullable=True)

    payment_method = db.Column(db.String(8), nullable=False, default=PAYMENT_CASH)

    total_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    payment_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    change_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    is_paid = db.Column(db.Boolean, nullable=False, default=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=STATUS_ACTIVE)
    cancel_reason = db.Column(db.String(255), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    items = db.relationship(
        "TransactionItem",
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="TransactionItem.id",
        lazy=True,
    )
    debt_record = db.relationship(
        "DebtRecord",
        back_populates="transaction",
        uselist=False,
        cascade="all, delete-orphan",
    )

    @property
    def is_cancelled(self) -> bool:
        return self.status == STATUS_CANCELLED

    @property
    def state(self) -> str:
        if self.is_cancelled:
            return STATE_CANCELLED
        if self.payment_method == PAYMENT_DEBT:
            return STATE_CREATED_WITH_DEBT
        return STATE_CREATED

    @property
    def remaining_debt(self):
        if self.debt_record is None or self.is_cancelled:
            return 0
        return self.debt_record.remaining_debt

    def to_dict(self, *, include_items: bool = True) -> dict:
        remaining = as_number(self.remaining_debt)
        data = {
            "id": self.id,
            "receipt_number": self.receipt_number,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "customer_address": self.customer_address,
            "payment_method": self.payment_method,
            "total_amount": as_number(self.total_amount),
            "payment_amount": as_number(self.payment_amount),
            "change_amount": as_number(self.change_amount),
            "is_paid": self.is_paid,
            "status": self.status,
            "state": self.state,
            "cancel_reason": self.cancel_reason,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
            "notes": self.notes,
            "item_count": len(self.items),
            "remaining_debt": remaining,
            "is_fully_paid": remaining <= 0,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
            data["debt_record"] = self.debt_record.to_dict() if self.debt_record else None
        return data


class TransactionItem(db.Model):
    """
    Line item of a sale. Immutable once created.

    unit_name and conversion_rate are snapshots of the unit at sale time;
    base_quantity is what left stock, and is what a cancellation puts back,
    even if the unit is edited later.
    """
    __tablename__ = "transaction_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("product_units.id", ondelete="SET NULL"), nullable=True)

    unit_name = db.Column(db.String(32), nullable=False)
    conversion_rate = db.Column(db.Numeric(14, 6), nullable=False)

    quantity = db.Column(db.Numeric(14, 4), nullable=False)
    base_quantity = db.Column(db.Numeric(14, 4), nullable=False)
    unit_price = db.Column(db.Numeric(14, 2), nullable=False)
    subtotal = db.Column(db.Numeric(14, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    transaction = db.relationship("Transaction", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "product_sku": self.product.sku if self.product else None,
            "unit_id": self.unit_id,
            "unit_name": self.unit_name,
            "conversion_rate": as_number(self.conversion_rate),
            "quantity": as_number(self.quantity),
            "base_quantity": as_number(self.base_quantity),
            "unit_price": as_number(self.unit_price),
            "subtotal": as_number(self.subtotal),
            "created_at": to_utc_z(self.created_at),
        }


class DebtRecord(db.Model):
    """
    Outstanding balance of a DEBT transaction.

    remaining_debt = total_debt - paid_amount. Status moves PENDING -> PARTIAL
    -> PAID as payments accrue. Cancellation closes the record (status PAID,
    closed_at set) meaning "no longer owed", not "was paid".
    """
    __tablename__ = "debt_records"
    __table_args__ = (
        db.UniqueConstraint("transaction_id", name="uq_debt_records_transaction"),
        db.Index("ix_debt_records_status", "status"),
        db.Index("ix_debt_records_customer_name", "customer_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False)

    customer_name = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=True)

    total_debt = db.Column(db.Numeric(14, 2), nullable=False)
    paid_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    remaining_debt = db.Column(db.Numeric(14, 2), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=DEBT_PENDING)

    due_date = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    transaction = db.relationship("Transaction", back_populates="debt_record")
    payments = db.relationship(
        "DebtPayment",
        back_populates="debt_record",
        cascade="all, delete-orphan",
        order_by="DebtPayment.id.desc()",
        lazy=True,
    )

    @property
    def is_closed(self) -> bool:
        return self.closed_at is not None

    def to_dict(self, *, include_payments: bool = True) -> dict:
        data = {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "receipt_number": self.transaction.receipt_number if self.transaction else None,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "total_debt": as_number(self.total_debt),
            "paid_amount": as_number(self.paid_amount),
            "remaining_debt": as_number(self.remaining_debt),
            "status": self.status,
            "is_closed": self.is_closed,
            "due_date": to_utc_z(self.due_date) if self.due_date else None,
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_payments:
            data["payments"] = [p.to_dict() for p in self.payments]
        return data


class DebtPayment(db.Model):
    """Append-only repayment entry against a DebtRecord."""
    __tablename__ = "debt_payments"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_debt_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    debt_record_id = db.Column(db.Integer, db.ForeignKey("debt_records.id"), nullable=False, index=True)

    amount = db.Column(db.Numeric(14, 2), nullable=False)
    method = db.Column(db.String(16), nullable=False, default="CASH")
    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    debt_record = db.relationship("DebtRecord", back_populates="payments")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "debt_record_id": self.debt_record_id,
            "amount": as_number(self.amount),
            "method": self.method,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }
