# Overview: Transaction workflow; create, cancel and debt repayment as single units of work.

"""
Transaction Workflow

WHY: A sale touches three ledgers at once: the sale document, product stock
and (for DEBT sales) the debt ledger. Each operation here commits all of
them together or none of them.

LIFECYCLE:
- create_transaction: -> CREATED (CASH) or CREATED_WITH_DEBT (DEBT)
- add_debt_payment:   CREATED_WITH_DEBT, record PENDING/PARTIAL -> PARTIAL/PAID
- cancel_transaction: CREATED / CREATED_WITH_DEBT (no repayments) -> CANCELLED

Cancelled transactions are terminal and never deleted.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy import func, or_

from ..errors import (
    AlreadyCancelledError,
    AlreadySettledError,
    HasPaymentsError,
    InsufficientStockError,
    InvalidPaymentError,
    NotADebtTransactionError,
    NotFoundError,
    OverPaymentError,
)
from ..extensions import db
from ..models import DebtPayment, DebtRecord, Product, Transaction, TransactionItem
from ..models.stock import (
    MOVEMENT_IN,
    MOVEMENT_OUT,
    REFERENCE_CANCELLATION,
    REFERENCE_TRANSACTION,
)
from ..models.transactions import (
    DEBT_PAID,
    PAYMENT_CASH,
    PAYMENT_DEBT,
    PAYMENT_METHODS,
    STATUS_ACTIVE,
    STATUS_CANCELLED,
)
from ..numbers import as_number, quantize_money, quantize_quantity, to_decimal
from ..pagination import paginate
from ..units import line_total, to_base_quantity
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_debt_payment,
    enforce_rules_transaction,
    enforce_rules_transaction_item,
    validate_payload,
)
from . import debt_service
from .concurrency import lock_for_update, run_atomic
from .receipt_service import next_receipt_number
from .stock_service import apply_stock_delta
from bangunpos.time_utils import day_bounds, end_of_day, parse_iso_datetime, utcnow


TRANSACTION_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "customer_name",
        "customer_phone",
        "customer_address",
        "payment_method",
        "payment_amount",
        "notes",
    },
    required_on_create={"customer_name", "payment_method", "payment_amount"},
)

TRANSACTION_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"customer_name", "customer_phone", "customer_address", "notes"},
)

ITEM_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "unit_name", "quantity", "unit_price", "subtotal"},
    required_on_create={"product_id", "unit_name", "quantity"},
)

SORT_FIELDS = {
    "created_at": Transaction.created_at,
    "total": Transaction.total_amount,
    "total_amount": Transaction.total_amount,
    "customer_name": Transaction.customer_name,
    "receipt_number": Transaction.receipt_number,
}


def _parse_when(value, field: str) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        return parse_iso_datetime(str(value))
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 date or datetime")


def _price_tolerance() -> Decimal:
    return to_decimal(current_app.config.get("PRICE_MISMATCH_TOLERANCE", "0.01"), field="PRICE_MISMATCH_TOLERANCE")


def _check_price(*, expected: Decimal, actual: Decimal, what: str, index: int) -> None:
    """Client-supplied prices are trusted; a drift from the catalog is reported."""
    if abs(actual - expected) <= _price_tolerance():
        return

    details = {"index": index, "expected": as_number(expected), "actual": as_number(actual)}
    if current_app.config.get("STRICT_PRICE_CHECK"):
        raise ValidationError(f"items[{index}].{what} does not match the catalog", details=details)
    current_app.logger.warning(
        "Price mismatch on items[%s].%s: expected=%s actual=%s", index, what, expected, actual
    )


def _optional_text(value, field: str, max_length: int = 255) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    value = value.strip()
    if len(value) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return value or None


def _clean_items(items) -> list[dict]:
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    cleaned = []
    for i, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{i}] must be an object")
        item = validate_payload(model=TransactionItem, payload=raw, policy=ITEM_POLICY, partial=False)
        enforce_rules_transaction_item(item, i)
        cleaned.append(item)
    return cleaned


def _resolve_lines(items: list[dict]) -> list[dict]:
    """
    Resolve every item to its product and unit, price it and convert it to
    base units. Raises before anything is written.
    """
    lines = []
    needed: dict[int, Decimal] = {}
    products: dict[int, Product] = {}

    for i, item in enumerate(items):
        product_id = item["product_id"]
        product = products.get(product_id)
        if product is None:
            product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
            if product is None:
                raise NotFoundError(f"Product {product_id} not found", details={"index": i})
            products[product_id] = product

        unit = product.find_unit(item["unit_name"])
        if unit is None:
            raise NotFoundError(
                f"Unit '{item['unit_name']}' not found for product {product.name}",
                details={"index": i, "product_id": product_id},
            )

        quantity = quantize_quantity(item["quantity"])
        base_quantity = quantize_quantity(to_base_quantity(quantity, unit))
        if base_quantity <= 0:
            raise ValidationError(
                f"items[{i}].quantity is too small to convert to {product.base_unit}",
                details={"index": i, "product_id": product_id},
            )

        unit_price = item.get("unit_price")
        if unit_price is None:
            unit_price = unit.price
        else:
            _check_price(expected=to_decimal(unit.price), actual=unit_price, what="unit_price", index=i)
        unit_price = quantize_money(unit_price)

        expected_subtotal = quantize_money(line_total(quantity, unit_price))
        subtotal = item.get("subtotal")
        if subtotal is None:
            subtotal = expected_subtotal
        else:
            _check_price(expected=expected_subtotal, actual=subtotal, what="subtotal", index=i)
        subtotal = quantize_money(subtotal)

        needed[product_id] = needed.get(product_id, Decimal("0")) + base_quantity
        lines.append({
            "product": product,
            "unit": unit,
            "quantity": quantity,
            "base_quantity": base_quantity,
            "unit_price": unit_price,
            "subtotal": subtotal,
        })

    insufficient = []
    for product_id, qty in needed.items():
        product = products[product_id]
        available = to_decimal(product.stock)
        if available < qty:
            insufficient.append({
                "product_id": product_id,
                "product_name": product.name,
                "available": as_number(available),
                "requested": as_number(qty),
                "base_unit": product.base_unit,
            })

    if insufficient:
        names = ", ".join(row["product_name"] for row in insufficient)
        raise InsufficientStockError(f"Insufficient stock for {names}", details={"items": insufficient})

    return lines


def create_transaction(
    *,
    customer_name: str,
    payment_method: str,
    paid_amount,
    items: list[dict],
    customer_phone: str | None = None,
    customer_address: str | None = None,
    notes: str | None = None,
    due_date=None,
) -> dict:
    """
    Record a sale: write the transaction and its items, take the sold base
    quantities out of stock and, for DEBT, open the debt record.

    CASH requires paid_amount >= total_amount. change_amount is
    max(paid_amount - total_amount, 0).
    """
    header = validate_payload(
        model=Transaction,
        payload={
            "customer_name": customer_name,
            "customer_phone": customer_phone,
            "customer_address": customer_address,
            "payment_method": payment_method,
            "payment_amount": paid_amount,
            "notes": notes,
        },
        policy=TRANSACTION_CREATE_POLICY,
        partial=False,
    )
    enforce_rules_transaction(header)
    cleaned_items = _clean_items(items)
    due = _parse_when(due_date, "due_date")

    def _op():
        lines = _resolve_lines(cleaned_items)

        total = quantize_money(sum((line["subtotal"] for line in lines), Decimal("0")))
        paid = quantize_money(header["payment_amount"])
        method = header["payment_method"]

        if method == PAYMENT_CASH and paid < total:
            raise InvalidPaymentError(
                "Paid amount is less than the total for a CASH sale",
                details={"total_amount": as_number(total), "paid_amount": as_number(paid)},
            )

        now = utcnow()
        txn = Transaction(
            receipt_number=next_receipt_number(now),
            customer_name=header["customer_name"],
            customer_phone=header.get("customer_phone"),
            customer_address=header.get("customer_address"),
            payment_method=method,
            total_amount=total,
            payment_amount=paid,
            change_amount=max(paid - total, Decimal("0")),
            is_paid=paid >= total,
            status=STATUS_ACTIVE,
            notes=header.get("notes"),
            created_at=now,
        )
        db.session.add(txn)
        db.session.flush()

        for line in lines:
            unit = line["unit"]
            product = line["product"]
            txn.items.append(TransactionItem(
                product_id=product.id,
                unit_id=unit.id,
                unit_name=unit.name,
                conversion_rate=unit.conversion_rate,
                quantity=line["quantity"],
                base_quantity=line["base_quantity"],
                unit_price=line["unit_price"],
                subtotal=line["subtotal"],
            ))
            apply_stock_delta(
                product_id=product.id,
                delta=-line["base_quantity"],
                movement_type=MOVEMENT_OUT,
                reference_type=REFERENCE_TRANSACTION,
                transaction_id=txn.id,
                note=f"Sale {txn.receipt_number}",
            )

        if method == PAYMENT_DEBT:
            db.session.add(debt_service.open_debt_record(txn, min(paid, total), due_date=due))

        db.session.flush()
        return txn

    txn = run_atomic(_op)
    current_app.logger.info(
        "Transaction %s created: method=%s total=%s items=%s",
        txn.receipt_number, txn.payment_method, txn.total_amount, len(txn.items),
    )
    return txn.to_dict()


def _get_locked(transaction_id: int) -> Transaction:
    txn = lock_for_update(db.session.query(Transaction).filter_by(id=transaction_id)).first()
    if txn is None:
        raise NotFoundError(f"Transaction {transaction_id} not found")
    return txn


def cancel_transaction(transaction_id: int, reason: str | None = None) -> dict:
    """
    Cancel a sale and put its stock back.

    Stock is restored from each item's stored base_quantity, so later edits
    to a unit's conversion rate do not change what comes back. A DEBT sale
    that already received repayments cannot be cancelled.
    """
    reason = _optional_text(reason, "reason") or "Cancelled"

    def _op():
        txn = _get_locked(transaction_id)
        if txn.is_cancelled:
            raise AlreadyCancelledError(f"Transaction {txn.receipt_number} is already cancelled")

        record = txn.debt_record
        if record is not None and record.payments:
            raise HasPaymentsError(
                f"Transaction {txn.receipt_number} has debt payments and cannot be cancelled",
                details={"payments": len(record.payments)},
            )

        for item in txn.items:
            apply_stock_delta(
                product_id=item.product_id,
                delta=item.base_quantity,
                movement_type=MOVEMENT_IN,
                reference_type=REFERENCE_CANCELLATION,
                transaction_id=txn.id,
                note=f"Cancel {txn.receipt_number}",
            )

        if record is not None:
            debt_service.close_debt_record(record)

        txn.status = STATUS_CANCELLED
        txn.cancel_reason = reason
        txn.cancelled_at = utcnow()
        db.session.flush()
        return txn

    txn = run_atomic(_op)
    current_app.logger.info("Transaction %s cancelled: %s", txn.receipt_number, reason)
    return txn.to_dict()


def add_debt_payment(transaction_id: int, amount, method: str = "CASH", note: str | None = None) -> dict:
    """
    Record a repayment against a DEBT transaction.

    Checked in order: transaction exists, is a debt sale, is not cancelled,
    still has a balance, and the amount does not exceed that balance.
    """
    try:
        patch = {"amount": to_decimal(amount, field="amount"), "method": method or "CASH"}
    except ValueError as e:
        raise ValidationError(str(e))
    enforce_rules_debt_payment(patch)
    amount = quantize_money(patch["amount"])
    note = _optional_text(note, "note")

    def _op():
        txn = _get_locked(transaction_id)
        record = (
            lock_for_update(db.session.query(DebtRecord).filter_by(transaction_id=txn.id)).first()
        )
        if record is None:
            raise NotADebtTransactionError(f"Transaction {txn.receipt_number} is not a debt transaction")
        if txn.is_cancelled:
            raise AlreadyCancelledError(f"Transaction {txn.receipt_number} is cancelled")

        remaining = to_decimal(record.remaining_debt)
        if remaining <= 0:
            raise AlreadySettledError(f"Debt of {txn.receipt_number} is already settled")
        if amount > remaining:
            raise OverPaymentError(
                "Payment exceeds the remaining debt",
                details={"amount": as_number(amount), "remaining_debt": as_number(remaining)},
            )

        payment = DebtPayment(amount=amount, method=patch["method"], note=note)
        record.payments.append(payment)
        debt_service.apply_payment(record, amount)

        if record.status == DEBT_PAID:
            txn.is_paid = True
            txn.payment_amount = record.paid_amount
            txn.change_amount = max(to_decimal(record.paid_amount) - to_decimal(txn.total_amount), Decimal("0"))

        db.session.flush()
        return txn, record, payment

    txn, record, payment = run_atomic(_op)
    if record.status == DEBT_PAID:
        current_app.logger.info("Debt of %s settled", txn.receipt_number)

    return {
        "payment": payment.to_dict(),
        "debt_record": record.to_dict(),
        "transaction": txn.to_dict(include_items=False),
    }


def get_transaction(transaction_id: int) -> dict:
    txn = db.session.get(Transaction, transaction_id)
    if txn is None:
        raise NotFoundError(f"Transaction {transaction_id} not found")
    return txn.to_dict()


def get_transaction_by_receipt(receipt_number: str) -> dict:
    txn = db.session.query(Transaction).filter_by(receipt_number=receipt_number).first()
    if txn is None:
        raise NotFoundError(f"Transaction {receipt_number} not found")
    return txn.to_dict()


def list_transactions(
    *,
    page=None,
    per_page=None,
    search: str | None = None,
    payment_method: str | None = None,
    status: str | None = None,
    is_paid: bool | None = None,
    date_from=None,
    date_to=None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> dict:
    if payment_method is not None and payment_method not in PAYMENT_METHODS:
        raise ValidationError("payment_method must be CASH or DEBT")
    if status is not None and status not in (STATUS_ACTIVE, STATUS_CANCELLED):
        raise ValidationError("status must be ACTIVE or CANCELLED")
    if sort_by not in SORT_FIELDS:
        raise ValidationError(f"sort_by must be one of {', '.join(sorted(SORT_FIELDS))}")
    if sort_order not in ("asc", "desc"):
        raise ValidationError("sort_order must be asc or desc")

    q = db.session.query(Transaction)
    if search:
        term = f"%{search.strip().lower()}%"
        q = q.filter(or_(
            func.lower(Transaction.customer_name).like(term),
            func.lower(Transaction.receipt_number).like(term),
        ))
    if payment_method is not None:
        q = q.filter(Transaction.payment_method == payment_method)
    if status is not None:
        q = q.filter(Transaction.status == status)
    if is_paid is not None:
        q = q.filter(Transaction.is_paid.is_(is_paid))
    q = _filter_window(q, date_from, date_to)

    column = SORT_FIELDS[sort_by]
    q = q.order_by(column.asc() if sort_order == "asc" else column.desc(), Transaction.id.desc())
    return paginate(q, page=page, per_page=per_page)


def _filter_window(q, date_from, date_to):
    start = _parse_when(date_from, "date_from")
    end = _parse_when(date_to, "date_to")
    if start is not None:
        q = q.filter(Transaction.created_at >= start)
    if end is not None:
        q = q.filter(Transaction.created_at <= end_of_day(end))
    return q


def update_transaction(transaction_id: int, patch: dict) -> dict:
    """Edit customer details or notes; amounts and items are immutable."""
    cleaned = validate_payload(model=Transaction, payload=patch, policy=TRANSACTION_UPDATE_POLICY, partial=True)

    def _op():
        txn = _get_locked(transaction_id)
        if txn.is_cancelled:
            raise AlreadyCancelledError(f"Transaction {txn.receipt_number} is cancelled")
        for k, v in cleaned.items():
            setattr(txn, k, v)
        if txn.debt_record is not None:
            txn.debt_record.customer_name = txn.customer_name
            txn.debt_record.customer_phone = txn.customer_phone
        db.session.flush()
        return txn

    return run_atomic(_op).to_dict()


def transaction_stats(date_from=None, date_to=None) -> dict:
    """Counts and totals over a created_at window (both ends inclusive by day)."""
    def count(*criteria) -> int:
        q = _filter_window(db.session.query(func.count(Transaction.id)), date_from, date_to)
        return q.filter(*criteria).scalar() or 0

    active = Transaction.status == STATUS_ACTIVE

    total_sales = _filter_window(
        db.session.query(func.coalesce(func.sum(Transaction.total_amount), 0)).filter(active),
        date_from, date_to,
    ).scalar()

    debt_totals = _filter_window(
        db.session.query(
            func.coalesce(func.sum(DebtRecord.total_debt), 0),
            func.coalesce(func.sum(DebtRecord.paid_amount), 0),
        )
        .select_from(DebtRecord)
        .join(Transaction, DebtRecord.transaction_id == Transaction.id)
        .filter(active, DebtRecord.status != DEBT_PAID),
        date_from, date_to,
    ).one()
    total_debt = to_decimal(debt_totals[0])
    total_paid_debt = to_decimal(debt_totals[1])

    return {
        "total_transactions": count(),
        "active_transactions": count(active),
        "cancelled_transactions": count(Transaction.status == STATUS_CANCELLED),
        "cash_transactions": count(active, Transaction.payment_method == PAYMENT_CASH),
        "debt_transactions": count(active, Transaction.payment_method == PAYMENT_DEBT),
        "paid_transactions": count(active, Transaction.is_paid.is_(True)),
        "unpaid_transactions": count(active, Transaction.is_paid.is_(False)),
        "total_sales": as_number(total_sales),
        "total_debt": as_number(total_debt),
        "total_paid_debt": as_number(total_paid_debt),
        "remaining_debt": as_number(total_debt - total_paid_debt),
    }


def daily_sales(day=None) -> dict:
    """Active transactions of one UTC calendar day, newest first."""
    when = _parse_when(day, "date") or utcnow()
    start, end = day_bounds(when.date())

    transactions = (
        db.session.query(Transaction)
        .filter(
            Transaction.status == STATUS_ACTIVE,
            Transaction.created_at >= start,
            Transaction.created_at < end,
        )
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .all()
    )
    return {
        "date": start.date().isoformat(),
        "transactions": [t.to_dict() for t in transactions],
        "stats": transaction_stats(start, start),
    }
