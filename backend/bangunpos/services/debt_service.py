# Overview: Debt ledger; derives balances and status of DEBT transactions.

"""
Debt Ledger

WHY: A DEBT sale leaves part of its total owed. The ledger tracks how much of
it has been repaid and derives a status from the amounts, so the status
never disagrees with the numbers.

DESIGN PRINCIPLES:
- remaining_debt = total_debt - paid_amount (never negative)
- Status is monotonic: PENDING -> PARTIAL -> PAID as payments accrue
- The only backward path is cancellation, which closes the record
  (status PAID, closed_at set) meaning "no longer owed"
- Payments are append-only DebtPayment rows; records are never deleted
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import DebtRecord, Transaction
from ..models.transactions import (
    DEBT_PAID,
    DEBT_PARTIAL,
    DEBT_PENDING,
    DEBT_STATUSES,
    STATUS_ACTIVE,
)
from ..numbers import as_number, quantize_money, to_decimal
from ..validation import ValidationError
from bangunpos.time_utils import utcnow


def derive_debt_status(total_debt, paid_amount, *, has_payments: bool = False) -> str:
    """
    PAID once paid_amount covers total_debt; PARTIAL once any repayment has
    been recorded; PENDING otherwise (including a down payment at sale time).
    """
    total_debt = to_decimal(total_debt, field="total_debt")
    paid_amount = to_decimal(paid_amount, field="paid_amount")
    if paid_amount >= total_debt:
        return DEBT_PAID
    if has_payments:
        return DEBT_PARTIAL
    return DEBT_PENDING


def remaining_of(total_debt, paid_amount) -> Decimal:
    remaining = to_decimal(total_debt) - to_decimal(paid_amount)
    return quantize_money(max(remaining, Decimal("0")))


def open_debt_record(transaction: Transaction, paid_amount, *, due_date=None) -> DebtRecord:
    """Build the DebtRecord of a new DEBT transaction (not flushed)."""
    total = quantize_money(transaction.total_amount)
    paid = quantize_money(paid_amount)
    return DebtRecord(
        transaction=transaction,
        customer_name=transaction.customer_name,
        customer_phone=transaction.customer_phone,
        total_debt=total,
        paid_amount=paid,
        remaining_debt=remaining_of(total, paid),
        status=derive_debt_status(total, paid),
        due_date=due_date,
    )


def apply_payment(record: DebtRecord, amount) -> DebtRecord:
    """
    Fold one repayment into the record's amounts and status.

    Callers validate the amount against the remaining balance first.
    """
    amount = quantize_money(amount)
    record.paid_amount = quantize_money(to_decimal(record.paid_amount) + amount)
    record.remaining_debt = remaining_of(record.total_debt, record.paid_amount)
    record.status = derive_debt_status(record.total_debt, record.paid_amount, has_payments=True)
    return record


def close_debt_record(record: DebtRecord) -> DebtRecord:
    """Cancellation: nothing is owed any more."""
    record.status = DEBT_PAID
    record.closed_at = utcnow()
    return record


def _open_debts_query():
    return (
        db.session.query(DebtRecord)
        .join(Transaction, DebtRecord.transaction_id == Transaction.id)
        .filter(Transaction.status == STATUS_ACTIVE)
    )


def list_debts(
    *,
    status: str | None = None,
    customer: str | None = None,
    include_closed: bool = False,
) -> list[dict]:
    if status is not None and status not in DEBT_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(DEBT_STATUSES)}")

    q = db.session.query(DebtRecord) if include_closed else _open_debts_query()
    if status is not None:
        q = q.filter(DebtRecord.status == status)
    if customer:
        q = q.filter(func.lower(DebtRecord.customer_name).contains(customer.strip().lower()))

    records = q.order_by(DebtRecord.created_at.desc(), DebtRecord.id.desc()).all()
    return [r.to_dict() for r in records]


def customer_debts(name: str) -> dict:
    """Outstanding debts of one customer (case-insensitive exact name)."""
    if not name or not name.strip():
        raise ValidationError("customer name is required")

    records = (
        _open_debts_query()
        .filter(func.lower(DebtRecord.customer_name) == name.strip().lower())
        .order_by(DebtRecord.created_at.asc(), DebtRecord.id.asc())
        .all()
    )
    outstanding = sum((to_decimal(r.remaining_debt) for r in records), Decimal("0"))
    return {
        "customer_name": name.strip(),
        "debts": [r.to_dict() for r in records],
        "count": len(records),
        "total_remaining": as_number(outstanding),
    }


def debt_summary(as_of=None) -> dict:
    """Totals over open (non-cancelled, unsettled) debts."""
    as_of = as_of or utcnow()
    records = _open_debts_query().filter(DebtRecord.status != DEBT_PAID).all()

    total_debt = Decimal("0")
    total_paid = Decimal("0")
    total_remaining = Decimal("0")
    overdue = Decimal("0")
    customers: set[str] = set()
    for r in records:
        total_debt += to_decimal(r.total_debt)
        total_paid += to_decimal(r.paid_amount)
        total_remaining += to_decimal(r.remaining_debt)
        customers.add(r.customer_name.strip().lower())
        if r.due_date is not None and r.due_date < as_of:
            overdue += to_decimal(r.remaining_debt)

    return {
        "open_records": len(records),
        "total_customers": len(customers),
        "total_debt": as_number(total_debt),
        "total_paid": as_number(total_paid),
        "total_remaining": as_number(total_remaining),
        "overdue_debt": as_number(overdue),
    }
