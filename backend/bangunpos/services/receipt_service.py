# Overview: Receipt number allocation backed by a per-day counter row.

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import ReceiptSequence
from bangunpos.time_utils import compact_date, utcnow


RECEIPT_PAD = 6


class ReceiptSequenceError(Exception):
    """Raised when the receipt counter cannot be advanced."""
    pass


def format_receipt_number(day: str, number: int, prefix: str = "TXN") -> str:
    """TXN-YYYYMMDD-XXXXXX"""
    return f"{prefix}-{day}-{number:0{RECEIPT_PAD}d}"


def _current_number(day: str) -> int:
    current = (
        db.session.query(ReceiptSequence.next_number)
        .filter_by(day=day)
        .scalar()
    )
    return current - 1


def next_receipt_number(now: datetime | None = None) -> str:
    """
    Atomically allocate the next receipt number for the (UTC) day of `now`.

    Runs inside the caller's unit of work and does not commit. The counter
    is advanced with a single UPDATE ... SET next_number = next_number + 1,
    which the datastore serializes per row.
    """
    day = compact_date(now or utcnow())
    prefix = current_app.config.get("RECEIPT_PREFIX", "TXN")

    if not day:
        raise ReceiptSequenceError("day is required")

    stmt = (
        update(ReceiptSequence)
        .where(ReceiptSequence.day == day)
        .values(next_number=ReceiptSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        db.session.flush()
        return format_receipt_number(day, _current_number(day), prefix)

    try:
        with db.session.begin_nested():
            db.session.add(ReceiptSequence(day=day, next_number=2))
    except IntegrityError:
        # Another writer created today's row first; take the next number from it
        result = db.session.execute(stmt)
        if not result.rowcount:
            raise ReceiptSequenceError(f"Receipt sequence for {day} could not be advanced")
        db.session.flush()
        return format_receipt_number(day, _current_number(day), prefix)

    return format_receipt_number(day, 1, prefix)
