from __future__ import annotations

from ..extensions import db
from bangunpos.time_utils import to_utc_z


class ReceiptSequence(db.Model):
    """
    Per-day receipt counter.

    Incremented with a single UPDATE so concurrent sales on the same day never
    draw the same number.
    """
    __tablename__ = "receipt_sequences"
    __table_args__ = (
        db.UniqueConstraint("day", name="uq_receipt_sequences_day"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    day = db.Column(db.String(8), nullable=False)  # YYYYMMDD (UTC)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "day": self.day,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
