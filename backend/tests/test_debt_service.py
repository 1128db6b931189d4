"""Debt ledger: status derivation, listings and summaries."""

from datetime import timedelta

import pytest

from bangunpos.services import debt_service, transaction_service
from bangunpos.services.debt_service import derive_debt_status, remaining_of
from bangunpos.time_utils import utcnow
from bangunpos.validation import ValidationError


def _debt(product, quantity, customer, *, paid=0, due_date=None):
    return transaction_service.create_transaction(
        customer_name=customer,
        payment_method="DEBT",
        paid_amount=paid,
        due_date=due_date,
        items=[{"product_id": product["id"], "unit_name": "batang", "quantity": quantity}],
    )


class TestDeriveStatus:

    @pytest.mark.parametrize("total,paid,has_payments,expected", [
        (200, 0, False, "PENDING"),
        (200, 50, False, "PENDING"),
        (200, 50, True, "PARTIAL"),
        (200, 200, True, "PAID"),
        (200, 250, False, "PAID"),
    ])
    def test_status(self, total, paid, has_payments, expected):
        assert derive_debt_status(total, paid, has_payments=has_payments) == expected

    def test_remaining_never_negative(self):
        assert remaining_of(200, 250) == 0
        assert remaining_of("170000", "300") == 169700


class TestListings:

    def test_list_and_filter(self, db_session, rebar, debt_sale):
        second = _debt(rebar, 1, "Pak Joko")
        transaction_service.add_debt_payment(second["id"], 5000)

        assert len(debt_service.list_debts()) == 2
        partial = debt_service.list_debts(status="PARTIAL")
        assert [d["customer_name"] for d in partial] == ["Pak Joko"]
        assert [d["customer_name"] for d in debt_service.list_debts(customer="sari")] == ["Ibu Sari"]

        with pytest.raises(ValidationError):
            debt_service.list_debts(status="OVERDUE")

    def test_cancelled_debts_hidden_unless_asked(self, db_session, debt_sale):
        transaction_service.cancel_transaction(debt_sale["id"])

        assert debt_service.list_debts() == []
        closed = debt_service.list_debts(include_closed=True)
        assert len(closed) == 1
        assert closed[0]["is_closed"] is True

    def test_customer_debts(self, db_session, rebar, debt_sale):
        _debt(rebar, 1, "ibu sari")
        _debt(rebar, 1, "Pak Joko")

        result = debt_service.customer_debts("Ibu Sari")

        assert result["count"] == 2
        assert result["total_remaining"] == 255000
        assert debt_service.customer_debts("Nobody")["count"] == 0
        with pytest.raises(ValidationError):
            debt_service.customer_debts("  ")


class TestSummary:

    def test_totals_and_overdue(self, db_session, rebar, debt_sale):
        _debt(rebar, 1, "Pak Joko", paid=5000, due_date=(utcnow() - timedelta(days=3)).isoformat())

        summary = debt_service.debt_summary()

        assert summary["open_records"] == 2
        assert summary["total_customers"] == 2
        assert summary["total_debt"] == 255000
        assert summary["total_paid"] == 5000
        assert summary["total_remaining"] == 250000
        assert summary["overdue_debt"] == 80000

    def test_settled_debts_drop_out(self, db_session, debt_sale):
        transaction_service.add_debt_payment(debt_sale["id"], 170000)

        summary = debt_service.debt_summary()
        assert summary["open_records"] == 0
        assert summary["total_remaining"] == 0
