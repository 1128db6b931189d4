"""
Stock ledger tests.

Every stock change must leave exactly one StockMovement whose stock_after
matches the product, and stock may never go below zero.
"""

from decimal import Decimal

import pytest

from bangunpos.errors import InsufficientStockError, InvalidStateError, NotFoundError
from bangunpos.models import Product, StockMovement
from bangunpos.services import stock_service
from bangunpos.services.stock_service import (
    apply_stock_delta,
    is_low_stock,
    low_stock_urgency,
    stock_status,
)
from bangunpos.validation import ValidationError


class TestStockStatus:

    @pytest.mark.parametrize("stock,min_stock,expected", [
        (25, 10, "NORMAL"),
        (15, 10, "LOW"),
        (20, 10, "LOW"),
        (8, 10, "CRITICAL"),
        (10, 10, "CRITICAL"),
        (0, 0, "CRITICAL"),
        (3, 0, "NORMAL"),
    ])
    def test_status_thresholds(self, stock, min_stock, expected):
        assert stock_status(stock, min_stock) == expected

    def test_is_low_stock_at_threshold(self):
        assert is_low_stock(10, 10)
        assert not is_low_stock(11, 10)

    @pytest.mark.parametrize("stock,min_stock,expected", [
        (0, 10, "CRITICAL"),
        (4, 10, "HIGH"),
        (5, 10, "HIGH"),
        (8, 10, "MEDIUM"),
    ])
    def test_urgency(self, stock, min_stock, expected):
        assert low_stock_urgency(stock, min_stock) == expected


class TestApplyStockDelta:

    def test_initial_stock_is_logged(self, db_session, cement):
        movements = db_session.query(StockMovement).filter_by(product_id=cement["id"]).all()

        assert len(movements) == 1
        assert movements[0].type == "IN"
        assert movements[0].reference_type == "INITIAL"
        assert movements[0].quantity == Decimal("25")
        assert movements[0].stock_after == Decimal("25")

    def test_delta_writes_one_movement(self, db_session, cement):
        movement = apply_stock_delta(product_id=cement["id"], delta=Decimal("-2.5"), movement_type="OUT")
        db_session.commit()

        product = db_session.get(Product, cement["id"])
        assert product.stock == Decimal("22.5")
        assert movement.quantity == Decimal("-2.5")
        assert movement.stock_after == Decimal("22.5")
        assert product.version_id == cement["version_id"] + 1

    def test_cannot_go_negative(self, db_session, cement):
        with pytest.raises(InsufficientStockError) as exc:
            apply_stock_delta(product_id=cement["id"], delta=-26, movement_type="OUT")
        db_session.rollback()

        assert exc.value.details["available"] == 25
        assert exc.value.details["requested"] == 26
        assert db_session.get(Product, cement["id"]).stock == Decimal("25")

    def test_zero_delta_rejected(self, db_session, cement):
        with pytest.raises(ValidationError):
            apply_stock_delta(product_id=cement["id"], delta=0, movement_type="ADJUSTMENT")

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFoundError):
            apply_stock_delta(product_id=999, delta=1, movement_type="IN")


class TestAdjustStock:

    def test_in_adds(self, db_session, cement):
        result = stock_service.adjust_stock(product_id=cement["id"], quantity=10, movement_type="IN", note="Restock")

        assert result["previous_stock"] == 25
        assert result["new_stock"] == 35
        assert result["movement"]["quantity"] == 10
        assert result["movement"]["note"] == "Restock"
        assert result["movement"]["reference_type"] == "MANUAL"

    def test_out_is_entered_positive(self, db_session, cement):
        result = stock_service.adjust_stock(product_id=cement["id"], quantity=5, movement_type="OUT")

        assert result["new_stock"] == 20
        assert result["movement"]["quantity"] == -5

    def test_signed_adjustment(self, db_session, cement):
        result = stock_service.adjust_stock(product_id=cement["id"], quantity="-17", movement_type="ADJUSTMENT")

        assert result["new_stock"] == 8
        assert result["stock_status"] == "CRITICAL"

    def test_adjustment_below_zero_rejected(self, db_session, cement):
        with pytest.raises(InvalidStateError):
            stock_service.adjust_stock(product_id=cement["id"], quantity=-30, movement_type="ADJUSTMENT")

        product = db_session.get(Product, cement["id"])
        assert product.stock == Decimal("25")
        assert db_session.query(StockMovement).filter_by(product_id=cement["id"]).count() == 1

    def test_bad_quantity(self, db_session, cement):
        with pytest.raises(ValidationError):
            stock_service.adjust_stock(product_id=cement["id"], quantity="lots", movement_type="IN")
        with pytest.raises(ValidationError):
            stock_service.adjust_stock(product_id=cement["id"], quantity=0, movement_type="IN")

    @pytest.mark.parametrize("movement_type", ["IN", "OUT"])
    def test_negative_in_or_out_rejected(self, db_session, cement, movement_type):
        with pytest.raises(ValidationError):
            stock_service.adjust_stock(product_id=cement["id"], quantity=-5, movement_type=movement_type)

        product = db_session.get(Product, cement["id"])
        assert product.stock == Decimal("25")
        assert db_session.query(StockMovement).filter_by(product_id=cement["id"]).count() == 1

    def test_bad_type(self, db_session, cement):
        with pytest.raises(ValidationError):
            stock_service.adjust_stock(product_id=cement["id"], quantity=1, movement_type="TRANSFER")

    def test_missing_product(self, db_session):
        with pytest.raises(NotFoundError):
            stock_service.adjust_stock(product_id=12345, quantity=1, movement_type="IN")


class TestLowStock:

    def test_lists_only_products_at_or_below_min(self, db_session, cement, rebar):
        stock_service.adjust_stock(product_id=cement["id"], quantity=-17, movement_type="ADJUSTMENT")

        rows = stock_service.list_low_stock_products()

        assert [r["sku"] for r in rows] == ["SMN-TR-40"]
        assert rows[0]["stock"] == 8
        assert rows[0]["urgency_level"] == "MEDIUM"
        assert stock_service.count_low_stock_products() == 1

    def test_report_counts_and_values(self, db_session, cement, rebar):
        report = stock_service.stock_report()

        assert report["count"] == 2
        assert report["status_counts"] == {"NORMAL": 2, "LOW": 0, "CRITICAL": 0}
        # 25 * 58000 + 15 * 75000
        assert report["total_stock_value"] == 2575000

    def test_movement_filters(self, db_session, cement, rebar):
        stock_service.adjust_stock(product_id=cement["id"], quantity=3, movement_type="OUT")

        outs = stock_service.list_stock_movements(product_id=cement["id"], movement_type="OUT")
        assert len(outs) == 1
        assert outs[0].quantity == Decimal("-3")

        with pytest.raises(NotFoundError):
            stock_service.list_stock_movements(product_id=999)
        with pytest.raises(ValidationError):
            stock_service.list_stock_movements(movement_type="SIDEWAYS")
