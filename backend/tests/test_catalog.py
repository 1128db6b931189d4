"""Categories, suppliers and products."""

from decimal import Decimal

import pytest

from bangunpos.errors import ConflictError, InvalidStateError, NotFoundError
from bangunpos.models import Product, ProductUnit, StockMovement
from bangunpos.services import (
    category_service,
    products_service,
    supplier_service,
    transaction_service,
)
from bangunpos.validation import ValidationError


def _product_patch(category_id, **overrides):
    patch = {
        "sku": "CAT-DLX-5",
        "name": "Cat Tembok Dulux 5kg",
        "category_id": category_id,
        "cost": 165000,
        "stock": 8,
        "min_stock": 3,
        "units": [{"name": "kaleng", "price": 185000, "conversion_rate": 1, "is_base_unit": True}],
    }
    patch.update(overrides)
    return patch


class TestCategories:

    def test_create_and_list(self, db_session, cement):
        created = category_service.create_category(patch={"name": "Besi", "description": "Besi beton"})

        rows = category_service.list_categories()
        assert [r["name"] for r in rows] == ["Besi", "Semen"]
        assert {r["name"]: r["product_count"] for r in rows} == {"Besi": 0, "Semen": 1}
        assert created["description"] == "Besi beton"

    def test_name_unique_case_insensitive(self, db_session, category):
        with pytest.raises(ConflictError):
            category_service.create_category(patch={"name": "semen"})

    def test_name_required(self, db_session):
        with pytest.raises(ValidationError):
            category_service.create_category(patch={"name": "  "})

    def test_get_includes_products(self, db_session, category, cement):
        data = category_service.get_category(category.id)
        assert data["product_count"] == 1
        assert data["products"][0]["sku"] == "SMN-TR-40"

    def test_update(self, db_session, category):
        updated = category_service.update_category(category_id=category.id, patch={"name": "Semen & Mortar"})
        assert updated["name"] == "Semen & Mortar"

        other = category_service.create_category(patch={"name": "Cat"})
        with pytest.raises(ConflictError):
            category_service.update_category(category_id=other["id"], patch={"name": "SEMEN & MORTAR"})

    def test_delete_blocked_while_in_use(self, db_session, category, cement):
        with pytest.raises(InvalidStateError) as exc:
            category_service.delete_category(category.id)
        assert exc.value.details == {"product_count": 1}

    def test_delete_empty(self, db_session):
        created = category_service.create_category(patch={"name": "Kawat"})
        category_service.delete_category(created["id"])

        with pytest.raises(NotFoundError):
            category_service.get_category(created["id"])


class TestSuppliers:

    def test_crud(self, db_session):
        created = supplier_service.create_supplier(patch={"name": "CV Logam Jaya", "contact": "021-987654321"})
        supplier_service.create_supplier(patch={"name": "UD Besi Kuat"})

        assert [s["name"] for s in supplier_service.list_suppliers()] == ["CV Logam Jaya", "UD Besi Kuat"]
        assert [s["name"] for s in supplier_service.list_suppliers(search="9876")] == ["CV Logam Jaya"]

        updated = supplier_service.update_supplier(supplier_id=created["id"], patch={"address": "Bekasi"})
        assert updated["address"] == "Bekasi"

        supplier_service.delete_supplier(created["id"])
        with pytest.raises(NotFoundError):
            supplier_service.get_supplier(created["id"])

    def test_name_required(self, db_session):
        with pytest.raises(ValidationError):
            supplier_service.create_supplier(patch={"contact": "021"})

    def test_delete_blocked_while_supplying(self, db_session, supplier, cement):
        assert supplier_service.get_supplier(supplier.id)["product_count"] == 1

        with pytest.raises(InvalidStateError):
            supplier_service.delete_supplier(supplier.id)


class TestCreateProduct:

    def test_base_unit_taken_from_units(self, db_session, cement):
        assert cement["base_unit"] == "sak"
        assert cement["stock"] == 25
        assert cement["stock_status"] == "NORMAL"
        assert cement["has_transactions"] is False
        assert [(u["name"], u["conversion_rate"], u["is_base_unit"]) for u in cement["units"]] == [
            ("sak", 1, True),
            ("kg", 0.025, False),
        ]

    def test_zero_stock_writes_no_movement(self, db_session, category):
        created = products_service.create_product(patch=_product_patch(category.id, stock=0))

        assert created["stock"] == 0
        assert db_session.query(StockMovement).filter_by(product_id=created["id"]).count() == 0

    def test_duplicate_sku(self, db_session, category, cement):
        with pytest.raises(ConflictError):
            products_service.create_product(patch=_product_patch(category.id, sku="SMN-TR-40"))
        assert db_session.query(Product).count() == 1

    def test_unknown_category(self, db_session, category):
        with pytest.raises(NotFoundError):
            products_service.create_product(patch=_product_patch(category.id + 100))

    @pytest.mark.parametrize("units", [
        [],
        [{"name": "kaleng", "price": 185000, "conversion_rate": 1}],
        [
            {"name": "kaleng", "price": 185000, "conversion_rate": 1, "is_base_unit": True},
            {"name": "dus", "price": 700000, "conversion_rate": 4, "is_base_unit": True},
        ],
        [{"name": "kaleng", "price": 185000, "conversion_rate": 2, "is_base_unit": True}],
        [{"name": "kaleng", "price": 0, "conversion_rate": 1, "is_base_unit": True}],
        [
            {"name": "kaleng", "price": 185000, "conversion_rate": 1, "is_base_unit": True},
            {"name": "kaleng", "price": 185000, "conversion_rate": 1},
        ],
    ])
    def test_invalid_units(self, db_session, category, units):
        with pytest.raises(ValidationError):
            products_service.create_product(patch=_product_patch(category.id, units=units))

    def test_base_unit_must_match_base_row(self, db_session, category):
        with pytest.raises(ValidationError):
            products_service.create_product(patch=_product_patch(category.id, base_unit="liter"))

    def test_negative_numbers_rejected(self, db_session, category):
        with pytest.raises(ValidationError):
            products_service.create_product(patch=_product_patch(category.id, stock=-1))
        with pytest.raises(ValidationError):
            products_service.create_product(patch=_product_patch(category.id, cost=-1))


class TestUpdateProduct:

    def test_rename_and_reprice(self, db_session, cement):
        updated = products_service.update_product(product_id=cement["id"], patch={
            "name": "Semen Tiga Roda 40 kg",
            "min_stock": 30,
            "units": [
                {"name": "sak", "price": 66000, "conversion_rate": 1, "is_base_unit": True},
                {"name": "kg", "price": 1650, "conversion_rate": "0.025"},
            ],
        })

        assert updated["name"] == "Semen Tiga Roda 40 kg"
        assert updated["stock_status"] == "CRITICAL"
        assert {u["name"]: u["price"] for u in updated["units"]} == {"sak": 66000, "kg": 1650}
        assert updated["version_id"] > cement["version_id"]

    def test_stock_is_not_editable(self, db_session, cement):
        with pytest.raises(ValidationError):
            products_service.update_product(product_id=cement["id"], patch={"stock": 99})

    def test_base_unit_needs_units(self, db_session, cement):
        with pytest.raises(ValidationError):
            products_service.update_product(product_id=cement["id"], patch={"base_unit": "kg"})

    def test_sku_change_before_sale(self, db_session, cement):
        updated = products_service.update_product(product_id=cement["id"], patch={"sku": "SMN-TR-40B"})
        assert updated["sku"] == "SMN-TR-40B"

    def test_sku_frozen_after_sale(self, db_session, cement, cash_sale):
        with pytest.raises(InvalidStateError):
            products_service.update_product(product_id=cement["id"], patch={"sku": "SMN-NEW"})

    def test_sku_conflict(self, db_session, cement, rebar):
        with pytest.raises(ConflictError):
            products_service.update_product(product_id=rebar["id"], patch={"sku": "SMN-TR-40"})

    def test_unsold_unit_can_be_removed(self, db_session, cement, cash_sale):
        updated = products_service.update_product(product_id=cement["id"], patch={"units": [
            {"name": "sak", "price": 65000, "conversion_rate": 1, "is_base_unit": True},
        ]})

        assert [u["name"] for u in updated["units"]] == ["sak"]
        assert db_session.query(ProductUnit).filter_by(product_id=cement["id"]).count() == 1

    def test_sold_unit_cannot_be_removed(self, db_session, cement):
        transaction_service.create_transaction(
            customer_name="Pak Budi",
            payment_method="CASH",
            paid_amount=1625,
            items=[{"product_id": cement["id"], "unit_name": "kg", "quantity": 1}],
        )

        with pytest.raises(InvalidStateError):
            products_service.update_product(product_id=cement["id"], patch={"units": [
                {"name": "sak", "price": 65000, "conversion_rate": 1, "is_base_unit": True},
            ]})

    def test_missing_product(self, db_session):
        with pytest.raises(NotFoundError):
            products_service.update_product(product_id=999, patch={"name": "x"})


class TestDeleteProduct:

    def test_delete_unsold(self, db_session, cement):
        products_service.delete_product(cement["id"])

        assert db_session.query(Product).count() == 0
        assert db_session.query(ProductUnit).count() == 0
        assert db_session.query(StockMovement).count() == 0

    def test_delete_blocked_after_sale(self, db_session, cement, cash_sale):
        with pytest.raises(InvalidStateError):
            products_service.delete_product(cement["id"])
        assert db_session.query(Product).count() == 1


class TestProductQueries:

    def test_get_product_has_recent_movements(self, db_session, cement, cash_sale):
        data = products_service.get_product(cement["id"])

        assert data["stock"] == 23
        assert data["has_transactions"] is True
        assert [m["reference_type"] for m in data["recent_movements"]] == ["TRANSACTION", "INITIAL"]

    def test_list_search_and_filters(self, db_session, cement, rebar, supplier):
        assert products_service.list_products()["pagination"]["total"] == 2
        assert [p["sku"] for p in products_service.list_products(search="semen")["items"]] == ["SMN-TR-40"]
        assert [p["sku"] for p in products_service.list_products(supplier_id=supplier.id)["items"]] == ["SMN-TR-40"]
        assert products_service.list_products(low_stock=True)["count"] == 0

        by_stock = products_service.list_products(sort_by="stock", sort_order="desc")["items"]
        assert [p["sku"] for p in by_stock] == ["SMN-TR-40", "BSI-BT-10"]

        with pytest.raises(ValidationError):
            products_service.list_products(sort_by="color")

    def test_stats(self, db_session, cement, rebar):
        stats = products_service.product_stats()

        assert stats["total_products"] == 2
        assert stats["low_stock_count"] == 0
        assert stats["out_of_stock_count"] == 0
        assert stats["total_stock"] == 40
        assert stats["total_stock_value"] == 2575000
        assert stats["categories"][0]["product_count"] == 2
