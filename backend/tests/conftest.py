"""
Pytest fixtures for bangun-pos backend tests.

Provides the application on an in-memory database, a clean database per
test, and a small building-materials catalog (cement sold per sack or per
kg, rebar sold per rod).
"""

import pytest

from bangunpos import create_app
from bangunpos.extensions import db
from bangunpos.models import Category, Supplier
from bangunpos.services import products_service, transaction_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'WARNING',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def category(db_session):
    category = Category(name="Semen", description="Semen berbagai merk")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def supplier(db_session):
    supplier = Supplier(name="PT Semen Indonesia", contact="021-123456789", address="Jakarta Pusat")
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def cement(db_session, category, supplier):
    """40 kg cement: 25 sacks in stock, reorder at 10, sold per sak or per kg."""
    return products_service.create_product(patch={
        "sku": "SMN-TR-40",
        "name": "Semen Tiga Roda 40kg",
        "category_id": category.id,
        "supplier_id": supplier.id,
        "cost": 58000,
        "stock": 25,
        "min_stock": 10,
        "units": [
            {"name": "sak", "price": 65000, "conversion_rate": 1, "is_base_unit": True},
            {"name": "kg", "price": 1625, "conversion_rate": "0.025"},
        ],
    })


@pytest.fixture(scope='function')
def rebar(db_session, category):
    """10 mm rebar: 15 rods in stock, reorder at 5."""
    return products_service.create_product(patch={
        "sku": "BSI-BT-10",
        "name": "Besi Beton 10mm 12m",
        "category_id": category.id,
        "cost": 75000,
        "stock": 15,
        "min_stock": 5,
        "units": [
            {"name": "batang", "price": 85000, "conversion_rate": 1, "is_base_unit": True},
        ],
    })


@pytest.fixture(scope='function')
def cash_sale(cement):
    """Two sacks of cement paid in cash."""
    return transaction_service.create_transaction(
        customer_name="Pak Budi",
        payment_method="CASH",
        paid_amount=150000,
        items=[{"product_id": cement["id"], "unit_name": "sak", "quantity": 2}],
    )


@pytest.fixture(scope='function')
def debt_sale(rebar):
    """Two rods of rebar (170000) on credit, nothing paid up front."""
    return transaction_service.create_transaction(
        customer_name="Ibu Sari",
        customer_phone="0812000111",
        payment_method="DEBT",
        paid_amount=0,
        items=[{"product_id": rebar["id"], "unit_name": "batang", "quantity": 2}],
    )
