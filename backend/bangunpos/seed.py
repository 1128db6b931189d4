# Overview: Demo catalog and sample sales for a fresh building-materials store.

from __future__ import annotations

from datetime import timedelta

from .extensions import db
from .models import Category, Product, Supplier, Transaction
from .services.products_service import create_product
from .services.transaction_service import create_transaction
from bangunpos.time_utils import utcnow

CATEGORIES = [
    ("Semen", "Semen berbagai merk dan ukuran"),
    ("Besi", "Besi beton, besi hollow, dan besi lainnya"),
    ("Cat", "Cat tembok, cat kayu, dan cat besi"),
    ("Hardware", "Paku, sekrup, dan peralatan kecil lainnya"),
    ("Kawat", "Kawat berbagai ukuran dan jenis"),
    ("Peralatan", "Peralatan konstruksi dan tools"),
]

SUPPLIERS = [
    ("PT Semen Indonesia", "021-123456789", "Jakarta Pusat"),
    ("CV Logam Jaya", "021-987654321", "Bekasi"),
    ("UD Besi Kuat", "021-555666777", "Tangerang"),
    ("Toko Cat Indah", "021-444333222", "Depok"),
]

# (sku, name, category, supplier, cost, stock, min_stock, description, units)
PRODUCTS = [
    ("SMN-TR-40", "Semen Tiga Roda 40kg", "Semen", "PT Semen Indonesia", 58000, 25, 10,
     "Semen berkualitas tinggi untuk konstruksi",
     [("sak", 65000, 1, True), ("kg", 1625, "0.025", False)]),
    ("BSI-BT-10", "Besi Beton 10mm 12m", "Besi", "CV Logam Jaya", 75000, 15, 5,
     "Besi beton ulir diameter 10mm panjang 12 meter",
     [("batang", 85000, 1, True)]),
    ("CAT-DLX-5", "Cat Tembok Dulux 5kg", "Cat", "Toko Cat Indah", 165000, 8, 3,
     "Cat tembok berkualitas tinggi tahan lama",
     [("kaleng", 185000, 1, True)]),
    ("PAK-5CM", "Paku 5cm", "Hardware", "UD Besi Kuat", 20000, 12, 3,
     "Paku besi galvanis panjang 5cm",
     [("kg", 25000, 1, True), ("1/4 kg", 6500, "0.25", False), ("1/2 kg", 13000, "0.5", False)]),
    ("KWT-BWG16", "Kawat BWG 16", "Kawat", "UD Besi Kuat", 32000, 20, 5,
     "Kawat besi galvanis BWG 16",
     [("kg", 35000, 1, True)]),
    ("KUS-3IN", "Kuas Cat 3 inch", "Peralatan", "Toko Cat Indah", 12000, 30, 10,
     "Kuas cat berkualitas bulu halus",
     [("buah", 15000, 1, True)]),
]


def seed_demo_data(*, with_transactions: bool = True) -> dict:
    """
    Idempotent: categories and suppliers are matched by name, products by
    SKU, and sample sales are only written into an empty transactions table.
    """
    created = {"categories": 0, "suppliers": 0, "products": 0, "transactions": 0}

    categories = {}
    for name, description in CATEGORIES:
        category = db.session.query(Category).filter_by(name=name).first()
        if category is None:
            category = Category(name=name, description=description)
            db.session.add(category)
            created["categories"] += 1
        categories[name] = category

    suppliers = {}
    for name, contact, address in SUPPLIERS:
        supplier = db.session.query(Supplier).filter_by(name=name).first()
        if supplier is None:
            supplier = Supplier(name=name, contact=contact, address=address)
            db.session.add(supplier)
            created["suppliers"] += 1
        suppliers[name] = supplier

    db.session.commit()

    products = {}
    for sku, name, category, supplier, cost, stock, min_stock, description, units in PRODUCTS:
        product = db.session.query(Product).filter_by(sku=sku).first()
        if product is None:
            data = create_product(patch={
                "sku": sku,
                "name": name,
                "description": description,
                "category_id": categories[category].id,
                "supplier_id": suppliers[supplier].id,
                "cost": cost,
                "stock": stock,
                "min_stock": min_stock,
                "units": [
                    {"name": u, "price": price, "conversion_rate": rate, "is_base_unit": base}
                    for u, price, rate, base in units
                ],
            })
            product = db.session.get(Product, data["id"])
            created["products"] += 1
        products[sku] = product

    if with_transactions and db.session.query(Transaction.id).first() is None:
        create_transaction(
            customer_name="Pak Budi",
            customer_address="Jl. Merdeka No. 123",
            payment_method="CASH",
            paid_amount=150000,
            items=[
                {"product_id": products["SMN-TR-40"].id, "unit_name": "sak", "quantity": 2},
                {"product_id": products["KUS-3IN"].id, "unit_name": "buah", "quantity": 1},
            ],
        )
        create_transaction(
            customer_name="Ibu Sari",
            customer_address="Jl. Sudirman No. 45",
            payment_method="DEBT",
            paid_amount=100000,
            due_date=utcnow() + timedelta(days=30),
            items=[
                {"product_id": products["BSI-BT-10"].id, "unit_name": "batang", "quantity": 3},
                {"product_id": products["KUS-3IN"].id, "unit_name": "buah", "quantity": 1},
            ],
        )
        created["transactions"] += 2

    return created
