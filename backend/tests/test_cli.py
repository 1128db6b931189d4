from bangunpos.models import Category, DebtRecord, Product, Transaction


def test_seed_is_idempotent(app, db_session):
    runner = app.test_cli_runner()

    first = runner.invoke(args=["system", "seed"])
    assert first.exit_code == 0, first.output
    assert "products: 6 created" in first.output
    assert "transactions: 2 created" in first.output

    second = runner.invoke(args=["system", "seed"])
    assert second.exit_code == 0, second.output
    assert "products: 0 created" in second.output
    assert "transactions: 0 created" in second.output

    db_session.expire_all()
    assert db_session.query(Category).count() == 6
    assert db_session.query(Product).count() == 6
    assert db_session.query(Transaction).count() == 2
    record = db_session.query(DebtRecord).one()
    assert record.customer_name == "Ibu Sari"
    assert record.remaining_debt == 170000


def test_seed_catalog_only(app, db_session):
    result = app.test_cli_runner().invoke(args=["system", "seed", "--no-transactions"])

    assert result.exit_code == 0, result.output
    db_session.expire_all()
    assert db_session.query(Transaction).count() == 0
    semen = db_session.query(Product).filter_by(sku="SMN-TR-40").one()
    assert semen.stock == 25
    assert [u.name for u in semen.units] == ["sak", "kg"]


def test_stock_low(app, db_session, cement):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["stock", "low"])
    assert "No low stock products." in result.output

    runner.invoke(args=["stock", "adjust", "--product-id", str(cement["id"]), "--quantity=-20"])
    result = runner.invoke(args=["stock", "low"])
    assert "SMN-TR-40" in result.output
    assert "1 product(s) need restocking." in result.output


def test_stock_adjust(app, db_session, cement):
    runner = app.test_cli_runner()

    result = runner.invoke(args=[
        "stock", "adjust", "--product-id", str(cement["id"]), "--type", "IN", "--quantity", "5",
    ])
    assert result.exit_code == 0, result.output
    assert "SMN-TR-40: 25 -> 30 sak" in result.output

    refused = runner.invoke(args=[
        "stock", "adjust", "--product-id", str(cement["id"]), "--type", "OUT", "--quantity", "31",
    ])
    assert refused.exit_code != 0
    assert "Stock would become negative" in refused.output


def test_stock_adjust_rejects_negative_in(app, db_session, cement):
    result = app.test_cli_runner().invoke(args=[
        "stock", "adjust", "--product-id", str(cement["id"]), "--type", "IN", "--quantity=-5",
    ])

    assert result.exit_code != 0
    assert "quantity must be > 0 for IN" in result.output
    db_session.expire_all()
    assert db_session.get(Product, cement["id"]).stock == 25


def test_debts_summary(app, db_session, debt_sale):
    result = app.test_cli_runner().invoke(args=["debts", "summary"])

    assert result.exit_code == 0, result.output
    assert "Outstanding:     Rp 170.000" in result.output
    assert "Customers:       1" in result.output
