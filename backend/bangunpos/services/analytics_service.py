# Overview: Service-layer operations for analytics; dashboard, sales, product and revenue reports.

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import case, func

from bangunpos.extensions import db
from bangunpos.models import Category, Product, Transaction, TransactionItem
from bangunpos.models.transactions import PAYMENT_CASH, PAYMENT_DEBT, STATUS_ACTIVE
from bangunpos.numbers import as_number, to_decimal
from bangunpos.services.debt_service import debt_summary
from bangunpos.services.stock_service import count_low_stock_products
from bangunpos.time_utils import day_bounds, end_of_day, parse_iso_datetime, to_utc_z, utcnow
from bangunpos.validation import ValidationError


def _parse_range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    try:
        start_dt = parse_iso_datetime(start) if start else None
        end_dt = parse_iso_datetime(end) if end else None
    except ValueError:
        raise ValidationError("start and end must be ISO-8601 dates")
    if end_dt is not None and end_dt.time() == datetime.min.time():
        end_dt = end_of_day(end_dt)
    return start_dt, end_dt


def _window(query, start_dt, end_dt):
    query = query.filter(Transaction.status == STATUS_ACTIVE)
    if start_dt:
        query = query.filter(Transaction.created_at >= start_dt)
    if end_dt:
        query = query.filter(Transaction.created_at <= end_dt)
    return query


def _range_payload(start_dt, end_dt) -> dict:
    return {
        "start": to_utc_z(start_dt) if start_dt else None,
        "end": to_utc_z(end_dt) if end_dt else None,
    }


def dashboard(now: datetime | None = None) -> dict:
    """Today's sales at a glance plus stock and debt alerts."""
    start, end = day_bounds((now or utcnow()).date())

    count, total = (
        db.session.query(
            func.count(Transaction.id),
            func.coalesce(func.sum(Transaction.total_amount), 0),
        )
        .filter(
            Transaction.status == STATUS_ACTIVE,
            Transaction.created_at >= start,
            Transaction.created_at < end,
        )
        .one()
    )
    total = to_decimal(total)
    average = (total / count).quantize(Decimal("0.01")) if count else Decimal("0")
    debts = debt_summary()

    return {
        "date": start.date().isoformat(),
        "today": {
            "total_sales": as_number(total),
            "transactions": int(count or 0),
            "average_transaction": as_number(average),
        },
        "low_stock_items": count_low_stock_products(),
        "total_products": db.session.query(func.count(Product.id)).scalar() or 0,
        "total_debt": debts["total_remaining"],
        "debtor_count": debts["total_customers"],
    }


def sales_report(*, start: str | None, end: str | None, group_by: str = "day") -> dict:
    start_dt, end_dt = _parse_range(start, end)

    if group_by == "day":
        period_expr = func.strftime("%Y-%m-%d", Transaction.created_at)
    elif group_by == "week":
        period_expr = func.strftime("%Y-W%W", Transaction.created_at)
    elif group_by == "month":
        period_expr = func.strftime("%Y-%m", Transaction.created_at)
    else:
        raise ValidationError("group_by must be day, week, or month")

    cash = func.sum(case((Transaction.payment_method == PAYMENT_CASH, Transaction.total_amount), else_=0))
    debt = func.sum(case((Transaction.payment_method == PAYMENT_DEBT, Transaction.total_amount), else_=0))

    query = _window(
        db.session.query(
            period_expr.label("period"),
            func.count(Transaction.id).label("transactions"),
            func.coalesce(func.sum(Transaction.total_amount), 0).label("total_sales"),
            func.coalesce(cash, 0).label("cash_sales"),
            func.coalesce(debt, 0).label("debt_sales"),
        ),
        start_dt, end_dt,
    )

    rows = query.group_by("period").order_by("period").all()
    return {
        "group_by": group_by,
        **_range_payload(start_dt, end_dt),
        "rows": [
            {
                "period": row.period,
                "transactions": int(row.transactions or 0),
                "total_sales": as_number(row.total_sales),
                "cash_sales": as_number(row.cash_sales),
                "debt_sales": as_number(row.debt_sales),
            }
            for row in rows
        ],
    }


def top_products(*, start: str | None, end: str | None, limit: int = 10) -> dict:
    """Best sellers by revenue; quantities are reported in base units."""
    start_dt, end_dt = _parse_range(start, end)
    limit = max(1, min(int(limit or 10), 100))

    query = _window(
        db.session.query(
            Product.id.label("product_id"),
            Product.sku,
            Product.name,
            Product.base_unit,
            Category.name.label("category_name"),
            func.coalesce(func.sum(TransactionItem.base_quantity), 0).label("quantity_sold"),
            func.coalesce(func.sum(TransactionItem.subtotal), 0).label("revenue"),
            func.count(func.distinct(Transaction.id)).label("transactions"),
        )
        .select_from(Transaction)
        .join(TransactionItem, TransactionItem.transaction_id == Transaction.id)
        .join(Product, Product.id == TransactionItem.product_id)
        .join(Category, Category.id == Product.category_id),
        start_dt, end_dt,
    )

    rows = (
        query.group_by(Product.id, Product.sku, Product.name, Product.base_unit, Category.name)
        .order_by(func.sum(TransactionItem.subtotal).desc(), Product.name.asc())
        .limit(limit)
        .all()
    )
    return {
        **_range_payload(start_dt, end_dt),
        "rows": [
            {
                "product_id": row.product_id,
                "sku": row.sku,
                "name": row.name,
                "category_name": row.category_name,
                "base_unit": row.base_unit,
                "quantity_sold": as_number(row.quantity_sold),
                "revenue": as_number(row.revenue),
                "transactions": int(row.transactions or 0),
            }
            for row in rows
        ],
    }


def revenue_report(*, start: str | None, end: str | None) -> dict:
    """
    Revenue against cost of goods sold.

    COGS is valued at each product's current cost per base unit; historical
    costs are not tracked.
    """
    start_dt, end_dt = _parse_range(start, end)

    revenue = _window(
        db.session.query(func.coalesce(func.sum(Transaction.total_amount), 0)),
        start_dt, end_dt,
    ).scalar()

    lines = _window(
        db.session.query(TransactionItem.base_quantity, Product.cost)
        .select_from(TransactionItem)
        .join(Transaction, TransactionItem.transaction_id == Transaction.id)
        .join(Product, Product.id == TransactionItem.product_id),
        start_dt, end_dt,
    ).all()

    revenue = to_decimal(revenue)
    cogs = sum((to_decimal(qty) * to_decimal(cost) for qty, cost in lines), Decimal("0"))
    cogs = cogs.quantize(Decimal("0.01"))
    gross = revenue - cogs
    margin = (gross / revenue * 100).quantize(Decimal("0.01")) if revenue else Decimal("0")

    return {
        **_range_payload(start_dt, end_dt),
        "revenue": as_number(revenue),
        "cost_of_goods_sold": as_number(cogs),
        "gross_profit": as_number(gross),
        "margin_percent": as_number(margin),
        "outstanding_debt": debt_summary()["total_remaining"],
    }
