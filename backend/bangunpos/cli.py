# Overview: Flask CLI command groups for bootstrap, stock and debt inspection.

# backend/bangunpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Use: python -m flask --app bangunpos <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask --app bangunpos system init-db
#   Create any missing tables (idempotent).
# - python -m flask --app bangunpos system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask --app bangunpos system seed [--no-transactions]
#   Load the demo catalog (categories, suppliers, products) and two sample sales.
#
# Stock:
# - python -m flask --app bangunpos stock low
#   List products at or below their minimum stock.
# - python -m flask --app bangunpos stock adjust --product-id 1 --type IN --quantity 10 --note "Restock"
#   Manual stock adjustment in base units.
#
# Debts:
# - python -m flask --app bangunpos debts summary
#   Outstanding debt totals.

import click
from flask.cli import with_appcontext

from .errors import PosError
from .extensions import db
from .models.stock import MOVEMENT_TYPES
from .numbers import format_rupiah
from .services import debt_service, stock_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database schema is up to date.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'flask system seed' to load demo data.")


@system_group.command('seed')
@click.option('--no-transactions', is_flag=True, help='Only seed the catalog, no sample sales')
@with_appcontext
def seed(no_transactions):
    """
    Seed the demo building-materials catalog.

    Safe to rerun: existing categories, suppliers and SKUs are skipped.
    """
    from .seed import seed_demo_data

    db.create_all()
    created = seed_demo_data(with_transactions=not no_transactions)
    for key, count in created.items():
        click.echo(f"  {key}: {count} created")
    click.echo("PASS Seed complete.")


@click.group('stock')
def stock_group():
    """Stock inspection and manual adjustments."""


@stock_group.command('low')
@with_appcontext
def stock_low():
    """List products at or below their minimum stock."""
    rows = stock_service.list_low_stock_products()
    if not rows:
        click.echo("No low stock products.")
        return

    for row in rows:
        click.echo(
            f"[{row['urgency_level']:<8}] {row['sku']:<12} {row['name']:<30} "
            f"stock={row['stock']} {row['base_unit']} (min {row['min_stock']})"
        )
    click.echo(f"{len(rows)} product(s) need restocking.")


@stock_group.command('adjust')
@click.option('--product-id', type=int, required=True, help='Product ID')
@click.option('--type', 'movement_type', type=click.Choice(list(MOVEMENT_TYPES)), default='ADJUSTMENT', show_default=True)
@click.option('--quantity', required=True, help='Quantity in base units (signed for ADJUSTMENT)')
@click.option('--note', help='Reason for the adjustment')
@with_appcontext
def stock_adjust(product_id, movement_type, quantity, note):
    """Apply a manual stock adjustment."""
    try:
        result = stock_service.adjust_stock(
            product_id=product_id,
            quantity=quantity,
            movement_type=movement_type,
            note=note,
        )
    except PosError as e:
        raise click.ClickException(str(e))

    click.echo(
        f"PASS {result['sku']}: {result['previous_stock']} -> {result['new_stock']} "
        f"{result['base_unit']} ({result['stock_status']})"
    )


@click.group('debts')
def debts_group():
    """Debt ledger inspection."""


@debts_group.command('summary')
@with_appcontext
def debts_summary():
    """Outstanding debt totals."""
    summary = debt_service.debt_summary()
    click.echo(f"Open records:    {summary['open_records']}")
    click.echo(f"Customers:       {summary['total_customers']}")
    click.echo(f"Total debt:      {format_rupiah(summary['total_debt'])}")
    click.echo(f"Paid so far:     {format_rupiah(summary['total_paid'])}")
    click.echo(f"Outstanding:     {format_rupiah(summary['total_remaining'])}")
    click.echo(f"Overdue:         {format_rupiah(summary['overdue_debt'])}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stock_group)
    app.cli.add_command(debts_group)
