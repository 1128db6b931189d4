"""Initial schema: catalog, multi-unit products, stock ledger, transactions, debts

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19

This migration adds:
1. Categories and suppliers
2. Products with per-product sales units (conversion rate to the base unit)
3. Stock movements (append-only, signed base-unit quantities)
4. Transactions and transaction items (unit snapshots, base quantities)
5. Debt records and debt payments
6. Per-day receipt sequences
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
    ]


def upgrade():
    # ==========================================================================
    # 1. CATALOG
    # ==========================================================================
    op.create_table('categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True
    )

    op.create_table('suppliers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('contact', sa.String(length=128), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('suppliers', schema=None) as batch_op:
        batch_op.create_index('ix_suppliers_name', ['name'], unique=False)

    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category_id', sa.Integer(), nullable=False),
        sa.Column('supplier_id', sa.Integer(), nullable=True),
        sa.Column('cost', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('stock', sa.Numeric(precision=14, scale=4), nullable=False),
        sa.Column('min_stock', sa.Numeric(precision=14, scale=4), nullable=False),
        sa.Column('base_unit', sa.String(length=32), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.CheckConstraint('stock >= 0', name='ck_products_stock_nonnegative'),
        sa.CheckConstraint('min_stock >= 0', name='ck_products_min_stock_nonnegative'),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sku', name='uq_products_sku'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.create_index('ix_products_name', ['name'], unique=False)
        batch_op.create_index('ix_products_category', ['category_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_products_supplier_id'), ['supplier_id'], unique=False)

    op.create_table('product_units',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=32), nullable=False),
        sa.Column('price', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('conversion_rate', sa.Numeric(precision=14, scale=6), nullable=False),
        sa.Column('is_base_unit', sa.Boolean(), nullable=False, server_default='0'),
        sa.CheckConstraint('conversion_rate > 0', name='ck_product_units_rate_positive'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', 'name', name='uq_product_units_product_name'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('product_units', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_product_units_product_id'), ['product_id'], unique=False)

    # ==========================================================================
    # 2. TRANSACTIONS
    # ==========================================================================
    op.create_table('transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('receipt_number', sa.String(length=64), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('customer_phone', sa.String(length=32), nullable=True),
        sa.Column('customer_address', sa.String(length=255), nullable=True),
        sa.Column('payment_method', sa.String(length=8), nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('payment_amount', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('change_amount', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('is_paid', sa.Boolean(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='ACTIVE'),
        sa.Column('cancel_reason', sa.String(length=255), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('receipt_number', name='uq_transactions_receipt_number'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('transactions', schema=None) as batch_op:
        batch_op.create_index('ix_transactions_status_created', ['status', 'created_at'], unique=False)
        batch_op.create_index('ix_transactions_customer_name', ['customer_name'], unique=False)
        batch_op.create_index(batch_op.f('ix_transactions_is_paid'), ['is_paid'], unique=False)
        batch_op.create_index(batch_op.f('ix_transactions_created_at'), ['created_at'], unique=False)

    op.create_table('transaction_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('unit_id', sa.Integer(), nullable=True),
        sa.Column('unit_name', sa.String(length=32), nullable=False),
        sa.Column('conversion_rate', sa.Numeric(precision=14, scale=6), nullable=False),
        sa.Column('quantity', sa.Numeric(precision=14, scale=4), nullable=False),
        sa.Column('base_quantity', sa.Numeric(precision=14, scale=4), nullable=False),
        sa.Column('unit_price', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('subtotal', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['transaction_id'], ['transactions.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['unit_id'], ['product_units.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('transaction_items', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_transaction_items_transaction_id'), ['transaction_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_transaction_items_product_id'), ['product_id'], unique=False)

    # ==========================================================================
    # 3. STOCK LEDGER
    # ==========================================================================
    op.create_table('stock_movements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('quantity', sa.Numeric(precision=14, scale=4), nullable=False),
        sa.Column('stock_after', sa.Numeric(precision=14, scale=4), nullable=True),
        sa.Column('reference_type', sa.String(length=16), nullable=False, server_default='MANUAL'),
        sa.Column('transaction_id', sa.Integer(), nullable=True),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['transaction_id'], ['transactions.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('stock_movements', schema=None) as batch_op:
        batch_op.create_index('ix_stock_movements_product_created', ['product_id', 'created_at'], unique=False)
        batch_op.create_index('ix_stock_movements_transaction', ['transaction_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_stock_movements_type'), ['type'], unique=False)

    # ==========================================================================
    # 4. DEBT LEDGER
    # ==========================================================================
    op.create_table('debt_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_id', sa.Integer(), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('customer_phone', sa.String(length=32), nullable=True),
        sa.Column('total_debt', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('paid_amount', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('remaining_debt', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='PENDING'),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['transaction_id'], ['transactions.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('transaction_id', name='uq_debt_records_transaction'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('debt_records', schema=None) as batch_op:
        batch_op.create_index('ix_debt_records_status', ['status'], unique=False)
        batch_op.create_index('ix_debt_records_customer_name', ['customer_name'], unique=False)

    op.create_table('debt_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('debt_record_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('method', sa.String(length=16), nullable=False, server_default='CASH'),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint('amount > 0', name='ck_debt_payments_amount_positive'),
        sa.ForeignKeyConstraint(['debt_record_id'], ['debt_records.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('debt_payments', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_debt_payments_debt_record_id'), ['debt_record_id'], unique=False)

    # ==========================================================================
    # 5. RECEIPT SEQUENCES
    # ==========================================================================
    op.create_table('receipt_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('day', sa.String(length=8), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('day', name='uq_receipt_sequences_day'),
        sqlite_autoincrement=True
    )


def downgrade():
    op.drop_table('receipt_sequences')
    with op.batch_alter_table('debt_payments', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_debt_payments_debt_record_id'))
    op.drop_table('debt_payments')
    with op.batch_alter_table('debt_records', schema=None) as batch_op:
        batch_op.drop_index('ix_debt_records_customer_name')
        batch_op.drop_index('ix_debt_records_status')
    op.drop_table('debt_records')
    with op.batch_alter_table('stock_movements', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_stock_movements_type'))
        batch_op.drop_index('ix_stock_movements_transaction')
        batch_op.drop_index('ix_stock_movements_product_created')
    op.drop_table('stock_movements')
    with op.batch_alter_table('transaction_items', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_transaction_items_product_id'))
        batch_op.drop_index(batch_op.f('ix_transaction_items_transaction_id'))
    op.drop_table('transaction_items')
    with op.batch_alter_table('transactions', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_transactions_created_at'))
        batch_op.drop_index(batch_op.f('ix_transactions_is_paid'))
        batch_op.drop_index('ix_transactions_customer_name')
        batch_op.drop_index('ix_transactions_status_created')
    op.drop_table('transactions')
    with op.batch_alter_table('product_units', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_product_units_product_id'))
    op.drop_table('product_units')
    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_products_supplier_id'))
        batch_op.drop_index('ix_products_category')
        batch_op.drop_index('ix_products_name')
    op.drop_table('products')
    with op.batch_alter_table('suppliers', schema=None) as batch_op:
        batch_op.drop_index('ix_suppliers_name')
    op.drop_table('suppliers')
    op.drop_table('categories')
