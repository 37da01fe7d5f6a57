"""Initial sales ledger schema

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19

This migration adds:
1. Stores (tenant boundary)
2. Customers
3. Products and per-store inventory counters
4. Sale groups and sale lines
5. Debts and their append-only payments
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. STORES
    # ==========================================================================
    op.create_table('stores',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('owner_email', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('stores', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_stores_owner_email'), ['owner_email'], unique=False)

    # ==========================================================================
    # 2. CUSTOMERS
    # ==========================================================================
    op.create_table('customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('customers', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_customers_store_id'), ['store_id'], unique=False)
        batch_op.create_index('ix_customers_store_name', ['store_id', 'full_name'], unique=False)

    # ==========================================================================
    # 3. PRODUCTS AND INVENTORY
    # ==========================================================================
    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('purchase_price_cents', sa.Integer(), nullable=False),
        sa.Column('purchase_qty', sa.Integer(), nullable=False),
        sa.Column('selling_price_cents', sa.Integer(), nullable=True),
        sa.Column('supplier_name', sa.String(length=255), nullable=True),
        sa.Column('device_id_template', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('purchase_qty >= 0', name='ck_products_purchase_qty_non_negative'),
        sa.CheckConstraint('purchase_price_cents >= 0', name='ck_products_purchase_price_non_negative'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_products_store_id'), ['store_id'], unique=False)
        batch_op.create_index('ix_products_store_name', ['store_id', 'name'], unique=False)

    op.create_table('inventory',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('available_qty', sa.Integer(), nullable=False),
        sa.Column('quantity_sold', sa.Integer(), nullable=False),
        sa.Column('last_updated', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'product_id', name='uq_inventory_store_product'),
        sa.CheckConstraint('available_qty >= 0', name='ck_inventory_available_non_negative'),
        sa.CheckConstraint('quantity_sold >= 0', name='ck_inventory_sold_non_negative'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('inventory', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_inventory_store_id'), ['store_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_inventory_product_id'), ['product_id'], unique=False)

    # ==========================================================================
    # 4. SALES
    # ==========================================================================
    op.create_table('sale_groups',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('total_amount_cents', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('request_id', sa.String(length=64), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('needs_reconciliation', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'request_id', name='uq_sale_groups_store_request'),
        sa.CheckConstraint('total_amount_cents >= 0', name='ck_sale_groups_total_non_negative'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sale_groups', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_sale_groups_store_id'), ['store_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_sale_groups_needs_reconciliation'), ['needs_reconciliation'], unique=False)
        batch_op.create_index('ix_sale_groups_store_created', ['store_id', 'created_at'], unique=False)

    op.create_table('sale_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_group_id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('device_ids', sa.JSON(), nullable=False),
        sa.Column('device_sizes', sa.JSON(), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['sale_group_id'], ['sale_groups.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity >= 1', name='ck_sale_lines_quantity_positive'),
        sa.CheckConstraint('unit_price_cents >= 0', name='ck_sale_lines_price_non_negative'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sale_lines', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_sale_lines_sale_group_id'), ['sale_group_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_sale_lines_store_id'), ['store_id'], unique=False)
        batch_op.create_index('ix_sale_lines_store_product', ['store_id', 'product_id'], unique=False)

    # ==========================================================================
    # 5. DEBTS
    # ==========================================================================
    op.create_table('debts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('amount_owed_cents', sa.Integer(), nullable=False),
        sa.Column('amount_deposited_cents', sa.Integer(), nullable=False),
        sa.Column('device_id', sa.String(length=128), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('debt_date', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('amount_owed_cents > 0', name='ck_debts_owed_positive'),
        sa.CheckConstraint('amount_deposited_cents >= 0', name='ck_debts_deposit_non_negative'),
        sa.CheckConstraint('quantity >= 1', name='ck_debts_quantity_positive'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('debts', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_debts_store_id'), ['store_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_debts_customer_id'), ['customer_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_debts_product_id'), ['product_id'], unique=False)
        batch_op.create_index('ix_debts_store_date', ['store_id', 'debt_date'], unique=False)

    op.create_table('debt_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('debt_id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('amount_paid_cents', sa.Integer(), nullable=False),
        sa.Column('recorded_by_user_id', sa.Integer(), nullable=True),
        sa.Column('payment_date', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['debt_id'], ['debts.id'], ),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('amount_paid_cents > 0', name='ck_debt_payments_amount_positive'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('debt_payments', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_debt_payments_debt_id'), ['debt_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_debt_payments_store_id'), ['store_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_debt_payments_customer_id'), ['customer_id'], unique=False)
        batch_op.create_index('ix_debt_payments_debt_date', ['debt_id', 'payment_date'], unique=False)


def downgrade():
    op.drop_table('debt_payments')
    op.drop_table('debts')
    op.drop_table('sale_lines')
    op.drop_table('sale_groups')
    op.drop_table('inventory')
    op.drop_table('products')
    op.drop_table('customers')
    op.drop_table('stores')
