"""StoreOps initial schema: stores, inventory, sales, customers, summaries, outbox

Revision ID: 20261018_storeops_initial
Revises:
Create Date: 2026-10-18

This migration adds:
1. Stores (tenants) and products with optimistic version_id
2. Receipts and the append-only stock ledger
3. Sales and sale line items
4. Customers and till closeouts
5. Daily summaries and the activity feed
6. Event outbox, processed-event dedup table, operation error log
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_storeops_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. STORES / PRODUCTS
    # ==========================================================================
    op.create_table('stores',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('timezone', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('products',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('store_id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('price', sa.Float(), nullable=True),
        sa.Column('stock_count', sa.Integer(), nullable=False),
        sa.Column('reorder_threshold', sa.Integer(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_products_store_id', 'products', ['store_id'])
    op.create_index('ix_products_store_name', 'products', ['store_id', 'name'])

    # ==========================================================================
    # 2. RECEIPTS / LEDGER
    # ==========================================================================
    op.create_table('receipts',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('store_id', sa.String(length=64), nullable=False),
        sa.Column('product_id', sa.String(length=64), nullable=False),
        sa.Column('qty', sa.Integer(), nullable=False),
        sa.Column('supplier', sa.String(length=255), nullable=False),
        sa.Column('reference', sa.String(length=255), nullable=False),
        sa.Column('unit_cost', sa.Float(), nullable=True),
        sa.Column('total_cost', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_receipts_store_id', 'receipts', ['store_id'])
    op.create_index('ix_receipts_product_id', 'receipts', ['product_id'])
    op.create_index('ix_receipts_store_created', 'receipts', ['store_id', 'created_at'])

    op.create_table('ledger_entries',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('store_id', sa.String(length=64), nullable=False),
        sa.Column('branch_id', sa.String(length=64), nullable=True),
        sa.Column('product_id', sa.String(length=64), nullable=False),
        sa.Column('qty_change', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('ref_id', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_ledger_entries_store_id', 'ledger_entries', ['store_id'])
    op.create_index('ix_ledger_store_product', 'ledger_entries', ['store_id', 'product_id'])
    op.create_index('ix_ledger_ref', 'ledger_entries', ['type', 'ref_id'])

    # ==========================================================================
    # 3. SALES
    # ==========================================================================
    op.create_table('sales',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('store_id', sa.String(length=64), nullable=False),
        sa.Column('branch_id', sa.String(length=64), nullable=True),
        sa.Column('cashier_id', sa.String(length=64), nullable=True),
        sa.Column('total', sa.Float(), nullable=False),
        sa.Column('tax_total', sa.Float(), nullable=False),
        sa.Column('payment', sa.JSON(), nullable=True),
        sa.Column('tenders', sa.JSON(), nullable=True),
        sa.Column('customer', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_sales_store_id', 'sales', ['store_id'])
    op.create_index('ix_sales_store_created', 'sales', ['store_id', 'created_at'])

    op.create_table('sale_items',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('sale_id', sa.String(length=64), nullable=False),
        sa.Column('store_id', sa.String(length=64), nullable=False),
        sa.Column('product_id', sa.String(length=64), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('qty', sa.Integer(), nullable=False),
        sa.Column('price', sa.Float(), nullable=False),
        sa.Column('tax_rate', sa.Float(), nullable=True),
        sa.Column('line_total', sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id']),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_sale_items_sale_id', 'sale_items', ['sale_id'])
    op.create_index('ix_sale_items_store_id', 'sale_items', ['store_id'])

    # ==========================================================================
    # 4. CUSTOMERS / CLOSEOUTS
    # ==========================================================================
    op.create_table('customers',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('store_id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_customers_store_id', 'customers', ['store_id'])
    op.create_index('ix_customers_store_created', 'customers', ['store_id', 'created_at'])

    op.create_table('closeouts',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('store_id', sa.String(length=64), nullable=False),
        sa.Column('counted_cash', sa.Float(), nullable=False),
        sa.Column('expected_cash', sa.Float(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('closed_by', sa.String(length=64), nullable=True),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_closeouts_store_id', 'closeouts', ['store_id'])
    op.create_index('ix_closeouts_store_closed', 'closeouts', ['store_id', 'closed_at'])

    # ==========================================================================
    # 5. DAILY SUMMARIES / ACTIVITY FEED
    # ==========================================================================
    op.create_table('daily_summaries',
        sa.Column('id', sa.String(length=96), nullable=False),
        sa.Column('store_id', sa.String(length=64), nullable=False),
        sa.Column('date_key', sa.String(length=10), nullable=False),
        sa.Column('sales_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('sales_total', sa.Float(), nullable=False, server_default='0'),
        sa.Column('cash_total', sa.Float(), nullable=False, server_default='0'),
        sa.Column('card_total', sa.Float(), nullable=False, server_default='0'),
        sa.Column('receipts_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('units_received', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('receipt_cost_total', sa.Float(), nullable=False, server_default='0'),
        sa.Column('new_customers_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('closeouts_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('closeout_counted_total', sa.Float(), nullable=False, server_default='0'),
        sa.Column('closeout_expected_total', sa.Float(), nullable=False, server_default='0'),
        sa.Column('closeout_variance_total', sa.Float(), nullable=False, server_default='0'),
        sa.Column('last_activity_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('product_stats', sa.JSON(), nullable=False),
        sa.Column('product_stats_order', sa.JSON(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'date_key', name='uq_daily_summaries_store_date')
    )
    op.create_index('ix_daily_summaries_store_id', 'daily_summaries', ['store_id'])

    op.create_table('activities',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('store_id', sa.String(length=64), nullable=True),
        sa.Column('date_key', sa.String(length=10), nullable=True),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('refs', sa.JSON(), nullable=False),
        sa.Column('summary', sa.String(length=255), nullable=False),
        sa.Column('at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_activities_store_date', 'activities', ['store_id', 'date_key'])
    op.create_index('ix_activities_at', 'activities', ['at'])

    # ==========================================================================
    # 6. OUTBOX / PROCESSED EVENTS / ERROR LOG
    # ==========================================================================
    op.create_table('outbox_events',
        sa.Column('id', sa.String(length=128), nullable=False),
        sa.Column('kind', sa.String(length=32), nullable=False),
        sa.Column('store_id', sa.String(length=64), nullable=False),
        sa.Column('aggregate_id', sa.String(length=64), nullable=False),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_outbox_status_occurred', 'outbox_events', ['status', 'occurred_at'])
    op.create_index('ix_outbox_store_status', 'outbox_events', ['store_id', 'status'])

    op.create_table('processed_events',
        sa.Column('event_id', sa.String(length=128), nullable=False),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('event_id')
    )

    op.create_table('error_log_events',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('date_key', sa.String(length=10), nullable=False),
        sa.Column('route', sa.String(length=64), nullable=False),
        sa.Column('store_id', sa.String(length=64), nullable=True),
        sa.Column('payload_shape', sa.JSON(), nullable=True),
        sa.Column('error', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_error_log_date_route', 'error_log_events', ['date_key', 'route'])


def downgrade():
    op.drop_index('ix_error_log_date_route', table_name='error_log_events')
    op.drop_table('error_log_events')
    op.drop_table('processed_events')
    op.drop_index('ix_outbox_store_status', table_name='outbox_events')
    op.drop_index('ix_outbox_status_occurred', table_name='outbox_events')
    op.drop_table('outbox_events')

    op.drop_index('ix_activities_at', table_name='activities')
    op.drop_index('ix_activities_store_date', table_name='activities')
    op.drop_table('activities')
    op.drop_index('ix_daily_summaries_store_id', table_name='daily_summaries')
    op.drop_table('daily_summaries')

    op.drop_index('ix_closeouts_store_closed', table_name='closeouts')
    op.drop_index('ix_closeouts_store_id', table_name='closeouts')
    op.drop_table('closeouts')
    op.drop_index('ix_customers_store_created', table_name='customers')
    op.drop_index('ix_customers_store_id', table_name='customers')
    op.drop_table('customers')

    op.drop_index('ix_sale_items_store_id', table_name='sale_items')
    op.drop_index('ix_sale_items_sale_id', table_name='sale_items')
    op.drop_table('sale_items')
    op.drop_index('ix_sales_store_created', table_name='sales')
    op.drop_index('ix_sales_store_id', table_name='sales')
    op.drop_table('sales')

    op.drop_index('ix_ledger_ref', table_name='ledger_entries')
    op.drop_index('ix_ledger_store_product', table_name='ledger_entries')
    op.drop_index('ix_ledger_entries_store_id', table_name='ledger_entries')
    op.drop_table('ledger_entries')
    op.drop_index('ix_receipts_store_created', table_name='receipts')
    op.drop_index('ix_receipts_product_id', table_name='receipts')
    op.drop_index('ix_receipts_store_id', table_name='receipts')
    op.drop_table('receipts')

    op.drop_index('ix_products_store_name', table_name='products')
    op.drop_index('ix_products_store_id', table_name='products')
    op.drop_table('products')
    op.drop_table('stores')
