"""init inventory, orders and order lines

Revision ID: 0001_init
Revises:
Create Date: 2026-06-02

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_init'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'inventory',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('sku', sa.String(50), nullable=False),
        sa.Column('style', sa.String(100), nullable=False),
        sa.Column('material', sa.String(100), nullable=False),
        sa.Column('dimensions', sa.String(100), nullable=False),
        sa.Column('weight', sa.String(50), nullable=True),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('lead_time', sa.String(50), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('image_url', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('stock >= 0', name='ck_inventory_stock_non_negative'),
    )
    op.create_index('ix_inventory_sku', 'inventory', ['sku'], unique=True)

    op.create_table(
        'orders',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('order_number', sa.String(50), nullable=False),
        sa.Column('status', sa.String(30), nullable=False),
        sa.Column('payment_status', sa.String(30), nullable=False),
        sa.Column('shipping_method', sa.String(100), nullable=True),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('customer_name', sa.String(200), nullable=False),
        sa.Column('customer_email', sa.String(255), nullable=True),
        sa.Column('customer_phone', sa.String(50), nullable=True),
        sa.Column('shipping_address', sa.Text(), nullable=False),
        sa.Column('created_by', sa.String(100), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_orders_order_number', 'orders', ['order_number'], unique=True)

    op.create_table(
        'order_lines',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_id', sa.String(32), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('item_id', sa.String(32), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('sku', sa.String(50), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('image_url', sa.String(500), nullable=True),
    )
    op.create_index('ix_order_lines_order_id', 'order_lines', ['order_id'])
    op.create_index('ix_order_lines_item_id', 'order_lines', ['item_id'])


def downgrade() -> None:
    op.drop_index('ix_order_lines_item_id')
    op.drop_index('ix_order_lines_order_id')
    op.drop_table('order_lines')
    op.drop_index('ix_orders_order_number')
    op.drop_table('orders')
    op.drop_index('ix_inventory_sku')
    op.drop_table('inventory')
