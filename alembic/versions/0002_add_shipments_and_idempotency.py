"""add order-owned shipments and idempotency key

Revision ID: 0002
Revises: 0001_init
Create Date: 2026-06-16

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0002'
down_revision = '0001_init'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'shipments',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('order_id', sa.String(32), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('carrier', sa.String(50), nullable=False, server_default='TBD'),
        sa.Column('tracking_number', sa.String(100), nullable=False, server_default='Pending'),
        sa.Column('status', sa.String(30), nullable=False),
        sa.Column('history', sa.JSON(), nullable=False),
        sa.Column('estimated_delivery', sa.String(30), nullable=True),
        sa.Column('actual_delivery', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('order_id', name='uq_shipments_order_id'),
    )

    # One shipment per existing order, still at the start of its journey
    op.execute("""
        INSERT INTO shipments (id, order_id, carrier, tracking_number, status, history, updated_at)
        SELECT id, id, 'TBD', 'Pending', 'Processing', '[]', updated_at
        FROM orders
    """)

    op.add_column('orders', sa.Column('idempotency_key', sa.String(100), nullable=True))
    op.create_index('idx_orders_idempotency_key', 'orders', ['idempotency_key'], unique=True)


def downgrade() -> None:
    op.drop_index('idx_orders_idempotency_key')
    op.drop_column('orders', 'idempotency_key')
    op.drop_table('shipments')
