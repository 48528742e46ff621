"""create_store_tables

Revision ID: 3f1c9a7d2e10
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f1c9a7d2e10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

product_status = postgresql.ENUM(
    'draft', 'active', 'archived',
    name='store_product_status_enum', create_type=False,
)
inventory_reason = postgresql.ENUM(
    'purchase', 'order', 'return', 'adjustment', 'order_cancelled', 'order_refunded',
    name='store_inventory_reason_enum', create_type=False,
)
order_status = postgresql.ENUM(
    'pending', 'paid', 'processing', 'shipped', 'completed', 'cancelled', 'refunded',
    name='store_order_status_enum', create_type=False,
)
payment_method = postgresql.ENUM(
    'cod', 'card', 'bank', 'ewallet', 'qr',
    name='store_payment_method_enum', create_type=False,
)
payment_status = postgresql.ENUM(
    'pending', 'authorized', 'paid', 'failed', 'refunded',
    name='store_payment_status_enum', create_type=False,
)
shipping_method = postgresql.ENUM(
    'standard', 'express', 'same_day',
    name='store_shipping_method_enum', create_type=False,
)

ENUMS = (
    product_status,
    inventory_reason,
    order_status,
    payment_method,
    payment_status,
    shipping_method,
)


def upgrade() -> None:
    """Upgrade schema - Create catalog, ledger, cart and order tables."""
    bind = op.get_bind()
    for enum_type in ENUMS:
        enum_type.create(bind, checkfirst=True)

    # Catalog
    op.create_table(
        'store_products',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('image', sa.String(length=512), nullable=True),
        sa.Column('status', product_status, server_default='active', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug'),
    )
    op.create_index('ix_store_products_status', 'store_products', ['status'])

    op.create_table(
        'store_product_variants',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('sku', sa.String(length=100), nullable=False),
        sa.Column('color', sa.String(length=50), nullable=True),
        sa.Column('size', sa.String(length=50), nullable=True),
        sa.Column('image', sa.String(length=512), nullable=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('stock', sa.Integer(), server_default='0', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('stock >= 0', name='variant_stock_non_negative'),
        sa.CheckConstraint('price >= 0', name='variant_price_non_negative'),
        sa.ForeignKeyConstraint(['product_id'], ['store_products.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sku'),
    )
    op.create_index(
        'ix_store_product_variants_product_id', 'store_product_variants', ['product_id']
    )

    # Inventory ledger
    op.create_table(
        'store_inventory_logs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('sku', sa.String(length=100), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('reason', inventory_reason, nullable=False),
        sa.Column('ref_id', sa.String(length=50), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('performed_by', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_store_inventory_logs_product_id', 'store_inventory_logs', ['product_id']
    )
    op.create_index('ix_store_inventory_logs_sku', 'store_inventory_logs', ['sku'])
    op.create_index('ix_store_inventory_logs_ref_id', 'store_inventory_logs', ['ref_id'])

    # Carts
    op.create_table(
        'store_carts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('coupon_code', sa.String(length=50), nullable=True),
        sa.Column('subtotal', sa.Numeric(12, 2), server_default='0', nullable=True),
        sa.Column('discount', sa.Numeric(12, 2), server_default='0', nullable=True),
        sa.Column('shipping_fee', sa.Numeric(12, 2), server_default='0', nullable=True),
        sa.Column('total', sa.Numeric(12, 2), server_default='0', nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id'),
    )

    op.create_table(
        'store_cart_items',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('cart_id', sa.Uuid(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('sku', sa.String(length=100), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('image', sa.String(length=512), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('quantity > 0', name='cart_item_positive_quantity'),
        sa.ForeignKeyConstraint(['cart_id'], ['store_carts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('cart_id', 'sku', name='unique_cart_sku'),
    )

    # Orders
    op.create_table(
        'store_orders',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('code', sa.String(length=20), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('customer_email', sa.String(length=255), nullable=True),
        sa.Column('shipping_address', postgresql.JSONB(), nullable=False),
        sa.Column('shipping_method', shipping_method, server_default='standard', nullable=True),
        sa.Column('coupon_code', sa.String(length=50), nullable=True),
        sa.Column('subtotal', sa.Numeric(12, 2), nullable=False),
        sa.Column('discount', sa.Numeric(12, 2), server_default='0', nullable=True),
        sa.Column('shipping_fee', sa.Numeric(12, 2), server_default='0', nullable=True),
        sa.Column('total', sa.Numeric(12, 2), nullable=False),
        sa.Column('status', order_status, server_default='pending', nullable=True),
        sa.Column('payment_method', payment_method, nullable=False),
        sa.Column('payment_provider', sa.String(length=50), nullable=True),
        sa.Column('payment_transaction_id', sa.String(length=100), nullable=True),
        sa.Column('payment_status', payment_status, server_default='pending', nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_store_orders_code', 'store_orders', ['code'], unique=True)
    op.create_index('ix_store_orders_user_id', 'store_orders', ['user_id'])
    op.create_index('ix_store_orders_status', 'store_orders', ['status'])
    op.create_index(
        'ix_store_orders_payment_transaction_id',
        'store_orders',
        ['payment_transaction_id'],
    )

    op.create_table(
        'store_order_items',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('sku', sa.String(length=100), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('image', sa.String(length=512), nullable=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.CheckConstraint('quantity > 0', name='order_item_positive_quantity'),
        sa.ForeignKeyConstraint(['order_id'], ['store_orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'store_order_timeline',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('status', order_status, nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('actor', sa.String(length=255), nullable=True),
        sa.Column('at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['order_id'], ['store_orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id', 'sequence', name='unique_order_timeline_sequence'),
    )


def downgrade() -> None:
    """Downgrade schema - Drop store tables."""
    op.drop_table('store_order_timeline')
    op.drop_table('store_order_items')
    op.drop_index('ix_store_orders_payment_transaction_id', table_name='store_orders')
    op.drop_index('ix_store_orders_status', table_name='store_orders')
    op.drop_index('ix_store_orders_user_id', table_name='store_orders')
    op.drop_index('ix_store_orders_code', table_name='store_orders')
    op.drop_table('store_orders')
    op.drop_table('store_cart_items')
    op.drop_table('store_carts')
    op.drop_index('ix_store_inventory_logs_ref_id', table_name='store_inventory_logs')
    op.drop_index('ix_store_inventory_logs_sku', table_name='store_inventory_logs')
    op.drop_index('ix_store_inventory_logs_product_id', table_name='store_inventory_logs')
    op.drop_table('store_inventory_logs')
    op.drop_index(
        'ix_store_product_variants_product_id', table_name='store_product_variants'
    )
    op.drop_table('store_product_variants')
    op.drop_index('ix_store_products_status', table_name='store_products')
    op.drop_table('store_products')

    bind = op.get_bind()
    for enum_type in reversed(ENUMS):
        enum_type.drop(bind, checkfirst=True)
