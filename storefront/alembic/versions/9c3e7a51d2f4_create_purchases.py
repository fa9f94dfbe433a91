"""create_purchases

Revision ID: 9c3e7a51d2f4
Revises: 4b1f0c2d9a10
Create Date: 2026-10-17 10:40:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '9c3e7a51d2f4'
down_revision: Union[str, None] = '4b1f0c2d9a10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

purchase_status = postgresql.ENUM(
    'PENDING', 'APPROVED', 'COMPLETED', 'REJECTED', 'CANCELLED', 'FAILED',
    name='purchase_status', create_type=False
)
order_status = postgresql.ENUM(
    'PENDING', 'PROCESSING', 'SHIPPED', 'DELIVERED', 'CANCELLED',
    name='order_status', create_type=False
)


def upgrade() -> None:
    purchase_status.create(op.get_bind(), checkfirst=True)
    order_status.create(op.get_bind(), checkfirst=True)

    op.create_table('purchases',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('buyer_email', sa.String(), nullable=False),
        sa.Column('buyer_name', sa.String(), nullable=False),
        sa.Column('buyer_identification_number', sa.String(), nullable=False),
        sa.Column('buyer_contact_number', sa.String(), nullable=True),
        sa.Column('shipping_address', sa.Text(), nullable=True),
        sa.Column('status', purchase_status, nullable=False, server_default='PENDING'),
        sa.Column('order_status', order_status, nullable=False, server_default='PENDING'),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(), nullable=False, server_default='COP'),
        sa.Column('payment_provider', sa.String(), nullable=False, server_default='WOMPI'),
        sa.Column('external_reference', sa.String(), nullable=False),
        sa.Column('preference_id', sa.String(), nullable=True),
        sa.Column('wompi_transaction_id', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('external_reference')
    )
    op.create_index(op.f('ix_purchases_buyer_email'), 'purchases', ['buyer_email'], unique=False)
    op.create_index(op.f('ix_purchases_wompi_transaction_id'), 'purchases', ['wompi_transaction_id'], unique=False)

    op.create_table('order_details',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('purchase_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('unit_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('total_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('selected_color', sa.String(), nullable=True),
        sa.CheckConstraint('quantity > 0', name='ck_order_details_quantity_positive'),
        sa.ForeignKeyConstraint(['purchase_id'], ['purchases.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_order_details_purchase_id'), 'order_details', ['purchase_id'], unique=False)
    op.create_index(op.f('ix_order_details_product_id'), 'order_details', ['product_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_order_details_product_id'), table_name='order_details')
    op.drop_index(op.f('ix_order_details_purchase_id'), table_name='order_details')
    op.drop_table('order_details')
    op.drop_index(op.f('ix_purchases_wompi_transaction_id'), table_name='purchases')
    op.drop_index(op.f('ix_purchases_buyer_email'), table_name='purchases')
    op.drop_table('purchases')
    order_status.drop(op.get_bind(), checkfirst=True)
    purchase_status.drop(op.get_bind(), checkfirst=True)
