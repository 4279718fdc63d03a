"""create items ledger table

Revision ID: 3a1f0c9d2b7e
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3a1f0c9d2b7e'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'items',
        sa.Column('item_no', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('item_name', sa.Text(), nullable=False, comment='物品名称'),
        sa.Column('brand', sa.Text(), nullable=False, server_default='', comment='品牌'),
        sa.Column('item_type', sa.Text(), nullable=False, server_default='', comment='类别'),
        sa.Column('location', sa.Text(), nullable=False, server_default='', comment='存放位置'),
        sa.Column('unit_of_measure', sa.Text(), nullable=False, server_default='', comment='计量单位'),
        sa.Column('supplier', sa.Text(), nullable=False, server_default='', comment='供应商'),
        sa.Column('last_po', sa.Text(), nullable=False, server_default='', comment='最近采购单号'),
        sa.Column('price_per_unit', sa.Numeric(12, 2), nullable=False, server_default='0', comment='单价'),
        sa.Column('in_qty', sa.Integer(), nullable=False, server_default='0', comment='累计入库数量'),
        sa.Column('out_qty', sa.Integer(), nullable=False, server_default='0', comment='累计出库数量'),
        sa.Column('min_stock', sa.Integer(), nullable=False, server_default='0', comment='安全库存'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False, comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False, comment='最后更新时间'),
        sa.CheckConstraint('price_per_unit >= 0', name='ck_items_price_non_negative'),
        sa.CheckConstraint('in_qty >= 0', name='ck_items_in_qty_non_negative'),
        sa.CheckConstraint('out_qty >= 0', name='ck_items_out_qty_non_negative'),
        sa.CheckConstraint('min_stock >= 0', name='ck_items_min_stock_non_negative'),
        sa.CheckConstraint('in_qty >= out_qty', name='ck_items_balance_non_negative'),
        sa.PrimaryKeyConstraint('item_no'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_items_name', 'items', ['item_name'])
    op.create_index('ix_items_type', 'items', ['item_type'])
    op.create_index('ix_items_location', 'items', ['location'])
    op.create_index('ix_items_supplier', 'items', ['supplier'])


def downgrade() -> None:
    op.drop_index('ix_items_supplier', table_name='items')
    op.drop_index('ix_items_location', table_name='items')
    op.drop_index('ix_items_type', table_name='items')
    op.drop_index('ix_items_name', table_name='items')
    op.drop_table('items')
