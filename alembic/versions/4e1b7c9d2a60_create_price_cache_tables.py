"""Create price cache, user sync and cache request tables

Revision ID: 4e1b7c9d2a60
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4e1b7c9d2a60'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'price_cache',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('cache_key', sa.String(length=64), nullable=False),
        sa.Column('asset_type', sa.String(length=10), nullable=False),
        sa.Column('symbol', sa.String(length=40), nullable=False),
        sa.Column('price', sa.Numeric(18, 8), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('source', sa.String(length=30), nullable=False),
        sa.Column('last_updated', sa.DateTime(timezone=True), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('asset_type', 'symbol', name='uq_price_cache_asset_symbol'),
    )
    op.create_index('ix_price_cache_cache_key', 'price_cache', ['cache_key'], unique=True)
    op.create_index('ix_price_cache_asset_type', 'price_cache', ['asset_type'])
    op.create_index('ix_price_cache_last_updated', 'price_cache', ['last_updated'])

    op.create_table(
        'user_sync_timestamps',
        sa.Column('user_id', sa.String(length=128), nullable=False),
        sa.Column('last_sync_timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('portfolio_symbols', sa.JSON(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('user_id'),
    )

    op.create_table(
        'cache_update_requests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=128), nullable=False),
        sa.Column('symbols', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('updated_symbols', sa.JSON(), nullable=True),
        sa.Column('failed_symbols', sa.JSON(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('requested_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_cache_update_requests_user_id', 'cache_update_requests', ['user_id'])
    op.create_index('ix_cache_update_requests_status', 'cache_update_requests', ['status'])
    op.create_index('ix_cache_update_requests_requested_at', 'cache_update_requests', ['requested_at'])


def downgrade() -> None:
    op.drop_table('cache_update_requests')
    op.drop_table('user_sync_timestamps')
    op.drop_index('ix_price_cache_last_updated', table_name='price_cache')
    op.drop_index('ix_price_cache_asset_type', table_name='price_cache')
    op.drop_index('ix_price_cache_cache_key', table_name='price_cache')
    op.drop_table('price_cache')
