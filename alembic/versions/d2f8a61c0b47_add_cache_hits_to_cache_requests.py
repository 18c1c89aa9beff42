"""Add cache_hits and api_calls to cache_update_requests

Revision ID: d2f8a61c0b47
Revises: 4e1b7c9d2a60
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'd2f8a61c0b47'
down_revision: Union[str, None] = '4e1b7c9d2a60'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    with op.batch_alter_table('cache_update_requests') as batch_op:
        batch_op.add_column(sa.Column('cache_hits', sa.JSON(), nullable=True))
        batch_op.add_column(
            sa.Column('api_calls', sa.Integer(), nullable=False, server_default='0')
        )


def downgrade() -> None:
    with op.batch_alter_table('cache_update_requests') as batch_op:
        batch_op.drop_column('api_calls')
        batch_op.drop_column('cache_hits')
