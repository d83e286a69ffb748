"""create configurations table

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create configurations table with a unique integration code."""
    op.create_table(
        'configurations',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('integration_name', sa.String(length=255), nullable=False),
        sa.Column('integration_code', sa.String(length=100), nullable=False),
        sa.Column('base_url', sa.String(length=500), nullable=False),
        sa.Column('plugin_username', sa.String(length=255), nullable=False),
        sa.Column('plugin_password_hash', sa.String(length=64), nullable=False),
        sa.Column('environment', sa.String(length=20), nullable=False, server_default='staging'),
        sa.Column('country', sa.String(length=2), nullable=False, server_default='AE'),
        sa.Column('region', sa.String(length=20), nullable=False, server_default='me'),
        sa.Column('vendor_code', sa.String(length=100), nullable=True),
        sa.Column('remote_id', sa.String(length=100), nullable=True),
        sa.Column('callback_url', sa.String(length=500), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('integration_code', name='uq_configurations_integration_code')
    )

    op.create_index('ix_configurations_is_active', 'configurations', ['is_active'])


def downgrade() -> None:
    """Drop configurations table."""
    op.drop_index('ix_configurations_is_active', table_name='configurations')
    op.drop_table('configurations')
