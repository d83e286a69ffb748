"""create test_results table

Revision ID: 002
Revises: 001
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create test_results table for simulator outcomes."""
    op.create_table(
        'test_results',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('configuration_id', sa.Integer(), nullable=True),
        sa.Column('test_type', sa.String(length=50), nullable=False),
        sa.Column('test_name', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('results', sa.JSON(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('execution_time_ms', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['configuration_id'], ['configurations.id'])
    )

    # Badge lookups read the newest row per test type
    op.create_index('ix_test_results_configuration_id', 'test_results', ['configuration_id'])
    op.create_index('ix_test_results_test_type', 'test_results', ['test_type'])


def downgrade() -> None:
    """Drop test_results table."""
    op.drop_index('ix_test_results_test_type', table_name='test_results')
    op.drop_index('ix_test_results_configuration_id', table_name='test_results')
    op.drop_table('test_results')
