"""create reports and scheduled_reports tables

Revision ID: 003
Revises: 002
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '003'
down_revision: Union[str, None] = '002'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create report history and report schedule tables."""
    op.create_table(
        'reports',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('configuration_id', sa.Integer(), nullable=True),
        sa.Column('report_type', sa.String(length=50), nullable=False),
        sa.Column('report_format', sa.String(length=10), nullable=False),
        sa.Column('date_range_from', sa.Date(), nullable=False),
        sa.Column('date_range_to', sa.Date(), nullable=False),
        sa.Column('record_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('file_name', sa.String(length=255), nullable=False),
        sa.Column('file_size', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('generated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['configuration_id'], ['configurations.id'])
    )
    op.create_index('ix_reports_generated_at', 'reports', ['generated_at'])

    op.create_table(
        'scheduled_reports',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('configuration_id', sa.Integer(), nullable=True),
        sa.Column('report_type', sa.String(length=50), nullable=False),
        sa.Column('report_format', sa.String(length=10), nullable=False),
        sa.Column('frequency', sa.String(length=20), nullable=False),
        sa.Column('next_run', sa.DateTime(), nullable=False),
        sa.Column('email_recipients', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['configuration_id'], ['configurations.id'])
    )
    op.create_index('ix_scheduled_reports_next_run', 'scheduled_reports', ['next_run'])


def downgrade() -> None:
    """Drop report tables."""
    op.drop_index('ix_scheduled_reports_next_run', table_name='scheduled_reports')
    op.drop_table('scheduled_reports')
    op.drop_index('ix_reports_generated_at', table_name='reports')
    op.drop_table('reports')
