"""create_usage_counters

Revision ID: 3f1c9a7d2b64
Revises:
Create Date: 2026-10-01 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3f1c9a7d2b64'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # One row per (account, feature, period); past periods are kept for audit
    op.create_table(
        'usage_counters',
        sa.Column('account_id', sa.TEXT(), nullable=False),
        sa.Column('feature_key', sa.TEXT(), nullable=False),
        sa.Column('period_key', sa.TEXT(), nullable=False),
        sa.Column('used', sa.BIGINT(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('account_id', 'feature_key', 'period_key'),
        sa.CheckConstraint('used >= 0', name='ck_usage_counters_used_non_negative'),
    )
    op.create_index('idx_usage_counters_account', 'usage_counters', ['account_id'])


def downgrade() -> None:
    op.drop_index('idx_usage_counters_account', table_name='usage_counters')
    op.drop_table('usage_counters')
