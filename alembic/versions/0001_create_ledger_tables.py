# --- START OF FILE: alembic/versions/0001_create_ledger_tables.py ---
"""Alembic migration: create trade_activities and trade_positions tables."""
from alembic import op
import sqlalchemy as sa

revision = '0001_create_ledger_tables'
down_revision = None
branch_labels = None
depends_on = None

delivery_tier_enum = sa.Enum('HISTORICAL', 'LIVE', name='delivery_tier_enum')


def upgrade():
    op.create_table(
        'trade_activities',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('account_id', sa.String(length=42), nullable=False),
        sa.Column('transaction_hash', sa.String(length=80), nullable=False),
        sa.Column('timestamp', sa.BigInteger(), nullable=False),
        sa.Column('condition_id', sa.String(length=80), nullable=True),
        sa.Column('type', sa.String(length=20), nullable=True),
        sa.Column('size', sa.Float(), nullable=True),
        sa.Column('usdc_size', sa.Float(), nullable=True),
        sa.Column('price', sa.Float(), nullable=True),
        sa.Column('asset', sa.String(length=100), nullable=True),
        sa.Column('side', sa.String(length=10), nullable=True),
        sa.Column('outcome_index', sa.Integer(), nullable=True),
        sa.Column('title', sa.Text(), nullable=True),
        sa.Column('slug', sa.String(length=255), nullable=True),
        sa.Column('icon', sa.Text(), nullable=True),
        sa.Column('event_slug', sa.String(length=255), nullable=True),
        sa.Column('outcome', sa.String(length=100), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('pseudonym', sa.String(length=255), nullable=True),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.Column('profile_image', sa.Text(), nullable=True),
        sa.Column('profile_image_optimized', sa.Text(), nullable=True),
        sa.Column('delivered', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('delivered_tier', delivery_tier_enum, nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('account_id', 'transaction_hash', name='uq_activity_account_hash'),
    )
    op.create_index('ix_trade_activities_account_id', 'trade_activities', ['account_id'])
    op.create_index('ix_trade_activities_timestamp', 'trade_activities', ['timestamp'])
    op.create_index('ix_activity_account_delivered', 'trade_activities', ['account_id', 'delivered'])

    op.create_table(
        'trade_positions',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('account_id', sa.String(length=42), nullable=False),
        sa.Column('asset', sa.String(length=100), nullable=False),
        sa.Column('condition_id', sa.String(length=80), nullable=False),
        sa.Column('size', sa.Float(), nullable=True),
        sa.Column('avg_price', sa.Float(), nullable=True),
        sa.Column('initial_value', sa.Float(), nullable=True),
        sa.Column('current_value', sa.Float(), nullable=True),
        sa.Column('cash_pnl', sa.Float(), nullable=True),
        sa.Column('percent_pnl', sa.Float(), nullable=True),
        sa.Column('total_bought', sa.Float(), nullable=True),
        sa.Column('realized_pnl', sa.Float(), nullable=True),
        sa.Column('percent_realized_pnl', sa.Float(), nullable=True),
        sa.Column('cur_price', sa.Float(), nullable=True),
        sa.Column('redeemable', sa.Boolean(), nullable=True),
        sa.Column('mergeable', sa.Boolean(), nullable=True),
        sa.Column('title', sa.Text(), nullable=True),
        sa.Column('slug', sa.String(length=255), nullable=True),
        sa.Column('icon', sa.Text(), nullable=True),
        sa.Column('event_slug', sa.String(length=255), nullable=True),
        sa.Column('outcome', sa.String(length=100), nullable=True),
        sa.Column('outcome_index', sa.Integer(), nullable=True),
        sa.Column('opposite_outcome', sa.String(length=100), nullable=True),
        sa.Column('opposite_asset', sa.String(length=100), nullable=True),
        sa.Column('end_date', sa.String(length=40), nullable=True),
        sa.Column('negative_risk', sa.Boolean(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('account_id', 'asset', 'condition_id', name='uq_position_account_asset_condition'),
    )
    op.create_index('ix_trade_positions_account_id', 'trade_positions', ['account_id'])


def downgrade():
    op.drop_index('ix_trade_positions_account_id', table_name='trade_positions')
    op.drop_table('trade_positions')
    op.drop_index('ix_activity_account_delivered', table_name='trade_activities')
    op.drop_index('ix_trade_activities_timestamp', table_name='trade_activities')
    op.drop_index('ix_trade_activities_account_id', table_name='trade_activities')
    op.drop_table('trade_activities')
    delivery_tier_enum.drop(op.get_bind(), checkfirst=True)
# --- END OF FILE: alembic/versions/0001_create_ledger_tables.py ---
