"""create_staking_tables

Revision ID: 2026_10_19_120000
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '2026_10_19_120000'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uint256() -> sa.Numeric:
    return sa.Numeric(78, 0)


def upgrade() -> None:
    op.execute("CREATE SCHEMA IF NOT EXISTS staging")
    op.execute("CREATE SCHEMA IF NOT EXISTS domain")

    # staging
    op.create_table(
        'staking_events',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('event_name', sa.String(length=64), nullable=False),
        sa.Column('contract_address', sa.String(length=42), nullable=False),
        sa.Column('tx_hash', sa.String(length=66), nullable=False),
        sa.Column('block_number', sa.BigInteger(), nullable=False),
        sa.Column('block_hash', sa.String(length=66), nullable=False),
        sa.Column('log_index', sa.Integer(), nullable=False),
        sa.Column('payload', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('processed', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('processing_note', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_staking_events')),
        sa.UniqueConstraint('tx_hash', 'log_index', name='uq_staking_events_tx_hash_log_index'),
        schema='staging',
    )
    op.create_index(
        'ix_staking_events_processed_block_log',
        'staking_events',
        ['processed', 'block_number', 'log_index'],
        unique=False,
        schema='staging',
    )
    op.create_index(
        'ix_staking_events_event_name_block',
        'staking_events',
        ['event_name', 'block_number'],
        unique=False,
        schema='staging',
    )

    op.create_table(
        'indexer_cursors',
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('block_number', sa.BigInteger(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('name', name=op.f('pk_indexer_cursors')),
        schema='staging',
    )

    # domain
    op.create_table(
        'users',
        sa.Column('wallet_address', sa.String(length=42), nullable=False),
        sa.Column('first_seen_block', sa.BigInteger(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('wallet_address', name=op.f('pk_users')),
        schema='domain',
    )

    op.create_table(
        'stakes',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('owner_address', sa.String(length=42), nullable=False),
        sa.Column('pool_id', sa.BigInteger(), nullable=False),
        sa.Column('stake_key', sa.String(length=96), nullable=False),
        sa.Column('amount', _uint256(), nullable=False),
        sa.Column('tx_hash', sa.String(length=66), nullable=False),
        sa.Column('log_index', sa.Integer(), nullable=False),
        sa.Column('block_number', sa.BigInteger(), nullable=False),
        sa.Column('staked_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.Column('unstaked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('unstake_tx_hash', sa.String(length=66), nullable=True),
        sa.Column('unstake_log_index', sa.Integer(), nullable=True),
        sa.Column('reward', _uint256(), nullable=False),
        sa.Column('early_unstake', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_stakes')),
        sa.UniqueConstraint('owner_address', 'pool_id', 'stake_key', name='uq_stakes_owner_pool_stake_key'),
        schema='domain',
    )
    op.create_index('ix_stakes_owner_active', 'stakes', ['owner_address', 'active'], unique=False, schema='domain')
    op.create_index('ix_stakes_pool_active', 'stakes', ['pool_id', 'active'], unique=False, schema='domain')

    op.create_table(
        'transactions',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('owner_address', sa.String(length=42), nullable=False),
        sa.Column('tx_hash', sa.String(length=66), nullable=False),
        sa.Column('log_index', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('amount', _uint256(), nullable=False),
        sa.Column('pool_id', sa.BigInteger(), nullable=True),
        sa.Column('block_number', sa.BigInteger(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_transactions')),
        sa.UniqueConstraint('tx_hash', 'log_index', 'type', name='uq_transactions_tx_hash_log_index_type'),
        schema='domain',
    )
    op.create_index(
        'ix_transactions_owner_block', 'transactions', ['owner_address', 'block_number'], unique=False, schema='domain'
    )
    op.create_index('ix_transactions_block', 'transactions', ['block_number'], unique=False, schema='domain')

    op.create_table(
        'user_stats',
        sa.Column('wallet_address', sa.String(length=42), nullable=False),
        sa.Column('total_staked', _uint256(), nullable=False),
        sa.Column('active_stakes', sa.Integer(), nullable=False),
        sa.Column('total_stakes', sa.Integer(), nullable=False),
        sa.Column('total_rewards', _uint256(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('wallet_address', name=op.f('pk_user_stats')),
        schema='domain',
    )

    op.create_table(
        'pool_stats',
        sa.Column('pool_id', sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column('min_amount', _uint256(), nullable=True),
        sa.Column('max_amount', _uint256(), nullable=True),
        sa.Column('apy', _uint256(), nullable=True),
        sa.Column('lock_period', _uint256(), nullable=True),
        sa.Column('created_block', sa.BigInteger(), nullable=True),
        sa.Column('total_staked', _uint256(), nullable=False),
        sa.Column('active_stakes', sa.Integer(), nullable=False),
        sa.Column('active_stakers', sa.Integer(), nullable=False),
        sa.Column('total_rewards_distributed', _uint256(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('pool_id', name=op.f('pk_pool_stats')),
        schema='domain',
    )


def downgrade() -> None:
    op.drop_table('pool_stats', schema='domain')
    op.drop_table('user_stats', schema='domain')
    op.drop_index('ix_transactions_block', table_name='transactions', schema='domain')
    op.drop_index('ix_transactions_owner_block', table_name='transactions', schema='domain')
    op.drop_table('transactions', schema='domain')
    op.drop_index('ix_stakes_pool_active', table_name='stakes', schema='domain')
    op.drop_index('ix_stakes_owner_active', table_name='stakes', schema='domain')
    op.drop_table('stakes', schema='domain')
    op.drop_table('users', schema='domain')
    op.drop_table('indexer_cursors', schema='staging')
    op.drop_index('ix_staking_events_event_name_block', table_name='staking_events', schema='staging')
    op.drop_index('ix_staking_events_processed_block_log', table_name='staking_events', schema='staging')
    op.drop_table('staking_events', schema='staging')
