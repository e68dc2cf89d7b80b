"""create_ledger_tables

Revision ID: 5c1e9a7d2b30
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '5c1e9a7d2b30'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# Shared enum types are created once up front; columns reference them
# with create_type=False.
ENUMS = {
    'token_transaction_type_enum': ('usage', 'purchase', 'refund', 'bonus', 'withdrawal'),
    'earnings_transaction_type_enum': (
        'usage', 'bonus', 'adjustment', 'withdrawal', 'withdrawal_reversal'
    ),
    'earnings_source_enum': ('usage', 'admin', 'withdrawal'),
    'earnings_transaction_status_enum': ('pending', 'completed'),
    'bonus_transaction_type_enum': (
        'commission_level1', 'commission_level2', 'commission_level3',
        'withdrawal', 'withdrawal_refund',
    ),
    'bonus_transaction_status_enum': ('pending', 'completed', 'rejected'),
    'withdrawal_kind_enum': ('creator_earnings', 'bonus', 'tokens'),
    'withdrawal_status_enum': ('pending', 'approved', 'processing', 'completed', 'rejected'),
    'withdrawal_action_enum': ('request', 'approve', 'reject', 'process', 'complete'),
    'payout_method_enum': ('paypal', 'usdt_trc20'),
    'settlement_status_enum': ('pending', 'completed', 'reversed'),
    'payment_status_enum': ('pending', 'completed', 'failed'),
}

OPEN_STATUS_SQL = "status IN ('pending', 'approved', 'processing')"


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _timestamps(updated: bool = True) -> list:
    cols = [sa.Column('created_at', sa.DateTime(timezone=True), nullable=False)]
    if updated:
        cols.append(sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False))
    return cols


def upgrade() -> None:
    """Upgrade schema - Create token, earnings, bonus and withdrawal tables."""
    bind = op.get_bind()
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    # Tokens
    op.create_table(
        'user_tokens',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('balance', sa.Integer(), server_default='0', nullable=False),
        sa.Column('is_frozen', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('frozen_reason', sa.Text(), nullable=True),
        sa.Column('frozen_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('balance >= 0', name='ck_user_tokens_balance_non_negative'),
        sa.PrimaryKeyConstraint('id', name='pk_user_tokens'),
    )
    op.create_index('ix_user_tokens_user_id', 'user_tokens', ['user_id'], unique=True)

    op.create_table(
        'token_transactions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('transaction_type', _enum('token_transaction_type_enum'), nullable=False),
        sa.Column('balance_after', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(), nullable=True),
        sa.Column('idempotency_key', sa.String(), nullable=True),
        sa.Column('reversal_of_transaction_id', sa.Uuid(), nullable=True),
        sa.Column('metadata', postgresql.JSONB(), nullable=True),
        *_timestamps(updated=False),
        sa.CheckConstraint('amount <> 0', name='ck_token_transactions_amount_non_zero'),
        sa.PrimaryKeyConstraint('id', name='pk_token_transactions'),
        sa.UniqueConstraint('idempotency_key', name='uq_token_transactions_idempotency_key'),
    )
    op.create_index('ix_token_transactions_user_id', 'token_transactions', ['user_id'])
    op.create_index(
        'ix_token_transactions_user_created', 'token_transactions', ['user_id', 'created_at']
    )

    # Creator earnings
    op.create_table(
        'models',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('creator_id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('earnings_per_use', sa.Numeric(14, 4), server_default='0', nullable=False),
        sa.Column('earnings_per_token', sa.Numeric(14, 6), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=False),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id', name='pk_models'),
    )
    op.create_index('ix_models_creator_id', 'models', ['creator_id'])

    op.create_table(
        'model_creator_earnings',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('model_id', sa.Uuid(), nullable=False),
        sa.Column('creator_id', sa.String(), nullable=False),
        sa.Column('total_usage_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('total_tokens_consumed', sa.BigInteger(), server_default='0', nullable=False),
        sa.Column('total_earnings', sa.Numeric(14, 4), server_default='0', nullable=False),
        sa.Column('last_usage_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            'total_earnings >= 0', name='ck_model_creator_earnings_total_earnings_non_negative'
        ),
        sa.ForeignKeyConstraint(
            ['model_id'], ['models.id'], name='fk_model_creator_earnings_model_id_models'
        ),
        sa.PrimaryKeyConstraint('id', name='pk_model_creator_earnings'),
        sa.UniqueConstraint('model_id', 'creator_id', name='uq_model_creator_earnings'),
    )
    op.create_index(
        'ix_model_creator_earnings_model_id', 'model_creator_earnings', ['model_id']
    )
    op.create_index(
        'ix_model_creator_earnings_creator_id', 'model_creator_earnings', ['creator_id']
    )

    op.create_table(
        'earnings_transactions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('creator_id', sa.String(), nullable=False),
        sa.Column('model_id', sa.Uuid(), nullable=True),
        sa.Column('amount', sa.Numeric(14, 4), nullable=False),
        sa.Column('transaction_type', _enum('earnings_transaction_type_enum'), nullable=False),
        sa.Column('source', _enum('earnings_source_enum'), nullable=False),
        sa.Column('status', _enum('earnings_transaction_status_enum'), nullable=False),
        sa.Column('added_by', sa.String(), nullable=True),
        sa.Column('usage_log_id', sa.Uuid(), nullable=True),
        sa.Column('withdrawal_request_id', sa.Uuid(), nullable=True),
        sa.Column('description', sa.String(), nullable=True),
        sa.Column('metadata', postgresql.JSONB(), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(
            ['model_id'], ['models.id'], name='fk_earnings_transactions_model_id_models'
        ),
        sa.PrimaryKeyConstraint('id', name='pk_earnings_transactions'),
    )
    op.create_index(
        'ix_earnings_transactions_creator_id', 'earnings_transactions', ['creator_id']
    )
    op.create_index(
        'ix_earnings_transactions_model_id', 'earnings_transactions', ['model_id']
    )
    op.create_index(
        'ix_earnings_transactions_withdrawal_request_id',
        'earnings_transactions',
        ['withdrawal_request_id'],
    )

    op.create_table(
        'model_usage_logs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('event_id', sa.String(), nullable=True),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('model_id', sa.Uuid(), nullable=False),
        sa.Column('usage_type', sa.String(), nullable=False),
        sa.Column('tokens_consumed', sa.Integer(), server_default='0', nullable=False),
        sa.Column('base_earnings', sa.Numeric(18, 6), server_default='0', nullable=False),
        sa.Column('multiplier', sa.Numeric(6, 3), server_default='1', nullable=False),
        sa.Column('earnings_generated', sa.Numeric(14, 4), server_default='0', nullable=False),
        sa.Column('usage_metadata', postgresql.JSONB(), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(
            ['model_id'], ['models.id'], name='fk_model_usage_logs_model_id_models'
        ),
        sa.PrimaryKeyConstraint('id', name='pk_model_usage_logs'),
        sa.UniqueConstraint('event_id', name='uq_model_usage_logs_event_id'),
    )
    op.create_index('ix_model_usage_logs_user_id', 'model_usage_logs', ['user_id'])
    op.create_index(
        'ix_model_usage_logs_model_created', 'model_usage_logs', ['model_id', 'created_at']
    )

    op.create_table(
        'model_analytics',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('model_id', sa.Uuid(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('usage_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('tokens_consumed', sa.BigInteger(), server_default='0', nullable=False),
        sa.Column('earnings_generated', sa.Numeric(14, 4), server_default='0', nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ['model_id'], ['models.id'], name='fk_model_analytics_model_id_models'
        ),
        sa.PrimaryKeyConstraint('id', name='pk_model_analytics'),
        sa.UniqueConstraint('model_id', 'date', name='uq_model_analytics_model_date'),
    )

    # Affiliate bonus wallets
    op.create_table(
        'bonus_wallets',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('balance', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('withdrawn_amount', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('lifetime_earnings', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('is_frozen', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('frozen_reason', sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('balance >= 0', name='ck_bonus_wallets_balance_non_negative'),
        sa.PrimaryKeyConstraint('id', name='pk_bonus_wallets'),
    )
    op.create_index('ix_bonus_wallets_user_id', 'bonus_wallets', ['user_id'], unique=True)

    op.create_table(
        'bonus_transactions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('transaction_type', _enum('bonus_transaction_type_enum'), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('status', _enum('bonus_transaction_status_enum'), nullable=False),
        sa.Column('from_user_id', sa.String(), nullable=True),
        sa.Column('payment_id', sa.String(), nullable=True),
        sa.Column('level', sa.Integer(), nullable=True),
        sa.Column('withdrawal_request_id', sa.Uuid(), nullable=True),
        sa.Column('description', sa.String(), nullable=True),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id', name='pk_bonus_transactions'),
        sa.UniqueConstraint(
            'payment_id', 'level', name='uq_bonus_transactions_payment_level'
        ),
    )
    op.create_index('ix_bonus_transactions_user_id', 'bonus_transactions', ['user_id'])
    op.create_index('ix_bonus_transactions_payment_id', 'bonus_transactions', ['payment_id'])
    op.create_index(
        'ix_bonus_transactions_withdrawal_request_id',
        'bonus_transactions',
        ['withdrawal_request_id'],
    )

    # Withdrawals
    op.create_table(
        'withdrawal_requests',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('kind', _enum('withdrawal_kind_enum'), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('fee_amount', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('net_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('payout_method', _enum('payout_method_enum'), nullable=False),
        sa.Column('payment_details', postgresql.JSONB(), nullable=False),
        sa.Column('status', _enum('withdrawal_status_enum'), nullable=False),
        sa.Column('reserved_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('token_amount', sa.Integer(), nullable=True),
        sa.Column('token_rate', sa.Numeric(12, 6), nullable=True),
        sa.Column('approved_by', sa.String(), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.Column('transaction_hash', sa.String(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('amount > 0', name='ck_withdrawal_requests_amount_positive'),
        sa.PrimaryKeyConstraint('id', name='pk_withdrawal_requests'),
    )
    op.create_index('ix_withdrawal_requests_user_id', 'withdrawal_requests', ['user_id'])
    op.create_index(
        'ix_withdrawal_requests_status_created', 'withdrawal_requests', ['status', 'created_at']
    )
    op.create_index(
        'uq_withdrawal_requests_one_open_per_user',
        'withdrawal_requests',
        ['user_id'],
        unique=True,
        postgresql_where=sa.text(OPEN_STATUS_SQL),
    )

    op.create_table(
        'withdrawal_history',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('withdrawal_request_id', sa.Uuid(), nullable=False),
        sa.Column('action', _enum('withdrawal_action_enum'), nullable=False),
        sa.Column('from_status', _enum('withdrawal_status_enum'), nullable=True),
        sa.Column('to_status', _enum('withdrawal_status_enum'), nullable=False),
        sa.Column('performed_by', sa.String(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(
            ['withdrawal_request_id'],
            ['withdrawal_requests.id'],
            name='fk_withdrawal_history_withdrawal_request_id_withdrawal_requests',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_withdrawal_history'),
    )
    op.create_index(
        'ix_withdrawal_history_withdrawal_request_id',
        'withdrawal_history',
        ['withdrawal_request_id'],
    )

    op.create_table(
        'withdrawal_allocations',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('withdrawal_request_id', sa.Uuid(), nullable=False),
        sa.Column('earnings_id', sa.Uuid(), nullable=False),
        sa.Column('amount', sa.Numeric(14, 4), nullable=False),
        sa.Column('restored_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(
            ['withdrawal_request_id'],
            ['withdrawal_requests.id'],
            name='fk_withdrawal_allocations_withdrawal_request_id_withdrawal_requests',
        ),
        sa.ForeignKeyConstraint(
            ['earnings_id'],
            ['model_creator_earnings.id'],
            name='fk_withdrawal_allocations_earnings_id_model_creator_earnings',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_withdrawal_allocations'),
    )
    op.create_index(
        'ix_withdrawal_allocations_withdrawal_request_id',
        'withdrawal_allocations',
        ['withdrawal_request_id'],
    )

    op.create_table(
        'withdrawal_transactions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('withdrawal_request_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('net_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('payout_method', _enum('payout_method_enum'), nullable=False),
        sa.Column('status', _enum('settlement_status_enum'), nullable=False),
        sa.Column('transaction_hash', sa.String(), nullable=True),
        sa.Column('processed_by', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ['withdrawal_request_id'],
            ['withdrawal_requests.id'],
            name='fk_withdrawal_transactions_withdrawal_request_id_withdrawal_requests',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_withdrawal_transactions'),
    )
    op.create_index(
        'ix_withdrawal_transactions_withdrawal_request_id',
        'withdrawal_transactions',
        ['withdrawal_request_id'],
    )
    op.create_index(
        'ix_withdrawal_transactions_user_id', 'withdrawal_transactions', ['user_id']
    )

    # Payments and settings
    op.create_table(
        'payment_transactions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('provider', sa.String(), server_default='stripe', nullable=False),
        sa.Column('provider_session_id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('tokens', sa.Integer(), server_default='0', nullable=False),
        sa.Column('status', _enum('payment_status_enum'), nullable=False),
        sa.Column('metadata', postgresql.JSONB(), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_payment_transactions'),
    )
    op.create_index(
        'ix_payment_transactions_provider_session_id',
        'payment_transactions',
        ['provider_session_id'],
        unique=True,
    )
    op.create_index('ix_payment_transactions_user_id', 'payment_transactions', ['user_id'])
    op.create_index(
        'ix_payment_transactions_status_created',
        'payment_transactions',
        ['status', 'created_at'],
    )

    op.create_table(
        'admin_settings',
        sa.Column('key', sa.String(), nullable=False),
        sa.Column('value', postgresql.JSONB(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('updated_by', sa.String(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('key', name='pk_admin_settings'),
    )


def downgrade() -> None:
    """Downgrade schema - Drop ledger tables."""
    for table in (
        'admin_settings',
        'payment_transactions',
        'withdrawal_transactions',
        'withdrawal_allocations',
        'withdrawal_history',
        'withdrawal_requests',
        'bonus_transactions',
        'bonus_wallets',
        'model_analytics',
        'model_usage_logs',
        'earnings_transactions',
        'model_creator_earnings',
        'models',
        'token_transactions',
        'user_tokens',
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for name in ENUMS:
        postgresql.ENUM(name=name).drop(bind, checkfirst=True)
