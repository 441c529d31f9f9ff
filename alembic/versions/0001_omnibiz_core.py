"""omnibiz_core

Revision ID: 0001_omnibiz_core
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_omnibiz_core'
down_revision = None
branch_labels = None
depends_on = None

MONEY = sa.Numeric(14, 2)


def upgrade() -> None:
    """Users, wallets, ledger and messaging tables"""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('full_name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('hashed_password', sa.String(), nullable=False),
        sa.Column('role', sa.String(), nullable=False, server_default='business_owner'),
        sa.Column('currency', sa.String(), nullable=True),
        sa.Column('invited_by_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_invited_by_id', 'users', ['invited_by_id'])

    op.create_table(
        'wallets',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False, unique=True),
        sa.Column('balance', MONEY, nullable=False, server_default='0'),
        sa.Column('currency', sa.String(3), nullable=False, server_default='KES'),
        sa.Column('daily_limit', MONEY, nullable=False),
        sa.Column('per_transaction_limit', MONEY, nullable=False),
        sa.Column('today_spent', MONEY, nullable=False, server_default='0'),
        sa.Column('last_reset_date', sa.Date(), nullable=True),
        sa.Column('hashed_pin', sa.String(), nullable=True),
        sa.Column('two_factor_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_frozen', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('frozen_reason', sa.String(), nullable=True),
        sa.Column('frozen_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('total_deposits', MONEY, nullable=False, server_default='0'),
        sa.Column('total_withdrawals', MONEY, nullable=False, server_default='0'),
        sa.Column('total_transactions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_transaction_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('balance >= 0', name='ck_wallets_balance_non_negative'),
    )
    op.create_index('ix_wallets_id', 'wallets', ['id'])
    op.create_index('ix_wallets_user_id', 'wallets', ['user_id'])
    op.create_index('ix_wallets_active_frozen', 'wallets', ['is_active', 'is_frozen'])

    op.create_table(
        'wallet_connected_accounts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('wallet_id', sa.Integer(), sa.ForeignKey('wallets.id'), nullable=False),
        sa.Column('account_type', sa.String(), nullable=False),
        sa.Column('account_name', sa.String(), nullable=True),
        sa.Column('account_number', sa.String(), nullable=False),
        sa.Column('provider', sa.String(), nullable=True),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('added_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('wallet_id', 'account_type', 'account_number', name='uq_connected_account'),
    )
    op.create_index('ix_wallet_connected_accounts_wallet_id', 'wallet_connected_accounts', ['wallet_id'])

    op.create_table(
        'financial_transactions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('description', sa.String(), nullable=True),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('category', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='completed'),
        sa.Column('reference', sa.String(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('date', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_financial_transactions_user_id', 'financial_transactions', ['user_id'])
    op.create_index('ix_financial_transactions_category', 'financial_transactions', ['category'])
    op.create_index('ix_financial_transactions_user_date', 'financial_transactions', ['user_id', 'date'])

    op.create_table(
        'conversations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('business_owner_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('business_owner_name', sa.String(), nullable=False),
        sa.Column('customer_name', sa.String(), nullable=False),
        sa.Column('customer_email', sa.String(), nullable=True),
        sa.Column('customer_phone', sa.String(), nullable=True),
        sa.Column('last_message_content', sa.Text(), nullable=True),
        sa.Column('last_message_sender_id', sa.Integer(), nullable=True),
        sa.Column('last_message_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('unread_business_owner', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('unread_customer', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(), nullable=False, server_default='active'),
        sa.Column('priority', sa.String(), nullable=False, server_default='normal'),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('business_owner_id', 'customer_id', name='uq_conversation_pair'),
    )
    op.create_index('ix_conversations_business_owner_id', 'conversations', ['business_owner_id'])
    op.create_index('ix_conversations_customer_id', 'conversations', ['customer_id'])
    op.create_index('ix_conversations_status_updated', 'conversations', ['status', 'updated_at'])

    op.create_table(
        'messages',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('conversation_id', sa.Integer(), sa.ForeignKey('conversations.id'), nullable=False),
        sa.Column('sender_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('sender_kind', sa.String(), nullable=False),
        sa.Column('sender_name', sa.String(), nullable=False),
        sa.Column('sender_role', sa.String(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('attachments', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='sent'),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_messages_conversation_id', 'messages', ['conversation_id'])
    op.create_index('ix_messages_sender_id', 'messages', ['sender_id'])
    op.create_index('ix_messages_status', 'messages', ['status'])
    op.create_index('ix_messages_conversation_created', 'messages', ['conversation_id', 'created_at'])

    op.create_table(
        'message_read_receipts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('message_id', sa.Integer(), sa.ForeignKey('messages.id'), nullable=False),
        sa.Column('reader_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('message_id', 'reader_id', name='uq_read_receipt'),
    )
    op.create_index('ix_message_read_receipts_message_id', 'message_read_receipts', ['message_id'])


def downgrade() -> None:
    """Drop all OmniBiz tables"""
    op.drop_table('message_read_receipts')
    op.drop_table('messages')
    op.drop_table('conversations')
    op.drop_table('financial_transactions')
    op.drop_table('wallet_connected_accounts')
    op.drop_table('wallets')
    op.drop_table('users')
