"""Agents, transactions, commission ledger and leadership plan tables

Revision ID: 001_commission_engine
Revises: None
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = '001_commission_engine'
down_revision = None
branch_labels = None
depends_on = None

AGENT_TIERS = ('advisor', 'sales_leader', 'team_leader', 'group_leader', 'supreme_leader')


def upgrade():
    agent_tier = sa.Enum(*AGENT_TIERS, name='agent_tier')

    op.create_table(
        'agents',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('full_name', sa.String(), nullable=True),
        sa.Column('role', sa.String(), nullable=False, server_default='agent'),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('agent_tier', agent_tier, nullable=False, server_default='advisor'),
        sa.Column('tier_effective_date', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('tier_promoted_by_id', sa.Integer(), sa.ForeignKey('agents.id'), nullable=True),
        sa.Column('recruited_by_id', sa.Integer(), sa.ForeignKey('agents.id'), nullable=True),
        sa.Column('recruited_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_agents_id', 'agents', ['id'])
    op.create_index('ix_agents_email', 'agents', ['email'], unique=True)
    op.create_index('ix_agents_agent_tier', 'agents', ['agent_tier'])
    op.create_index('ix_agents_recruited_by_id', 'agents', ['recruited_by_id'])

    op.create_table(
        'agent_tier_history',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('agent_id', sa.Integer(), sa.ForeignKey('agents.id'), nullable=False),
        sa.Column('previous_tier', sa.String(), nullable=True),
        sa.Column('new_tier', sa.String(), nullable=False),
        sa.Column('effective_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('promoted_by_id', sa.Integer(), sa.ForeignKey('agents.id'), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('performance_metrics', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_agent_tier_history_id', 'agent_tier_history', ['id'])
    op.create_index('ix_agent_tier_history_agent_id', 'agent_tier_history', ['agent_id'])

    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('agent_id', sa.Integer(), sa.ForeignKey('agents.id'), nullable=False),
        sa.Column('market_type', sa.String(), nullable=False),
        sa.Column('transaction_type', sa.String(), nullable=False),
        sa.Column('transaction_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('property_data', sa.JSON(), nullable=True),
        sa.Column('client_data', sa.JSON(), nullable=True),
        sa.Column('is_co_broking', sa.Boolean(), server_default=sa.false()),
        sa.Column('co_broking_data', sa.JSON(), nullable=True),
        sa.Column('commission_type', sa.String(), nullable=False),
        sa.Column('commission_value', sa.Numeric(15, 2), nullable=False),
        sa.Column('commission_amount', sa.Numeric(15, 2), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='draft'),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reviewed_by_id', sa.Integer(), sa.ForeignKey('agents.id'), nullable=True),
        sa.Column('review_notes', sa.Text(), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_transactions_id', 'transactions', ['id'])
    op.create_index('ix_transactions_agent_id', 'transactions', ['agent_id'])
    op.create_index('ix_transactions_status', 'transactions', ['status'])

    op.create_table(
        'transaction_status_changes',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('transaction_id', sa.Integer(), sa.ForeignKey('transactions.id'), nullable=False),
        sa.Column('from_status', sa.String(), nullable=False),
        sa.Column('to_status', sa.String(), nullable=False),
        sa.Column('changed_by_id', sa.Integer(), sa.ForeignKey('agents.id'), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_transaction_status_changes_id', 'transaction_status_changes', ['id'])
    op.create_index(
        'ix_transaction_status_changes_transaction_id', 'transaction_status_changes', ['transaction_id']
    )

    op.create_table(
        'commission_ledger_entries',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('transaction_id', sa.Integer(), sa.ForeignKey('transactions.id'), nullable=False),
        sa.Column('recipient_agent_id', sa.Integer(), sa.ForeignKey('agents.id'), nullable=False),
        sa.Column('source_agent_id', sa.Integer(), sa.ForeignKey('agents.id'), nullable=False),
        sa.Column('role', sa.String(), nullable=False),
        sa.Column('amount', sa.Numeric(15, 2), nullable=False),
        sa.Column('rate_percent', sa.Numeric(5, 2), nullable=False),
        sa.Column('base_amount', sa.Numeric(15, 2), nullable=False),
        sa.Column('recipient_tier', sa.String(), nullable=False),
        sa.Column('hop', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_by_id', sa.Integer(), sa.ForeignKey('agents.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint(
            'transaction_id', 'recipient_agent_id', 'role',
            name='uq_ledger_transaction_recipient_role',
        ),
    )
    op.create_index('ix_commission_ledger_entries_id', 'commission_ledger_entries', ['id'])
    op.create_index(
        'ix_commission_ledger_entries_transaction_id', 'commission_ledger_entries', ['transaction_id']
    )
    op.create_index(
        'ix_commission_ledger_entries_recipient_agent_id', 'commission_ledger_entries', ['recipient_agent_id']
    )


def downgrade():
    op.drop_table('commission_ledger_entries')
    op.drop_table('transaction_status_changes')
    op.drop_table('transactions')
    op.drop_table('agent_tier_history')
    op.drop_table('agents')
    sa.Enum(name='agent_tier').drop(op.get_bind(), checkfirst=True)
