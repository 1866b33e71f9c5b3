"""Initial schema: disbursements, legs, ledger records, team members.

Revision ID: 001
Revises: 
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


DISBURSEMENT_STATUSES = (
    'BROADCAST', 'POLLING', 'CONFIRMED', 'FAILED', 'TIMED_OUT', 'EXPANDED', 'NOTIFIED',
)
NOTIFICATION_STATES = ('NOT_SENT', 'SENT', 'SKIPPED_NO_CONTACT', 'FAILED')


def upgrade() -> None:
    # Team members table (identity store)
    op.create_table(
        'team_members',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('organization_id', sa.String(64), nullable=False, index=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('wallet_address', sa.String(128), nullable=False, index=True),
        sa.Column('btc_address', sa.String(128), nullable=True, index=True),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )
    op.create_index('ix_team_members_org_wallet', 'team_members', ['organization_id', 'wallet_address'])

    # Disbursements table
    op.create_table(
        'disbursements',
        sa.Column('transaction_id', sa.String(80), primary_key=True),
        sa.Column('kind', sa.Enum('DIRECT', 'BATCH', name='disbursementkind'), nullable=False),
        sa.Column('declared_total', sa.BigInteger(), nullable=False),
        sa.Column('period_reference', sa.String(255), nullable=True),
        sa.Column('sender_address', sa.String(128), nullable=True),
        sa.Column('recipient_address', sa.String(128), nullable=True),
        sa.Column('organization_id', sa.String(64), nullable=True, index=True),
        sa.Column('status', sa.Enum(*DISBURSEMENT_STATUSES, name='disbursementstatus'), default='BROADCAST', index=True),
        sa.Column('poll_attempts', sa.Integer(), default=0),
        sa.Column('last_chain_status', sa.String(32), nullable=True),
        sa.Column('confirmed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now(), index=True),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )
    op.create_index('ix_disbursements_status_created', 'disbursements', ['status', 'created_at'])

    # Disbursement legs table
    op.create_table(
        'disbursement_legs',
        sa.Column('leg_id', sa.String(64), primary_key=True),
        sa.Column('parent_transaction_id', sa.String(80), sa.ForeignKey('disbursements.transaction_id'), nullable=False, index=True),
        sa.Column('recipient_address', sa.String(128), nullable=False, index=True),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('position', sa.Integer(), default=0),
        sa.Column('is_degraded', sa.Boolean(), default=False),
        sa.Column('override_name', sa.String(255), nullable=True),
        sa.Column('recipient_display_name', sa.String(255), nullable=True),
        sa.Column('notification_state', sa.Enum(*NOTIFICATION_STATES, name='notificationstate'), nullable=False, default='NOT_SENT'),
        sa.Column('notification_error', sa.Text(), nullable=True),
        sa.Column('notified_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.UniqueConstraint('parent_transaction_id', 'recipient_address', name='uq_leg_parent_recipient'),
    )

    # Ledger records table (append-only, hash chain per transaction)
    op.create_table(
        'ledger_records',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('transaction_id', sa.String(80), nullable=False, index=True),
        sa.Column('sequence_number', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(32), nullable=False, index=True),
        sa.Column('legs', sa.JSON(), nullable=False),
        sa.Column('legs_total', sa.BigInteger(), nullable=False, default=0),
        sa.Column('detail', sa.JSON(), nullable=True),
        sa.Column('recorded_at', sa.DateTime(), nullable=False),
        sa.Column('correlation_id', sa.String(255), nullable=False, index=True),
        sa.Column('prev_hash', sa.String(64), nullable=True),
        sa.Column('hash', sa.String(64), nullable=False, index=True),
        sa.UniqueConstraint('transaction_id', 'sequence_number', name='uq_ledger_tx_sequence'),
    )
    op.create_index('ix_ledger_records_recorded_status', 'ledger_records', ['recorded_at', 'status'])


def downgrade() -> None:
    op.drop_table('ledger_records')
    op.drop_table('disbursement_legs')
    op.drop_table('disbursements')
    op.drop_table('team_members')

    op.execute("DROP TYPE IF EXISTS notificationstate")
    op.execute("DROP TYPE IF EXISTS disbursementstatus")
    op.execute("DROP TYPE IF EXISTS disbursementkind")
