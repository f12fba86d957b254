"""add scheduled notification tables (push, email, sms)

Revision ID: 001_add_scheduled_notifications
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001_add_scheduled_notifications'
down_revision = None
branch_labels = None
depends_on = None


CHANNEL_TABLES = {
    'scheduled_push_notifications': lambda: sa.Column('device_tokens', sa.JSON(), nullable=False),
    'scheduled_email_notifications': lambda: sa.Column('email', sa.String(), nullable=False),
    'scheduled_sms_notifications': lambda: sa.Column('phone', sa.String(16), nullable=False),
}


def _common_columns():
    return [
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('owner_id', sa.String(), nullable=False),
        sa.Column('subject_id', sa.String(), nullable=False),
        sa.Column('subject_label', sa.String(), nullable=False),
        sa.Column('category', sa.String(32), nullable=False, server_default='general'),
        sa.Column('kind', sa.String(), nullable=False, server_default='reminder'),
        sa.Column('due_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('reminder_lead_days', sa.Integer(), nullable=False, server_default='7'),
        sa.Column('status', sa.String(16), nullable=False, server_default='scheduled'),
        sa.Column('attempt_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('attempt_limit', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('claim_token', sa.String(36), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('claimed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_attempt_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('failed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    for table, contact_column in CHANNEL_TABLES.items():
        op.create_table(table, *_common_columns(), contact_column())
        op.create_index(f'ix_{table}_owner_id', table, ['owner_id'])
        op.create_index(f'ix_{table}_subject_id', table, ['subject_id'])
        op.create_index(f'ix_{table}_status_due', table, ['status', 'due_at'])
        op.create_index(f'ix_{table}_subject_status', table, ['subject_id', 'status'])
        op.create_index(f'ix_{table}_owner_due', table, ['owner_id', 'due_at'])
        op.create_index(f'ix_{table}_status_claimed', table, ['status', 'claimed_at'])


def downgrade() -> None:
    for table in CHANNEL_TABLES:
        for suffix in ('status_claimed', 'owner_due', 'subject_status', 'status_due', 'subject_id', 'owner_id'):
            op.drop_index(f'ix_{table}_{suffix}', table_name=table)
        op.drop_table(table)
