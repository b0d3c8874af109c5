"""Outbound email log

Revision ID: 002_email_logs
Revises: 001_initial_schema
Create Date: 2026-10-19

Adds email_logs, one row per email handed to SendGrid, updated by the
SendGrid event webhook.
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '002_email_logs'
down_revision = '001_initial_schema'
branch_labels = None
depends_on = None

email_status = sa.Enum('SENT', 'FAILED', 'READ', name='emailstatus')


def upgrade() -> None:
    op.create_table(
        'email_logs',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('recipient', sa.String(length=255), nullable=False),
        sa.Column('subject', sa.String(length=500), nullable=False),
        sa.Column('status', email_status, nullable=False),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('sendgrid_message_id', sa.String(length=255), nullable=True),
        sa.Column('opened_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_email_logs_recipient', 'email_logs', ['recipient'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_email_logs_recipient', table_name='email_logs')
    op.drop_table('email_logs')

    # Drop enum (PostgreSQL only)
    if op.get_bind().dialect.name == 'postgresql':
        op.execute("DROP TYPE IF EXISTS emailstatus")
