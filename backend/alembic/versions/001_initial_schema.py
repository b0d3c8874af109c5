"""Initial Cascade Connect schema

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

Creates all tables for:
- Accounts: builder_groups, users, refresh_tokens
- Warranty: homeowners, contractors, claims, documents
- Staff work: tasks, response_templates, appointments, appointment_guests
- Messaging: message_threads, sms_threads, sms_messages, calls
- Team chat: internal_channels, internal_messages, channel_members
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None

# Enum columns store member names
user_role = sa.Enum('ADMIN', 'BUILDER', 'HOMEOWNER', name='userrole')
claim_status = sa.Enum(
    'SUBMITTED', 'REVIEWING', 'SCHEDULING', 'SCHEDULED', 'COMPLETED',
    name='claimstatus',
)
appointment_visibility = sa.Enum('INTERNAL_ONLY', 'SHARED_WITH_HOMEOWNER', name='appointmentvisibility')
appointment_type = sa.Enum('REPAIR', 'INSPECTION', 'PHONE_CALL', 'OTHER', name='appointmenttype')
channel_type = sa.Enum('PUBLIC', 'DM', name='channeltype')
sms_direction = sa.Enum('INBOUND', 'OUTBOUND', name='smsdirection')
sms_status = sa.Enum('QUEUED', 'SENT', 'DELIVERED', 'FAILED', name='smsstatus')


def timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    ]


def upgrade() -> None:
    # ==========================================================================
    # Accounts
    # ==========================================================================

    op.create_table(
        'builder_groups',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('enrollment_slug', sa.String(length=255), nullable=False),
        *timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )
    op.create_index('ix_builder_groups_enrollment_slug', 'builder_groups', ['enrollment_slug'], unique=True)

    op.create_table(
        'homeowners',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('first_name', sa.String(length=120), nullable=True),
        sa.Column('last_name', sa.String(length=120), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('buyer_2_email', sa.String(length=255), nullable=True),
        sa.Column('buyer_2_phone', sa.String(length=32), nullable=True),
        sa.Column('street', sa.String(length=255), nullable=True),
        sa.Column('city', sa.String(length=120), nullable=True),
        sa.Column('state', sa.String(length=32), nullable=True),
        sa.Column('zip', sa.String(length=16), nullable=True),
        sa.Column('address', sa.String(length=500), nullable=False, server_default=''),
        sa.Column('builder', sa.String(length=255), nullable=True),
        sa.Column('builder_group_id', sa.UUID(), nullable=True),
        sa.Column('job_name', sa.String(length=255), nullable=True),
        sa.Column('agent_name', sa.String(length=255), nullable=True),
        sa.Column('agent_phone', sa.String(length=32), nullable=True),
        sa.Column('agent_email', sa.String(length=255), nullable=True),
        sa.Column('closing_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('preferred_walk_through_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('enrollment_comments', sa.Text(), nullable=True),
        sa.Column('sms_opt_in', sa.Boolean(), nullable=False, server_default=sa.false()),
        *timestamps(),
        sa.ForeignKeyConstraint(['builder_group_id'], ['builder_groups.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_homeowners_name', 'homeowners', ['name'], unique=False)
    op.create_index('ix_homeowners_email', 'homeowners', ['email'], unique=False)
    op.create_index('ix_homeowners_phone', 'homeowners', ['phone'], unique=False)
    op.create_index('ix_homeowners_builder_group_id', 'homeowners', ['builder_group_id'], unique=False)

    op.create_table(
        'users',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('role', user_role, nullable=False, server_default='HOMEOWNER'),
        sa.Column('internal_role', sa.String(length=100), nullable=True),
        sa.Column('builder_group_id', sa.UUID(), nullable=True),
        sa.Column('homeowner_id', sa.UUID(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
        sa.Column('email_notify_claim_submitted', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('email_notify_task_assigned', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('email_notify_homeowner_message', sa.Boolean(), nullable=False, server_default=sa.true()),
        *timestamps(),
        sa.ForeignKeyConstraint(['builder_group_id'], ['builder_groups.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['homeowner_id'], ['homeowners.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_builder_group_id', 'users', ['builder_group_id'], unique=False)
    op.create_index('ix_users_homeowner_id', 'users', ['homeowner_id'], unique=False)

    op.create_table(
        'refresh_tokens',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('revoked', sa.Boolean(), nullable=False, server_default=sa.false()),
        *timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token_hash'),
    )
    op.create_index('ix_refresh_tokens_user_id', 'refresh_tokens', ['user_id'], unique=False)

    # ==========================================================================
    # Warranty
    # ==========================================================================

    op.create_table(
        'contractors',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('company_name', sa.String(length=255), nullable=False),
        sa.Column('contact_name', sa.String(length=255), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('specialty', sa.String(length=120), nullable=True),
        *timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'claims',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('homeowner_id', sa.UUID(), nullable=True),
        sa.Column('homeowner_name', sa.String(length=255), nullable=True),
        sa.Column('homeowner_email', sa.String(length=255), nullable=True),
        sa.Column('builder_name', sa.String(length=255), nullable=True),
        sa.Column('job_name', sa.String(length=255), nullable=True),
        sa.Column('address', sa.String(length=500), nullable=True),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('category', sa.String(length=100), nullable=False, server_default='General'),
        sa.Column('claim_number', sa.String(length=32), nullable=True),
        sa.Column('status', claim_status, nullable=False, server_default='SUBMITTED'),
        sa.Column('classification', sa.String(length=64), nullable=False, server_default='Unclassified'),
        sa.Column('contractor_id', sa.UUID(), nullable=True),
        sa.Column('contractor_name', sa.String(length=255), nullable=True),
        sa.Column('contractor_email', sa.String(length=255), nullable=True),
        sa.Column('date_submitted', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('date_evaluated', sa.DateTime(timezone=True), nullable=True),
        sa.Column('scheduled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('internal_notes', sa.Text(), nullable=True),
        sa.Column('non_warranty_explanation', sa.Text(), nullable=True),
        sa.Column('summary', sa.Text(), nullable=True),
        sa.Column('attachments', sa.JSON(), nullable=False, server_default='[]'),
        sa.Column('proposed_dates', sa.JSON(), nullable=False, server_default='[]'),
        *timestamps(),
        sa.ForeignKeyConstraint(['homeowner_id'], ['homeowners.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['contractor_id'], ['contractors.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_claims_homeowner_id', 'claims', ['homeowner_id'], unique=False)
    op.create_index('ix_claims_status', 'claims', ['status'], unique=False)
    op.create_index('ix_claims_date_submitted', 'claims', ['date_submitted'], unique=False)

    op.create_table(
        'documents',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('homeowner_id', sa.UUID(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('url', sa.String(length=1000), nullable=False),
        sa.Column('type', sa.String(length=32), nullable=False, server_default='FILE'),
        sa.Column('uploaded_by', sa.String(length=255), nullable=True),
        sa.Column('uploaded_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['homeowner_id'], ['homeowners.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_documents_homeowner_id', 'documents', ['homeowner_id'], unique=False)

    # ==========================================================================
    # Staff Work
    # ==========================================================================

    op.create_table(
        'tasks',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('content', sa.Text(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('assigned_to_id', sa.UUID(), nullable=True),
        sa.Column('assigned_by_id', sa.UUID(), nullable=True),
        sa.Column('claim_id', sa.UUID(), nullable=True),
        sa.Column('context_label', sa.String(length=255), nullable=True),
        sa.Column('is_completed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('related_claim_ids', sa.JSON(), nullable=False, server_default='[]'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['assigned_to_id'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['assigned_by_id'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['claim_id'], ['claims.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_tasks_assigned_to_id', 'tasks', ['assigned_to_id'], unique=False)
    op.create_index('ix_tasks_claim_id', 'tasks', ['claim_id'], unique=False)

    op.create_table(
        'response_templates',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('category', sa.String(length=100), nullable=False, server_default='General'),
        *timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_response_templates_user_id', 'response_templates', ['user_id'], unique=False)

    op.create_table(
        'appointments',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('homeowner_id', sa.UUID(), nullable=True),
        sa.Column('visibility', appointment_visibility, nullable=False, server_default='SHARED_WITH_HOMEOWNER'),
        sa.Column('type', appointment_type, nullable=False, server_default='OTHER'),
        sa.Column('created_by_id', sa.UUID(), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(['homeowner_id'], ['homeowners.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['created_by_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_appointments_start_time', 'appointments', ['start_time'], unique=False)
    op.create_index('ix_appointments_homeowner_id', 'appointments', ['homeowner_id'], unique=False)

    op.create_table(
        'appointment_guests',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('appointment_id', sa.UUID(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=100), nullable=True),
        sa.ForeignKeyConstraint(['appointment_id'], ['appointments.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_appointment_guests_appointment_id', 'appointment_guests', ['appointment_id'], unique=False)

    # ==========================================================================
    # Homeowner Messaging & Voice Intake
    # ==========================================================================

    op.create_table(
        'message_threads',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('subject', sa.String(length=255), nullable=False),
        sa.Column('homeowner_id', sa.UUID(), nullable=False),
        sa.Column('participants', sa.JSON(), nullable=False, server_default='[]'),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('last_message_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('messages', sa.JSON(), nullable=False, server_default='[]'),
        *timestamps(),
        sa.ForeignKeyConstraint(['homeowner_id'], ['homeowners.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_message_threads_homeowner_id', 'message_threads', ['homeowner_id'], unique=False)

    op.create_table(
        'sms_threads',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('homeowner_id', sa.UUID(), nullable=False),
        sa.Column('phone_number', sa.String(length=32), nullable=False),
        sa.Column('last_message_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['homeowner_id'], ['homeowners.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('homeowner_id', name='uq_sms_threads_homeowner'),
    )

    op.create_table(
        'sms_messages',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('thread_id', sa.UUID(), nullable=False),
        sa.Column('direction', sms_direction, nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('twilio_sid', sa.String(length=64), nullable=True),
        sa.Column('status', sms_status, nullable=False, server_default='QUEUED'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['thread_id'], ['sms_threads.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_sms_messages_thread_id', 'sms_messages', ['thread_id'], unique=False)
    op.create_index('ix_sms_messages_twilio_sid', 'sms_messages', ['twilio_sid'], unique=False)

    op.create_table(
        'calls',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('vapi_call_id', sa.String(length=128), nullable=False),
        sa.Column('homeowner_id', sa.UUID(), nullable=True),
        sa.Column('homeowner_name', sa.String(length=255), nullable=True),
        sa.Column('phone_number', sa.String(length=32), nullable=True),
        sa.Column('property_address', sa.String(length=500), nullable=True),
        sa.Column('issue_description', sa.Text(), nullable=True),
        sa.Column('call_intent', sa.String(length=64), nullable=True),
        sa.Column('is_urgent', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('transcript', sa.Text(), nullable=True),
        sa.Column('recording_url', sa.String(length=1000), nullable=True),
        sa.Column('is_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('address_match_similarity', sa.String(length=16), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['homeowner_id'], ['homeowners.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('vapi_call_id'),
    )
    op.create_index('ix_calls_homeowner_id', 'calls', ['homeowner_id'], unique=False)

    # ==========================================================================
    # Team Chat
    # ==========================================================================

    op.create_table(
        'internal_channels',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('type', channel_type, nullable=False),
        sa.Column('dm_participants', sa.JSON(), nullable=True),
        sa.Column('created_by', sa.UUID(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )

    op.create_table(
        'internal_messages',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('channel_id', sa.UUID(), nullable=False),
        sa.Column('sender_id', sa.UUID(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False, server_default=''),
        sa.Column('attachments', sa.JSON(), nullable=False, server_default='[]'),
        sa.Column('mentions', sa.JSON(), nullable=False, server_default='[]'),
        sa.Column('reply_to_id', sa.UUID(), nullable=True),
        sa.Column('is_edited', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('edited_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['channel_id'], ['internal_channels.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['sender_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['reply_to_id'], ['internal_messages.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_internal_messages_channel_created', 'internal_messages', ['channel_id', 'created_at'], unique=False
    )

    op.create_table(
        'channel_members',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('channel_id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('last_read_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('joined_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('is_muted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.ForeignKeyConstraint(['channel_id'], ['internal_channels.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('channel_id', 'user_id', name='uq_channel_members'),
    )
    op.create_index('ix_channel_members_channel_id', 'channel_members', ['channel_id'], unique=False)
    op.create_index('ix_channel_members_user_id', 'channel_members', ['user_id'], unique=False)


def downgrade() -> None:
    # Drop tables in reverse order
    op.drop_table('channel_members')
    op.drop_table('internal_messages')
    op.drop_table('internal_channels')
    op.drop_table('calls')
    op.drop_table('sms_messages')
    op.drop_table('sms_threads')
    op.drop_table('message_threads')
    op.drop_table('appointment_guests')
    op.drop_table('appointments')
    op.drop_table('response_templates')
    op.drop_table('tasks')
    op.drop_table('documents')
    op.drop_table('claims')
    op.drop_table('contractors')
    op.drop_table('refresh_tokens')
    op.drop_table('users')
    op.drop_table('homeowners')
    op.drop_table('builder_groups')

    # Drop enums (PostgreSQL only)
    if op.get_bind().dialect.name == 'postgresql':
        for enum_name in (
            'smsstatus', 'smsdirection', 'channeltype', 'appointmenttype',
            'appointmentvisibility', 'claimstatus', 'userrole',
        ):
            op.execute(f"DROP TYPE IF EXISTS {enum_name}")
