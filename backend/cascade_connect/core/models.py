"""
Cascade Connect - Database Models
==================================

SQLAlchemy models for all entities.
Homeowners and their warranty claims are the center of the schema;
chat, SMS and voice calls hang off homeowners and staff users.
"""

import enum
from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cascade_connect.core.database import Base, utcnow


# ==========================================================================
# Enums
# ==========================================================================

class UserRole(str, enum.Enum):
    """User roles for access control."""
    ADMIN = "ADMIN"          # Internal employee
    BUILDER = "BUILDER"      # Builder group user
    HOMEOWNER = "HOMEOWNER"  # Linked to one homeowner record


class ClaimStatus(str, enum.Enum):
    """Lifecycle of a warranty claim."""
    SUBMITTED = "SUBMITTED"
    REVIEWING = "REVIEWING"
    SCHEDULING = "SCHEDULING"
    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"


OPEN_CLAIM_STATUSES = (
    ClaimStatus.SUBMITTED,
    ClaimStatus.REVIEWING,
    ClaimStatus.SCHEDULING,
    ClaimStatus.SCHEDULED,
)


class ClaimClassification(str, enum.Enum):
    """Warranty classification assigned during evaluation."""
    SIXTY_DAY = "60 Day"
    ELEVEN_MONTH = "11 Month"
    NON_WARRANTY = "Non-Warranty"
    COURTESY_REPAIR = "Courtesy Repair (Non-Warranty)"
    HOLD_FOR_ELEVEN_MONTH = "Hold for 11 Month"
    NEEDS_ATTENTION = "Needs Attention"
    OTHER = "Other"
    SERVICE_COMPLETE = "Service Complete"
    DUPLICATE = "Duplicate"
    UNCLASSIFIED = "Unclassified"


class AppointmentVisibility(str, enum.Enum):
    INTERNAL_ONLY = "internal_only"
    SHARED_WITH_HOMEOWNER = "shared_with_homeowner"


class AppointmentType(str, enum.Enum):
    REPAIR = "repair"
    INSPECTION = "inspection"
    PHONE_CALL = "phone_call"
    OTHER = "other"


class ChannelType(str, enum.Enum):
    PUBLIC = "public"
    DM = "dm"


class SmsDirection(str, enum.Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class SmsStatus(str, enum.Enum):
    QUEUED = "queued"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"


class EmailStatus(str, enum.Enum):
    SENT = "sent"
    FAILED = "failed"
    READ = "read"


# ==========================================================================
# Mixins
# ==========================================================================

class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )


def uuid_pk() -> Mapped[Any]:
    return mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid4)


# ==========================================================================
# Accounts
# ==========================================================================

class BuilderGroup(Base, TimestampMixin):
    """A home builder whose homeowners are serviced under warranty."""

    __tablename__ = "builder_groups"

    id: Mapped[UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    enrollment_slug: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False
    )

    def __repr__(self) -> str:
        return f"<BuilderGroup {self.name}>"


class User(Base, TimestampMixin):
    """User account model."""

    __tablename__ = "users"

    id: Mapped[UUID] = uuid_pk()
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole),
        default=UserRole.HOMEOWNER,
        nullable=False,
    )
    internal_role: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    builder_group_id: Mapped[Optional[UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("builder_groups.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    homeowner_id: Mapped[Optional[UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("homeowners.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_login: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Email notification preferences
    email_notify_claim_submitted: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )
    email_notify_task_assigned: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )
    email_notify_homeowner_message: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )

    @property
    def is_staff(self) -> bool:
        return self.role in (UserRole.ADMIN, UserRole.BUILDER)

    def __repr__(self) -> str:
        return f"<User {self.email}>"


class RefreshToken(Base, TimestampMixin):
    """Refresh token storage for JWT authentication."""

    __tablename__ = "refresh_tokens"

    id: Mapped[UUID] = uuid_pk()
    user_id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    token_hash: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revoked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<RefreshToken {self.id}>"


# ==========================================================================
# Homeowners & Claims
# ==========================================================================

class Homeowner(Base, TimestampMixin):
    """A home buyer enrolled in warranty service."""

    __tablename__ = "homeowners"

    id: Mapped[UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True, index=True)
    buyer_2_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    buyer_2_phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    street: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    zip: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    address: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    builder: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    builder_group_id: Mapped[Optional[UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("builder_groups.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    job_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    agent_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    agent_phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    agent_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    closing_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    preferred_walk_through_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    enrollment_comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sms_opt_in: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<Homeowner {self.name}>"


class Contractor(Base, TimestampMixin):
    """Sub-contractor that can be assigned to claims."""

    __tablename__ = "contractors"

    id: Mapped[UUID] = uuid_pk()
    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    specialty: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)


class Claim(Base, TimestampMixin):
    """
    Warranty claim.

    Homeowner, builder and address fields are copied from the homeowner
    at creation time so lists render without joins.
    """

    __tablename__ = "claims"

    id: Mapped[UUID] = uuid_pk()
    homeowner_id: Mapped[Optional[UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("homeowners.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    homeowner_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    homeowner_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    builder_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    job_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="General")
    claim_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    status: Mapped[ClaimStatus] = mapped_column(
        Enum(ClaimStatus),
        default=ClaimStatus.SUBMITTED,
        nullable=False,
        index=True,
    )
    classification: Mapped[str] = mapped_column(
        String(64),
        default=ClaimClassification.UNCLASSIFIED.value,
        nullable=False,
    )

    contractor_id: Mapped[Optional[UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("contractors.id", ondelete="SET NULL"),
        nullable=True,
    )
    contractor_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    contractor_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    date_submitted: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
        index=True,
    )
    date_evaluated: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    scheduled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    internal_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    non_warranty_explanation: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    attachments: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    proposed_dates: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    def __repr__(self) -> str:
        return f"<Claim {self.claim_number or self.id} {self.status.value}>"


class Document(Base):
    """File attached to a homeowner (plans, warranty PDFs, photos)."""

    __tablename__ = "documents"

    id: Mapped[UUID] = uuid_pk()
    homeowner_id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("homeowners.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str] = mapped_column(String(1000), nullable=False)
    type: Mapped[str] = mapped_column(String(32), default="FILE", nullable=False)
    uploaded_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )


# ==========================================================================
# Tasks & Templates
# ==========================================================================

class Task(Base):
    """
    Staff task or note.

    A task without an assignee is a personal note.
    """

    __tablename__ = "tasks"

    id: Mapped[UUID] = uuid_pk()
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    assigned_to_id: Mapped[Optional[UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    assigned_by_id: Mapped[Optional[UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    claim_id: Mapped[Optional[UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("claims.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    context_label: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    related_claim_ids: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )


class ResponseTemplate(Base, TimestampMixin):
    """Canned reply owned by a staff user."""

    __tablename__ = "response_templates"

    id: Mapped[UUID] = uuid_pk()
    user_id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(100), default="General", nullable=False)


# ==========================================================================
# Schedule
# ==========================================================================

class Appointment(Base, TimestampMixin):
    """Calendar entry, optionally shared with the homeowner."""

    __tablename__ = "appointments"

    id: Mapped[UUID] = uuid_pk()
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    homeowner_id: Mapped[Optional[UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("homeowners.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    visibility: Mapped[AppointmentVisibility] = mapped_column(
        Enum(AppointmentVisibility),
        default=AppointmentVisibility.SHARED_WITH_HOMEOWNER,
        nullable=False,
    )
    type: Mapped[AppointmentType] = mapped_column(
        Enum(AppointmentType),
        default=AppointmentType.OTHER,
        nullable=False,
    )
    created_by_id: Mapped[Optional[UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    guests: Mapped[list["AppointmentGuest"]] = relationship(
        back_populates="appointment",
        lazy="selectin",
        cascade="all, delete-orphan",
    )


class AppointmentGuest(Base):
    __tablename__ = "appointment_guests"

    id: Mapped[UUID] = uuid_pk()
    appointment_id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("appointments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    appointment: Mapped["Appointment"] = relationship(back_populates="guests")


# ==========================================================================
# Homeowner Messaging
# ==========================================================================

class MessageThread(Base, TimestampMixin):
    """Conversation between staff and a homeowner."""

    __tablename__ = "message_threads"

    id: Mapped[UUID] = uuid_pk()
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    homeowner_id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("homeowners.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    participants: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_message_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    messages: Mapped[list] = mapped_column(JSON, default=list, nullable=False)


class SmsThread(Base):
    """One SMS conversation per homeowner phone number."""

    __tablename__ = "sms_threads"
    __table_args__ = (UniqueConstraint("homeowner_id", name="uq_sms_threads_homeowner"),)

    id: Mapped[UUID] = uuid_pk()
    homeowner_id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("homeowners.id", ondelete="CASCADE"),
        nullable=False,
    )
    phone_number: Mapped[str] = mapped_column(String(32), nullable=False)
    last_message_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )


class SmsMessage(Base):
    __tablename__ = "sms_messages"

    id: Mapped[UUID] = uuid_pk()
    thread_id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("sms_threads.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    direction: Mapped[SmsDirection] = mapped_column(Enum(SmsDirection), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    twilio_sid: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    status: Mapped[SmsStatus] = mapped_column(
        Enum(SmsStatus), default=SmsStatus.QUEUED, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )


# ==========================================================================
# Voice Intake
# ==========================================================================

class Call(Base):
    """Inbound call captured by the voice assistant."""

    __tablename__ = "calls"

    id: Mapped[UUID] = uuid_pk()
    vapi_call_id: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    homeowner_id: Mapped[Optional[UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("homeowners.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    homeowner_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    property_address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    issue_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    call_intent: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    is_urgent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    transcript: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    recording_url: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    address_match_similarity: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )


# ==========================================================================
# Outbound Email
# ==========================================================================

class EmailLog(Base, TimestampMixin):
    """
    One row per email handed to SendGrid.

    The row id travels with the message as the ``system_email_id`` custom
    argument so delivery events can find it again.
    """

    __tablename__ = "email_logs"

    id: Mapped[UUID] = uuid_pk()
    recipient: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    status: Mapped[EmailStatus] = mapped_column(Enum(EmailStatus), nullable=False)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sendgrid_message_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    opened_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<EmailLog {self.recipient} {self.status.value}>"


# ==========================================================================
# Internal Team Chat
# ==========================================================================

class InternalChannel(Base):
    """Public team channel or two-person direct message."""

    __tablename__ = "internal_channels"

    id: Mapped[UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    type: Mapped[ChannelType] = mapped_column(Enum(ChannelType), nullable=False)
    # Sorted [uuid hex, uuid hex] for DMs
    dm_participants: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    created_by: Mapped[Optional[UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )


class InternalMessage(Base):
    __tablename__ = "internal_messages"
    __table_args__ = (Index("ix_internal_messages_channel_created", "channel_id", "created_at"),)

    id: Mapped[UUID] = uuid_pk()
    channel_id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("internal_channels.id", ondelete="CASCADE"),
        nullable=False,
    )
    sender_id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    attachments: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    mentions: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    reply_to_id: Mapped[Optional[UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("internal_messages.id", ondelete="SET NULL"),
        nullable=True,
    )
    is_edited: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    edited_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )


class ChannelMember(Base):
    __tablename__ = "channel_members"
    __table_args__ = (UniqueConstraint("channel_id", "user_id", name="uq_channel_members"),)

    id: Mapped[UUID] = uuid_pk()
    channel_id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("internal_channels.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    last_read_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    is_muted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
