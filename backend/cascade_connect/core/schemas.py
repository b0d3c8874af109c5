"""
Cascade Connect - Pydantic Schemas
===================================

Request and response schemas for API validation.
"""

from datetime import datetime
from typing import Any, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from cascade_connect.core.models import (
    AppointmentType,
    AppointmentVisibility,
    ChannelType,
    ClaimClassification,
    ClaimStatus,
    EmailStatus,
    SmsDirection,
    SmsStatus,
    UserRole,
)


# ==========================================================================
# Base Schemas
# ==========================================================================

class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class TimestampSchema(BaseSchema):
    """Schema with timestamp fields."""

    created_at: datetime
    updated_at: datetime


class PageSchema(BaseSchema):
    """Pagination envelope fields."""

    total: int
    page: int
    page_size: int
    pages: int


def _validate_password_strength(v: str) -> str:
    if not any(c.isupper() for c in v):
        raise ValueError("Password must contain at least one uppercase letter")
    if not any(c.islower() for c in v):
        raise ValueError("Password must contain at least one lowercase letter")
    if not any(c.isdigit() for c in v):
        raise ValueError("Password must contain at least one digit")
    return v


# ==========================================================================
# Auth Schemas
# ==========================================================================

class UserCreate(BaseSchema):
    """Schema for user registration."""

    email: EmailStr
    password: str = Field(min_length=8, max_length=100)
    name: str = Field(min_length=1, max_length=255)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        """Validate password strength."""
        return _validate_password_strength(v)


class InternalUserCreate(UserCreate):
    """Admin-created staff account."""

    role: UserRole = UserRole.ADMIN
    internal_role: Optional[str] = Field(None, max_length=100)
    builder_group_id: Optional[UUID] = None

    @field_validator("role")
    @classmethod
    def staff_role_only(cls, v: UserRole) -> UserRole:
        if v == UserRole.HOMEOWNER:
            raise ValueError("Internal users must be ADMIN or BUILDER")
        return v


class UserLogin(BaseSchema):
    """Schema for user login."""

    email: EmailStr
    password: str


class UserResponse(TimestampSchema):
    """Schema for user in responses (no password)."""

    id: UUID
    email: EmailStr
    name: str
    role: UserRole
    internal_role: Optional[str] = None
    builder_group_id: Optional[UUID] = None
    homeowner_id: Optional[UUID] = None
    is_active: bool
    last_login: Optional[datetime] = None
    email_notify_claim_submitted: bool
    email_notify_task_assigned: bool
    email_notify_homeowner_message: bool


class UserUpdate(BaseSchema):
    """Schema for updating the current user's profile."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email_notify_claim_submitted: Optional[bool] = None
    email_notify_task_assigned: Optional[bool] = None
    email_notify_homeowner_message: Optional[bool] = None


class TeamMemberResponse(BaseSchema):
    """Staff user as shown in the team directory."""

    id: UUID
    name: str
    email: str
    internal_role: Optional[str] = None


class TokenResponse(BaseSchema):
    """Schema for authentication tokens."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds until access token expires


class RefreshTokenRequest(BaseSchema):
    """Schema for token refresh."""

    refresh_token: str


# ==========================================================================
# Builder Group Schemas
# ==========================================================================

class BuilderGroupCreate(BaseSchema):
    name: str = Field(min_length=1, max_length=255)
    email: Optional[EmailStr] = None


class BuilderGroupUpdate(BaseSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None


class BuilderGroupResponse(TimestampSchema):
    id: UUID
    name: str
    email: Optional[str] = None
    enrollment_slug: str


# ==========================================================================
# Homeowner Schemas
# ==========================================================================

class HomeownerBase(BaseSchema):
    """Fields shared by staff-created and self-enrolled homeowners."""

    name: Optional[str] = Field(None, max_length=255)
    first_name: Optional[str] = Field(None, max_length=120)
    last_name: Optional[str] = Field(None, max_length=120)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=32)
    buyer_2_email: Optional[EmailStr] = None
    buyer_2_phone: Optional[str] = Field(None, max_length=32)
    street: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=120)
    state: Optional[str] = Field(None, max_length=32)
    zip: Optional[str] = Field(None, max_length=16)
    address: Optional[str] = Field(None, max_length=500)
    job_name: Optional[str] = Field(None, max_length=255)
    agent_name: Optional[str] = Field(None, max_length=255)
    agent_phone: Optional[str] = Field(None, max_length=32)
    agent_email: Optional[EmailStr] = None
    closing_date: Optional[datetime] = None
    preferred_walk_through_date: Optional[datetime] = None
    enrollment_comments: Optional[str] = None
    sms_opt_in: bool = False


class HomeownerEnrollment(HomeownerBase):
    """Public self-enrollment form."""

    @model_validator(mode="after")
    def require_identity(self) -> "HomeownerEnrollment":
        if not (self.name or self.first_name or self.last_name):
            raise ValueError("A name is required")
        if not (self.address or self.street):
            raise ValueError("An address is required")
        return self


class HomeownerCreate(HomeownerEnrollment):
    """Staff-created homeowner."""

    builder: Optional[str] = Field(None, max_length=255)
    builder_group_id: Optional[UUID] = None


class HomeownerUpdate(HomeownerBase):
    """Partial homeowner update; only sent fields are applied."""

    sms_opt_in: Optional[bool] = None  # type: ignore[assignment]
    builder: Optional[str] = Field(None, max_length=255)
    builder_group_id: Optional[UUID] = None


class HomeownerResponse(HomeownerBase, TimestampSchema):
    id: UUID
    name: str
    address: str
    email: Optional[str] = None
    buyer_2_email: Optional[str] = None
    agent_email: Optional[str] = None
    builder: Optional[str] = None
    builder_group_id: Optional[UUID] = None


class HomeownerListResponse(PageSchema):
    items: list[HomeownerResponse]


# ==========================================================================
# Contractor Schemas
# ==========================================================================

class ContractorCreate(BaseSchema):
    company_name: str = Field(min_length=1, max_length=255)
    contact_name: Optional[str] = Field(None, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=32)
    specialty: Optional[str] = Field(None, max_length=120)


class ContractorUpdate(BaseSchema):
    company_name: Optional[str] = Field(None, min_length=1, max_length=255)
    contact_name: Optional[str] = Field(None, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=32)
    specialty: Optional[str] = Field(None, max_length=120)


class ContractorResponse(TimestampSchema):
    id: UUID
    company_name: str
    contact_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    specialty: Optional[str] = None


# ==========================================================================
# Claim Schemas
# ==========================================================================

class ClaimCreate(BaseSchema):
    """New warranty claim. Homeowner users may omit homeowner_id."""

    homeowner_id: Optional[UUID] = None
    title: str = Field(min_length=1, max_length=255)
    description: str = ""
    category: str = Field("General", max_length=100)
    attachments: list[dict[str, Any]] = Field(default_factory=list)
    proposed_dates: list[dict[str, Any]] = Field(default_factory=list)


class ClaimUpdate(BaseSchema):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    status: Optional[ClaimStatus] = None
    classification: Optional[ClaimClassification] = None
    contractor_id: Optional[UUID] = None
    internal_notes: Optional[str] = None
    non_warranty_explanation: Optional[str] = None
    summary: Optional[str] = None
    attachments: Optional[list[dict[str, Any]]] = None
    proposed_dates: Optional[list[dict[str, Any]]] = None


class ClaimFieldUpdate(BaseSchema):
    """Single-field auto-save payload."""

    field: str
    value: Optional[str] = None


class ClaimBatchUpdate(BaseSchema):
    ids: list[UUID] = Field(min_length=1)
    status: Optional[ClaimStatus] = None
    classification: Optional[ClaimClassification] = None

    @model_validator(mode="after")
    def require_change(self) -> "ClaimBatchUpdate":
        if self.status is None and self.classification is None:
            raise ValueError("status or classification is required")
        return self


class ClaimResponse(TimestampSchema):
    id: UUID
    homeowner_id: Optional[UUID] = None
    homeowner_name: Optional[str] = None
    homeowner_email: Optional[str] = None
    builder_name: Optional[str] = None
    job_name: Optional[str] = None
    address: Optional[str] = None
    title: str
    description: str
    category: str
    claim_number: Optional[str] = None
    display_number: str = ""
    status: ClaimStatus
    classification: str
    contractor_id: Optional[UUID] = None
    contractor_name: Optional[str] = None
    contractor_email: Optional[str] = None
    date_submitted: datetime
    date_evaluated: Optional[datetime] = None
    scheduled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    internal_notes: Optional[str] = None
    non_warranty_explanation: Optional[str] = None
    summary: Optional[str] = None
    attachments: list[dict[str, Any]] = Field(default_factory=list)
    proposed_dates: list[dict[str, Any]] = Field(default_factory=list)


class ClaimCounts(BaseSchema):
    total: int
    open: int
    closed: int


class ClaimListResponse(BaseSchema):
    items: list[ClaimResponse]
    counts: ClaimCounts


class ClaimBatchResult(BaseSchema):
    updated: int


# ==========================================================================
# Task Schemas
# ==========================================================================

class TaskCreate(BaseSchema):
    content: str = Field(max_length=5000)
    claim_id: Optional[UUID] = None
    context_label: Optional[str] = Field(None, max_length=255)
    assigned_to_id: Optional[UUID] = None
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    related_claim_ids: list[UUID] = Field(default_factory=list)

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        if not v:
            raise ValueError("Content is required")
        return v


class TaskUpdate(BaseSchema):
    content: Optional[str] = Field(None, min_length=1, max_length=5000)
    is_completed: Optional[bool] = None
    claim_id: Optional[UUID] = None
    context_label: Optional[str] = Field(None, max_length=255)
    assigned_to_id: Optional[UUID] = None
    due_date: Optional[datetime] = None


class TaskResponse(BaseSchema):
    id: UUID
    title: str
    content: Optional[str] = None
    description: Optional[str] = None
    assigned_to_id: Optional[UUID] = None
    assigned_by_id: Optional[UUID] = None
    claim_id: Optional[UUID] = None
    context_label: Optional[str] = None
    is_completed: bool
    due_date: Optional[datetime] = None
    related_claim_ids: list[str] = Field(default_factory=list)
    created_at: datetime


# ==========================================================================
# Response Template Schemas
# ==========================================================================

class TemplateCreate(BaseSchema):
    title: str = Field(min_length=1, max_length=255)
    content: str = Field(min_length=1)
    category: str = Field("General", max_length=100)


class TemplateUpdate(BaseSchema):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    content: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = Field(None, max_length=100)


class TemplateResponse(TimestampSchema):
    id: UUID
    user_id: UUID
    title: str
    content: str
    category: str


# ==========================================================================
# Document Schemas
# ==========================================================================

class DocumentCreate(BaseSchema):
    name: str = Field(min_length=1, max_length=255)
    url: str = Field(min_length=1, max_length=1000)
    type: str = Field("FILE", max_length=32)


class DocumentResponse(BaseSchema):
    id: UUID
    homeowner_id: UUID
    name: str
    url: str
    type: str
    uploaded_by: Optional[str] = None
    uploaded_at: datetime


# ==========================================================================
# Appointment Schemas
# ==========================================================================

class GuestInput(BaseSchema):
    email: EmailStr
    role: Optional[str] = None


class AppointmentBase(BaseSchema):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    homeowner_id: Optional[UUID] = None
    visibility: Optional[AppointmentVisibility] = None
    type: Optional[AppointmentType] = None
    guests: Optional[list[GuestInput]] = None

    @field_validator("guests", mode="before")
    @classmethod
    def coerce_guests(cls, v: Any) -> Any:
        """Guests may be plain email strings."""
        if isinstance(v, list):
            return [{"email": g} if isinstance(g, str) else g for g in v]
        return v

    @model_validator(mode="after")
    def end_after_start(self):
        if self.start_time and self.end_time and self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class AppointmentCreate(AppointmentBase):
    title: str = Field(min_length=1, max_length=255)
    start_time: datetime
    end_time: datetime
    visibility: AppointmentVisibility = AppointmentVisibility.SHARED_WITH_HOMEOWNER
    type: AppointmentType = AppointmentType.OTHER


class AppointmentUpdate(AppointmentBase):
    pass


class GuestResponse(BaseSchema):
    id: UUID
    email: str
    role: Optional[str] = None


class AppointmentResponse(TimestampSchema):
    id: UUID
    title: str
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    homeowner_id: Optional[UUID] = None
    visibility: AppointmentVisibility
    type: AppointmentType
    created_by_id: Optional[UUID] = None
    guests: list[GuestResponse] = Field(default_factory=list)


# ==========================================================================
# Homeowner Message Thread Schemas
# ==========================================================================

class ThreadMessage(BaseSchema):
    id: str
    sender_id: str
    sender_name: str
    content: str
    timestamp: datetime


class ThreadCreate(BaseSchema):
    subject: str = Field(min_length=1, max_length=255)
    homeowner_id: Optional[UUID] = None
    content: str = Field(min_length=1)


class ThreadMessageCreate(BaseSchema):
    content: str = Field(min_length=1)


class ThreadResponse(TimestampSchema):
    id: UUID
    subject: str
    homeowner_id: UUID
    participants: list[str] = Field(default_factory=list)
    is_read: bool
    last_message_at: datetime
    messages: list[ThreadMessage] = Field(default_factory=list)


# ==========================================================================
# Team Chat Schemas
# ==========================================================================

class ChatAttachment(BaseSchema):
    url: str
    type: str = "file"
    filename: Optional[str] = None
    public_id: Optional[str] = Field(None, alias="publicId")


class ChatMention(BaseSchema):
    homeowner_id: str = Field(alias="homeownerId")
    project_name: Optional[str] = Field(None, alias="projectName")
    address: Optional[str] = None


class ChannelCreate(BaseSchema):
    name: str = Field(min_length=1, max_length=80)


class DmChannelRequest(BaseSchema):
    other_user_id: UUID


class ChatMessageCreate(BaseSchema):
    content: str = Field(max_length=10000)
    attachments: list[ChatAttachment] = Field(default_factory=list)
    mentions: list[ChatMention] = Field(default_factory=list)
    reply_to_id: Optional[UUID] = None

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        if not v:
            raise ValueError("Message content is required")
        return v


class ChatMessageUpdate(BaseSchema):
    content: str = Field(min_length=1, max_length=10000)


class ReplyPreview(BaseSchema):
    id: UUID
    sender_name: str
    content: str


class ChatMessageResponse(BaseSchema):
    id: UUID
    channel_id: UUID
    sender_id: UUID
    sender_name: str
    sender_email: Optional[str] = None
    content: str
    attachments: list[dict[str, Any]] = Field(default_factory=list)
    mentions: list[dict[str, Any]] = Field(default_factory=list)
    reply_to_id: Optional[UUID] = None
    reply_to: Optional[ReplyPreview] = None
    is_edited: bool = False
    is_deleted: bool = False
    edited_at: Optional[datetime] = None
    created_at: datetime


class LastMessagePreview(BaseSchema):
    content: str
    sender_name: str
    created_at: datetime


class ChannelOtherUser(BaseSchema):
    id: UUID
    name: str
    email: str


class ChannelSummary(BaseSchema):
    id: str
    db_id: UUID
    name: str
    type: ChannelType
    unread_count: int = 0
    last_message: Optional[LastMessagePreview] = None
    other_user: Optional[ChannelOtherUser] = None
    last_read_at: Optional[datetime] = None
    is_muted: bool = False


class TypingRequest(BaseSchema):
    is_typing: bool = True
    recipient_id: Optional[UUID] = None


class MarkReadResponse(BaseSchema):
    success: bool
    channel_id: str
    read_at: Optional[datetime] = None


class ChatStatsResponse(BaseSchema):
    total_unread: int
    channels: int


class MentionCandidate(BaseSchema):
    id: UUID
    name: str
    project_name: str
    address: str


# ==========================================================================
# Real-time Schemas
# ==========================================================================

class RealtimeAuthRequest(BaseSchema):
    socket_id: str
    channel_name: str


# ==========================================================================
# SMS Schemas
# ==========================================================================

SMS_MAX_LENGTH = 1600


class SmsSendRequest(BaseSchema):
    homeowner_id: UUID
    message: str

    @field_validator("message")
    @classmethod
    def validate_message(cls, v: str) -> str:
        if not v:
            raise ValueError("Message cannot be empty")
        if len(v) > SMS_MAX_LENGTH:
            raise ValueError(f"Message too long (max {SMS_MAX_LENGTH} characters)")
        return v


class SmsSendResponse(BaseSchema):
    success: bool
    message_id: UUID
    twilio_sid: Optional[str] = None


class SmsMessageResponse(BaseSchema):
    id: UUID
    thread_id: UUID
    direction: SmsDirection
    body: str
    twilio_sid: Optional[str] = None
    status: SmsStatus
    created_at: datetime


class SmsThreadResponse(BaseSchema):
    id: UUID
    homeowner_id: UUID
    phone_number: str
    last_message_at: datetime
    created_at: datetime


# ==========================================================================
# Call Schemas
# ==========================================================================

class CallResponse(BaseSchema):
    id: UUID
    vapi_call_id: str
    homeowner_id: Optional[UUID] = None
    homeowner_name: Optional[str] = None
    phone_number: Optional[str] = None
    property_address: Optional[str] = None
    issue_description: Optional[str] = None
    call_intent: Optional[str] = None
    is_urgent: bool
    transcript: Optional[str] = None
    recording_url: Optional[str] = None
    is_verified: bool
    address_match_similarity: Optional[str] = None
    created_at: datetime


class CallListResponse(PageSchema):
    items: list[CallResponse]


# ==========================================================================
# Search Schemas
# ==========================================================================

SearchType = Literal["homeowner", "claim", "event", "message"]


class SearchResult(BaseSchema):
    type: SearchType
    id: str
    title: str
    subtitle: str = ""
    url: str
    icon: str
    score: int


class SearchResponse(BaseSchema):
    query: str
    results: list[SearchResult]
    total: int


# ==========================================================================
# Dashboard Schemas
# ==========================================================================

class DashboardStats(BaseSchema):
    total: int
    open: int
    scheduled: int
    completed: int
    avg_days_open: float
    by_status: dict[str, int]
    by_classification: dict[str, int]


class TableStat(BaseSchema):
    table: str
    rows: int


class DatabaseStats(BaseSchema):
    dialect: str
    tables: list[TableStat]
    total_rows: int
    database_size_bytes: Optional[int] = None
    active_connections: Optional[int] = None


class DeployInfo(BaseSchema):
    id: str
    state: str
    branch: Optional[str] = None
    created_at: Optional[datetime] = None
    deploy_url: Optional[str] = None
    error_message: Optional[str] = None


class DeploysResponse(BaseSchema):
    configured: bool
    deploys: list[DeployInfo] = Field(default_factory=list)


class EmailLogResponse(TimestampSchema):
    id: UUID
    recipient: str
    subject: str
    status: EmailStatus
    error: Optional[str] = None
    sendgrid_message_id: Optional[str] = None
    opened_at: Optional[datetime] = None


class EmailLogStats(BaseSchema):
    """Totals over the whole log, ignoring date filters."""

    total: int
    sent: int
    failed: int
    read: int


class EmailLogListResponse(BaseSchema):
    logs: list[EmailLogResponse]
    stats: EmailLogStats


# ==========================================================================
# Generic Schemas
# ==========================================================================

class MessageResponse(BaseSchema):
    """Generic message response."""

    message: str
    success: bool = True


class ErrorResponse(BaseSchema):
    """Error response schema."""

    error: str
    detail: Optional[str] = None
    code: Optional[str] = None


class HealthResponse(BaseSchema):
    """Health check response."""

    status: str
    version: str
    environment: str
    database: str
