"""
Cascade Connect - Team Chat API
================================

Internal staff messaging: public channels and direct messages.

Channel ids in paths are either a channel UUID or the deterministic
``dm-{a}-{b}`` id of a direct message.
"""

from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from cascade_connect.api.deps import DbSession, Realtime, StaffUser
from cascade_connect.core.chat import ChatService, display_channel_id
from cascade_connect.core.exceptions import (
    ChannelExistsError,
    ChannelNotFoundError,
    ChatPermissionError,
    ChatValidationError,
    MessageNotFoundError,
)
from cascade_connect.core.models import User
from cascade_connect.core.schemas import (
    ChannelCreate,
    ChannelSummary,
    ChatMessageCreate,
    ChatMessageResponse,
    ChatMessageUpdate,
    ChatStatsResponse,
    DmChannelRequest,
    MarkReadResponse,
    MentionCandidate,
    MessageResponse,
    TeamMemberResponse,
    TypingRequest,
)

router = APIRouter(prefix="/chat", tags=["Team Chat"])


def to_http_error(error: Exception) -> HTTPException:
    """Translate chat service errors to HTTP errors."""
    if isinstance(error, (ChannelNotFoundError, MessageNotFoundError)):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, ChatPermissionError):
        code = status.HTTP_403_FORBIDDEN
    elif isinstance(error, ChannelExistsError):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    return HTTPException(status_code=code, detail=str(error))


CHAT_ERRORS = (
    ChannelNotFoundError,
    MessageNotFoundError,
    ChatPermissionError,
    ChatValidationError,
)


# ==========================================================================
# Channels
# ==========================================================================

@router.get("/channels", response_model=list[ChannelSummary], summary="List my channels")
async def list_channels(current_user: StaffUser, db: DbSession, realtime: Realtime) -> list[ChannelSummary]:
    return await ChatService(db, realtime).get_user_channels(current_user)


@router.get("/team", response_model=list[TeamMemberResponse], summary="List team members")
async def list_team(current_user: StaffUser, db: DbSession, realtime: Realtime) -> list[TeamMemberResponse]:
    members = await ChatService(db, realtime).list_team_members()
    return [TeamMemberResponse.model_validate(m) for m in members if m.id != current_user.id]


@router.post(
    "/channels",
    response_model=ChannelSummary,
    status_code=status.HTTP_201_CREATED,
    summary="Create public channel",
    responses={409: {"description": "Channel name taken"}},
)
async def create_channel(
    data: ChannelCreate,
    current_user: StaffUser,
    db: DbSession,
    realtime: Realtime,
) -> ChannelSummary:
    try:
        channel = await ChatService(db, realtime).create_public_channel(data.name, current_user)
    except CHAT_ERRORS as e:
        raise to_http_error(e) from e

    return ChannelSummary(
        id=display_channel_id(channel),
        db_id=channel.id,
        name=channel.name,
        type=channel.type,
    )


@router.post("/channels/{channel_id}/join", response_model=MessageResponse, summary="Join public channel")
async def join_channel(
    channel_id: str,
    current_user: StaffUser,
    db: DbSession,
    realtime: Realtime,
) -> MessageResponse:
    try:
        channel = await ChatService(db, realtime).join_channel(channel_id, current_user)
    except CHAT_ERRORS as e:
        raise to_http_error(e) from e
    return MessageResponse(message=f"Joined #{channel.name}", success=True)


@router.post("/dm", response_model=ChannelSummary, summary="Open a direct message")
async def open_direct_message(
    data: DmChannelRequest,
    current_user: StaffUser,
    db: DbSession,
    realtime: Realtime,
) -> ChannelSummary:
    other = await db.get(User, data.other_user_id)
    if other is None or not other.is_active or not other.is_staff:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )

    service = ChatService(db, realtime)
    try:
        channel = await service.find_or_create_dm_channel(current_user.id, data.other_user_id, current_user.id)
    except CHAT_ERRORS as e:
        raise to_http_error(e) from e
    await db.commit()

    for summary in await service.get_user_channels(current_user):
        if summary.db_id == channel.id:
            return summary
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Channel not found",
    )


# ==========================================================================
# Messages
# ==========================================================================

@router.get(
    "/channels/{channel_id}/messages",
    response_model=list[ChatMessageResponse],
    summary="Get channel messages",
)
async def get_messages(
    channel_id: str,
    current_user: StaffUser,
    db: DbSession,
    realtime: Realtime,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> list[ChatMessageResponse]:
    try:
        return await ChatService(db, realtime).get_channel_messages(channel_id, current_user, limit, offset)
    except CHAT_ERRORS as e:
        raise to_http_error(e) from e


@router.post(
    "/channels/{channel_id}/messages",
    response_model=ChatMessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send message",
)
async def send_message(
    channel_id: str,
    data: ChatMessageCreate,
    current_user: StaffUser,
    db: DbSession,
    realtime: Realtime,
) -> ChatMessageResponse:
    try:
        return await ChatService(db, realtime).send_message(channel_id, current_user, data)
    except CHAT_ERRORS as e:
        raise to_http_error(e) from e


@router.patch("/messages/{message_id}", response_model=ChatMessageResponse, summary="Edit message")
async def edit_message(
    message_id: UUID,
    data: ChatMessageUpdate,
    current_user: StaffUser,
    db: DbSession,
    realtime: Realtime,
) -> ChatMessageResponse:
    try:
        return await ChatService(db, realtime).edit_message(message_id, current_user, data.content)
    except CHAT_ERRORS as e:
        raise to_http_error(e) from e


@router.delete("/messages/{message_id}", response_model=ChatMessageResponse, summary="Delete message")
async def delete_message(
    message_id: UUID,
    current_user: StaffUser,
    db: DbSession,
    realtime: Realtime,
) -> ChatMessageResponse:
    try:
        return await ChatService(db, realtime).delete_message(message_id, current_user)
    except CHAT_ERRORS as e:
        raise to_http_error(e) from e


# ==========================================================================
# Read State & Presence
# ==========================================================================

@router.post("/channels/{channel_id}/read", response_model=MarkReadResponse, summary="Mark channel read")
async def mark_read(
    channel_id: str,
    current_user: StaffUser,
    db: DbSession,
    realtime: Realtime,
) -> MarkReadResponse:
    return await ChatService(db, realtime).mark_channel_as_read(current_user, channel_id)


@router.post("/channels/{channel_id}/typing", response_model=MessageResponse, summary="Typing indicator")
async def typing(
    channel_id: str,
    data: TypingRequest,
    current_user: StaffUser,
    db: DbSession,
    realtime: Realtime,
) -> MessageResponse:
    sent = await ChatService(db, realtime).send_typing_indicator(
        channel_id, current_user, data.is_typing, data.recipient_id
    )
    return MessageResponse(message=f"{sent} typing event(s) sent", success=sent > 0)


@router.get("/stats", response_model=ChatStatsResponse, summary="Unread totals")
async def chat_stats(current_user: StaffUser, db: DbSession, realtime: Realtime) -> ChatStatsResponse:
    return ChatStatsResponse(**await ChatService(db, realtime).chat_stats(current_user))


@router.get("/mentions", response_model=list[MentionCandidate], summary="Homeowners to mention")
async def mention_candidates(
    current_user: StaffUser,
    db: DbSession,
    realtime: Realtime,
    q: str = Query("", description="At least 2 characters"),
) -> list[MentionCandidate]:
    return await ChatService(db, realtime).search_homeowners_for_mention(q)
