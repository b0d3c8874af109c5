"""
Cascade Connect - Team Chat
============================

Internal staff chat: public channels and one-to-one direct messages.

Direct messages are addressed by a deterministic ID built from the two
participants, ``dm-{a}-{b}`` with ``a`` and ``b`` the sorted hex forms of
the user UUIDs. Clients can open a conversation with anyone without first
asking the server for a channel; the channel row is created on demand
and stored under that same name.
"""

from typing import Any, Optional, Union
from uuid import UUID, uuid4

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from cascade_connect.core.database import as_utc, utcnow
from cascade_connect.core.exceptions import (
    ChannelExistsError,
    ChannelNotFoundError,
    ChatPermissionError,
    ChatValidationError,
    MessageNotFoundError,
)
from cascade_connect.core.models import (
    ChannelMember,
    ChannelType,
    Homeowner,
    InternalChannel,
    InternalMessage,
    User,
    UserRole,
)
from cascade_connect.core.realtime import RealtimeClient
from cascade_connect.core.schemas import (
    ChannelOtherUser,
    ChannelSummary,
    ChatMessageCreate,
    ChatMessageResponse,
    LastMessagePreview,
    MarkReadResponse,
    MentionCandidate,
    ReplyPreview,
)

logger = structlog.get_logger()

DM_PREFIX = "dm-"
UNKNOWN_SENDER = "Unknown"

UserId = Union[UUID, str]


# ==========================================================================
# Channel IDs
# ==========================================================================

def _user_hex(user_id: UserId) -> str:
    return (user_id if isinstance(user_id, UUID) else UUID(str(user_id))).hex


def generate_dm_channel_id(user1_id: UserId, user2_id: UserId) -> str:
    """Same pair of users always yields the same ID, in either order."""
    a, b = sorted((_user_hex(user1_id), _user_hex(user2_id)))
    return f"{DM_PREFIX}{a}-{b}"


def parse_dm_channel_id(channel_id: str) -> Optional[tuple[str, str]]:
    """Sorted participant hex IDs, or None if channel_id is not a valid DM ID."""
    if not channel_id or not channel_id.startswith(DM_PREFIX):
        return None

    parts = channel_id[len(DM_PREFIX):].split("-")
    if len(parts) != 2:
        return None

    try:
        participants = sorted(UUID(hex=p).hex for p in parts)
    except ValueError:
        return None
    return participants[0], participants[1]


def display_channel_id(channel: InternalChannel) -> str:
    if channel.type == ChannelType.DM:
        return channel.name
    return str(channel.id)


# ==========================================================================
# Chat Service
# ==========================================================================

class ChatService:
    """Channel, membership and message operations for staff users."""

    def __init__(self, db: AsyncSession, realtime: RealtimeClient):
        self.db = db
        self.realtime = realtime

    # -------------------- Lookup --------------------

    async def resolve_channel(self, channel_id: str) -> Optional[InternalChannel]:
        """Find a channel by deterministic DM ID or database UUID."""
        if channel_id.startswith(DM_PREFIX):
            participants = parse_dm_channel_id(channel_id)
            if participants is None:
                return None
            name = f"{DM_PREFIX}{participants[0]}-{participants[1]}"
            result = await self.db.execute(
                select(InternalChannel).where(
                    InternalChannel.type == ChannelType.DM,
                    InternalChannel.name == name,
                )
            )
            return result.scalar_one_or_none()

        try:
            db_id = UUID(channel_id)
        except ValueError:
            return None
        return await self.db.get(InternalChannel, db_id)

    async def _membership(self, channel_id: UUID, user_id: UUID) -> Optional[ChannelMember]:
        result = await self.db.execute(
            select(ChannelMember).where(
                ChannelMember.channel_id == channel_id,
                ChannelMember.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def _add_member(self, channel_id: UUID, user_id: UUID) -> ChannelMember:
        member = await self._membership(channel_id, user_id)
        if member is None:
            now = utcnow()
            member = ChannelMember(
                id=uuid4(),
                channel_id=channel_id,
                user_id=user_id,
                last_read_at=now,
                joined_at=now,
            )
            self.db.add(member)
            await self.db.flush()
        return member

    async def _unread_count(self, member: ChannelMember) -> int:
        result = await self.db.execute(
            select(func.count(InternalMessage.id)).where(
                InternalMessage.channel_id == member.channel_id,
                InternalMessage.created_at > member.last_read_at,
                InternalMessage.is_deleted.is_(False),
                InternalMessage.sender_id != member.user_id,
            )
        )
        return result.scalar() or 0

    async def list_team_members(self) -> list[User]:
        result = await self.db.execute(
            select(User)
            .where(User.role == UserRole.ADMIN, User.is_active.is_(True))
            .order_by(User.name)
        )
        return list(result.scalars().all())

    # -------------------- Channels --------------------

    async def get_user_channels(self, user: User) -> list[ChannelSummary]:
        """Every channel the user belongs to, most recently read first."""
        result = await self.db.execute(
            select(ChannelMember, InternalChannel)
            .join(InternalChannel, InternalChannel.id == ChannelMember.channel_id)
            .where(ChannelMember.user_id == user.id)
            .order_by(ChannelMember.last_read_at.desc())
        )

        summaries: list[ChannelSummary] = []
        for member, channel in result.all():
            last = await self.db.execute(
                select(InternalMessage, User.name)
                .outerjoin(User, User.id == InternalMessage.sender_id)
                .where(
                    InternalMessage.channel_id == channel.id,
                    InternalMessage.is_deleted.is_(False),
                )
                .order_by(InternalMessage.created_at.desc())
                .limit(1)
            )
            last_row = last.first()
            last_message = None
            if last_row:
                message, sender_name = last_row
                last_message = LastMessagePreview(
                    content=message.content,
                    sender_name=sender_name or UNKNOWN_SENDER,
                    created_at=as_utc(message.created_at),
                )

            other_user = None
            if channel.type == ChannelType.DM and channel.dm_participants:
                other_hex = next(
                    (p for p in channel.dm_participants if p != user.id.hex), None
                )
                if other_hex:
                    other = await self.db.get(User, UUID(hex=other_hex))
                    if other:
                        other_user = ChannelOtherUser(id=other.id, name=other.name, email=other.email)

            summaries.append(ChannelSummary(
                id=display_channel_id(channel),
                db_id=channel.id,
                name=other_user.name if other_user else channel.name,
                type=channel.type,
                unread_count=await self._unread_count(member),
                last_message=last_message,
                other_user=other_user,
                last_read_at=as_utc(member.last_read_at),
                is_muted=member.is_muted,
            ))

        return summaries

    async def create_public_channel(self, name: str, created_by: User) -> InternalChannel:
        name = name.strip().lower().replace(" ", "-")
        if not name:
            raise ChatValidationError("Channel name is required")
        if name.startswith(DM_PREFIX):
            raise ChatValidationError("Channel names may not start with 'dm-'")

        existing = await self.db.execute(
            select(InternalChannel).where(InternalChannel.name == name)
        )
        if existing.scalar_one_or_none():
            raise ChannelExistsError(f"Channel '{name}' already exists")

        channel = InternalChannel(
            id=uuid4(),
            name=name,
            type=ChannelType.PUBLIC,
            created_by=created_by.id,
            created_at=utcnow(),
        )
        self.db.add(channel)
        await self.db.flush()

        member_ids = {m.id for m in await self.list_team_members()}
        member_ids.add(created_by.id)
        for user_id in member_ids:
            await self._add_member(channel.id, user_id)

        await self.db.commit()
        logger.info("chat_channel_created", channel=name, members=len(member_ids))
        return channel

    async def join_channel(self, channel_id: str, user: User) -> InternalChannel:
        channel = await self.resolve_channel(channel_id)
        if channel is None:
            raise ChannelNotFoundError("Channel not found")
        if channel.type == ChannelType.DM:
            raise ChatPermissionError("Direct messages cannot be joined")
        await self._add_member(channel.id, user.id)
        await self.db.commit()
        return channel

    async def find_or_create_dm_channel(
        self,
        user1_id: UUID,
        user2_id: UUID,
        created_by: Optional[UUID] = None,
    ) -> InternalChannel:
        """Idempotent: returns the existing DM for the pair when there is one."""
        if user1_id == user2_id:
            raise ChatValidationError("Cannot start a direct message with yourself")

        dm_id = generate_dm_channel_id(user1_id, user2_id)
        channel = await self.resolve_channel(dm_id)

        if channel is None:
            channel = InternalChannel(
                id=uuid4(),
                name=dm_id,
                type=ChannelType.DM,
                dm_participants=list(parse_dm_channel_id(dm_id)),
                created_by=created_by or user1_id,
                created_at=utcnow(),
            )
            self.db.add(channel)
            await self.db.flush()
            logger.info("chat_dm_created", channel=dm_id)

        await self._add_member(channel.id, user1_id)
        await self._add_member(channel.id, user2_id)
        return channel

    # -------------------- Messages --------------------

    async def _reply_previews(self, reply_ids: set[UUID]) -> dict[UUID, ReplyPreview]:
        if not reply_ids:
            return {}
        result = await self.db.execute(
            select(InternalMessage.id, InternalMessage.content, User.name)
            .outerjoin(User, User.id == InternalMessage.sender_id)
            .where(InternalMessage.id.in_(reply_ids))
        )
        return {
            row_id: ReplyPreview(id=row_id, sender_name=name or UNKNOWN_SENDER, content=content)
            for row_id, content, name in result.all()
        }

    @staticmethod
    def _serialize(
        message: InternalMessage,
        sender: Optional[User],
        reply_to: Optional[ReplyPreview] = None,
    ) -> ChatMessageResponse:
        return ChatMessageResponse(
            id=message.id,
            channel_id=message.channel_id,
            sender_id=message.sender_id,
            sender_name=sender.name if sender else UNKNOWN_SENDER,
            sender_email=sender.email if sender else None,
            content=message.content,
            attachments=message.attachments or [],
            mentions=message.mentions or [],
            reply_to_id=message.reply_to_id,
            reply_to=reply_to,
            is_edited=message.is_edited,
            is_deleted=message.is_deleted,
            edited_at=as_utc(message.edited_at),
            created_at=as_utc(message.created_at),
        )

    async def _require_readable(self, channel: InternalChannel, user: User) -> None:
        if channel.type == ChannelType.DM and user.id.hex not in (channel.dm_participants or []):
            raise ChatPermissionError("Not a participant in this conversation")

    async def get_channel_messages(
        self,
        channel_id: str,
        user: User,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ChatMessageResponse]:
        """Newest page of messages, returned oldest first. Unknown channels are empty."""
        channel = await self.resolve_channel(channel_id)
        if channel is None:
            return []
        await self._require_readable(channel, user)

        result = await self.db.execute(
            select(InternalMessage, User)
            .outerjoin(User, User.id == InternalMessage.sender_id)
            .where(InternalMessage.channel_id == channel.id)
            .order_by(InternalMessage.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        rows = list(result.all())
        rows.reverse()

        replies = await self._reply_previews(
            {m.reply_to_id for m, _ in rows if m.reply_to_id}
        )
        return [
            self._serialize(message, sender, replies.get(message.reply_to_id))
            for message, sender in rows
        ]

    async def send_message(
        self,
        channel_id: str,
        sender: User,
        data: ChatMessageCreate,
    ) -> ChatMessageResponse:
        channel = await self.resolve_channel(channel_id)

        if channel is None:
            participants = parse_dm_channel_id(channel_id)
            if participants is None:
                raise ChannelNotFoundError("Channel not found")
            if sender.id.hex not in participants:
                raise ChatPermissionError("Not a participant in this conversation")
            other_hex = participants[1] if participants[0] == sender.id.hex else participants[0]
            other = await self.db.get(User, UUID(hex=other_hex))
            if other is None or not other.is_active:
                raise ChannelNotFoundError("Recipient not found")
            channel = await self.find_or_create_dm_channel(sender.id, other.id, sender.id)

        if await self._membership(channel.id, sender.id) is None:
            raise ChatPermissionError("Not a member of this channel")

        reply_preview = None
        if data.reply_to_id:
            parent = await self.db.get(InternalMessage, data.reply_to_id)
            if parent is None or parent.channel_id != channel.id:
                raise ChatValidationError("Reply target is not in this channel")
            reply_preview = (await self._reply_previews({parent.id})).get(parent.id)

        message = InternalMessage(
            id=uuid4(),
            channel_id=channel.id,
            sender_id=sender.id,
            content=data.content,
            attachments=[a.model_dump(by_alias=True, exclude_none=True) for a in data.attachments],
            mentions=[m.model_dump(by_alias=True, exclude_none=True) for m in data.mentions],
            reply_to_id=data.reply_to_id,
            created_at=utcnow(),
        )
        self.db.add(message)
        await self.db.commit()

        payload = self._serialize(message, sender, reply_preview)
        await self.realtime.broadcast_chat_event(
            "new-message",
            {"channelId": display_channel_id(channel), "message": payload.model_dump(mode="json")},
        )
        return payload

    async def _own_message(self, message_id: UUID, user: User) -> InternalMessage:
        message = await self.db.get(InternalMessage, message_id)
        if message is None:
            raise MessageNotFoundError("Message not found")
        if message.sender_id != user.id:
            raise ChatPermissionError("Only the sender can change this message")
        return message

    async def _broadcast_update(self, message: InternalMessage, sender: User) -> ChatMessageResponse:
        channel = await self.db.get(InternalChannel, message.channel_id)
        payload = self._serialize(message, sender)
        await self.realtime.broadcast_chat_event(
            "message-updated",
            {"channelId": display_channel_id(channel), "message": payload.model_dump(mode="json")},
        )
        return payload

    async def edit_message(self, message_id: UUID, user: User, content: str) -> ChatMessageResponse:
        message = await self._own_message(message_id, user)
        if message.is_deleted:
            raise ChatValidationError("Deleted messages cannot be edited")
        message.content = content
        message.is_edited = True
        message.edited_at = utcnow()
        await self.db.commit()
        return await self._broadcast_update(message, user)

    async def delete_message(self, message_id: UUID, user: User) -> ChatMessageResponse:
        message = await self._own_message(message_id, user)
        message.is_deleted = True
        message.content = ""
        await self.db.commit()
        return await self._broadcast_update(message, user)

    # -------------------- Read State & Presence --------------------

    async def mark_channel_as_read(self, user: User, channel_id: str) -> MarkReadResponse:
        channel = await self.resolve_channel(channel_id)
        if channel is None:
            return MarkReadResponse(success=False, channel_id=channel_id)

        member = await self._membership(channel.id, user.id)
        if member is None:
            return MarkReadResponse(success=False, channel_id=channel_id)

        read_at = utcnow()
        member.last_read_at = read_at
        await self.db.commit()

        await self.realtime.broadcast_chat_event(
            "message-read",
            {"channelId": channel_id, "userId": str(user.id), "readAt": read_at.isoformat()},
        )
        return MarkReadResponse(success=True, channel_id=channel_id, read_at=read_at)

    async def send_typing_indicator(
        self,
        channel_id: str,
        user: User,
        is_typing: bool,
        recipient_id: Optional[UUID] = None,
    ) -> int:
        """Fan out a typing event. Returns the number of events published."""
        payload: dict[str, Any] = {
            "channelId": channel_id,
            "userId": str(user.id),
            "userName": user.name or "User",
            "isTyping": is_typing,
        }

        participants = parse_dm_channel_id(channel_id)
        if participants:
            recipients = [UUID(hex=p) for p in participants if p != user.id.hex]
            for recipient in recipients:
                await self.realtime.broadcast_user_event(recipient, "user-typing", payload)
            return len(recipients)

        if recipient_id:
            await self.realtime.broadcast_user_event(recipient_id, "user-typing", payload)
            return 1

        channel = await self.resolve_channel(channel_id)
        if channel is None:
            return 0
        await self.realtime.broadcast_chat_event("user-typing", payload)
        return 1

    async def chat_stats(self, user: User) -> dict[str, int]:
        result = await self.db.execute(
            select(ChannelMember).where(ChannelMember.user_id == user.id)
        )
        members = list(result.scalars().all())
        total = 0
        for member in members:
            total += await self._unread_count(member)
        return {"total_unread": total, "channels": len(members)}

    # -------------------- Mentions --------------------

    async def search_homeowners_for_mention(self, query: str) -> list[MentionCandidate]:
        term = (query or "").strip()
        if len(term) < 2:
            return []

        pattern = f"%{term}%"
        result = await self.db.execute(
            select(Homeowner)
            .where(or_(
                Homeowner.name.ilike(pattern),
                Homeowner.job_name.ilike(pattern),
                Homeowner.address.ilike(pattern),
            ))
            .order_by(Homeowner.name)
            .limit(10)
        )
        return [
            MentionCandidate(
                id=h.id,
                name=h.name,
                project_name=h.job_name or h.address,
                address=h.address,
            )
            for h in result.scalars().all()
        ]
