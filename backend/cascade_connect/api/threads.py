"""
Cascade Connect - Message Threads API
======================================

Subject-based conversations between staff and a homeowner.
Messages are stored inline on the thread.
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog
from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy import select

from cascade_connect.api.deps import (
    CurrentUser,
    DbSession,
    Email,
    can_access_homeowner,
    get_homeowner_or_404,
)
from cascade_connect.core.database import utcnow
from cascade_connect.core.mailer import EmailMessage
from cascade_connect.core.models import Homeowner, MessageThread, User, UserRole
from cascade_connect.core.schemas import (
    MessageResponse,
    ThreadCreate,
    ThreadMessageCreate,
    ThreadResponse,
)

router = APIRouter(prefix="/threads", tags=["Message Threads"])
logger = structlog.get_logger()


def build_message(sender: User, content: str) -> dict:
    return {
        "id": uuid4().hex,
        "sender_id": str(sender.id),
        "sender_name": sender.name,
        "content": content,
        "timestamp": utcnow().isoformat(),
    }


async def get_thread_or_404(thread_id: UUID, user: User, db) -> MessageThread:
    thread = await db.get(MessageThread, thread_id)
    homeowner = await db.get(Homeowner, thread.homeowner_id) if thread else None
    if thread is None or homeowner is None or not can_access_homeowner(user, homeowner):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Thread not found",
        )
    return thread


async def notify_staff_of_reply(thread: MessageThread, sender: User, db, email) -> None:
    """Homeowner replies go to admins who opted in."""
    homeowner = await db.get(Homeowner, thread.homeowner_id)
    result = await db.execute(
        select(User.email).where(
            User.role == UserRole.ADMIN,
            User.is_active.is_(True),
            User.email_notify_homeowner_message.is_(True),
        )
    )
    for address in result.scalars().all():
        await email.send(EmailMessage(
            to=address,
            subject=f"New message from {homeowner.name if homeowner else sender.name}: {thread.subject}",
            html=f"<p>{sender.name} replied in <strong>{thread.subject}</strong>.</p>",
        ))


@router.get("", response_model=list[ThreadResponse], summary="List message threads")
async def list_threads(
    current_user: CurrentUser,
    db: DbSession,
    homeowner_id: Optional[UUID] = Query(None),
) -> list[ThreadResponse]:
    if current_user.role == UserRole.HOMEOWNER:
        homeowner_id = current_user.homeowner_id
        if homeowner_id is None:
            return []
    elif homeowner_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="homeowner_id is required",
        )
    else:
        await get_homeowner_or_404(homeowner_id, current_user, db)

    result = await db.execute(
        select(MessageThread)
        .where(MessageThread.homeowner_id == homeowner_id)
        .order_by(MessageThread.last_message_at.desc())
    )
    return [ThreadResponse.model_validate(t) for t in result.scalars().all()]


@router.post(
    "",
    response_model=ThreadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start a message thread",
)
async def create_thread(
    data: ThreadCreate,
    current_user: CurrentUser,
    db: DbSession,
    email: Email,
) -> ThreadResponse:
    homeowner_id = data.homeowner_id
    if current_user.role == UserRole.HOMEOWNER:
        homeowner_id = current_user.homeowner_id
    if homeowner_id is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="homeowner_id is required",
        )
    await get_homeowner_or_404(homeowner_id, current_user, db)

    message = build_message(current_user, data.content)
    thread = MessageThread(
        id=uuid4(),
        subject=data.subject,
        homeowner_id=homeowner_id,
        participants=[str(current_user.id)],
        is_read=False,
        last_message_at=utcnow(),
        messages=[message],
    )
    db.add(thread)
    await db.commit()
    await db.refresh(thread)

    logger.info("thread_created", thread_id=str(thread.id), homeowner_id=str(homeowner_id))
    if current_user.role == UserRole.HOMEOWNER:
        await notify_staff_of_reply(thread, current_user, db, email)
    return ThreadResponse.model_validate(thread)


@router.get("/{thread_id}", response_model=ThreadResponse, summary="Get message thread")
async def get_thread(thread_id: UUID, current_user: CurrentUser, db: DbSession) -> ThreadResponse:
    return ThreadResponse.model_validate(await get_thread_or_404(thread_id, current_user, db))


@router.post(
    "/{thread_id}/messages",
    response_model=ThreadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Post a message to a thread",
)
async def post_message(
    thread_id: UUID,
    data: ThreadMessageCreate,
    current_user: CurrentUser,
    db: DbSession,
    email: Email,
) -> ThreadResponse:
    thread = await get_thread_or_404(thread_id, current_user, db)

    # JSON columns only persist on reassignment
    thread.messages = [*thread.messages, build_message(current_user, data.content)]
    if str(current_user.id) not in thread.participants:
        thread.participants = [*thread.participants, str(current_user.id)]
    thread.last_message_at = utcnow()
    thread.is_read = False

    await db.commit()
    await db.refresh(thread)

    if current_user.role == UserRole.HOMEOWNER:
        await notify_staff_of_reply(thread, current_user, db, email)
    return ThreadResponse.model_validate(thread)


@router.post("/{thread_id}/read", response_model=MessageResponse, summary="Mark thread read")
async def mark_thread_read(thread_id: UUID, current_user: CurrentUser, db: DbSession) -> MessageResponse:
    thread = await get_thread_or_404(thread_id, current_user, db)
    thread.is_read = True
    await db.commit()
    return MessageResponse(message="Thread marked as read", success=True)
