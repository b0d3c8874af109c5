"""
Cascade Connect - SMS API
==========================

Staff-facing SMS: send a text to a homeowner and browse conversations.
Inbound messages arrive through the Twilio webhooks.
"""

from uuid import UUID, uuid4

import structlog
from fastapi import APIRouter, HTTPException, status
from sqlalchemy import select

from cascade_connect.api.deps import DbSession, Realtime, Sms, StaffUser, get_homeowner_or_404
from cascade_connect.core.exceptions import IntegrationNotConfigured, SmsDeliveryError
from cascade_connect.core.models import (
    Homeowner,
    SmsDirection,
    SmsMessage,
    SmsStatus,
    SmsThread,
    UserRole,
)
from cascade_connect.core.phone import normalize_phone_number
from cascade_connect.core.schemas import (
    SmsMessageResponse,
    SmsSendRequest,
    SmsSendResponse,
    SmsThreadResponse,
)
from cascade_connect.core.sms import get_or_create_thread

router = APIRouter(prefix="/sms", tags=["SMS"])
logger = structlog.get_logger()


@router.post(
    "/send",
    response_model=SmsSendResponse,
    summary="Send an SMS to a homeowner",
    responses={
        400: {"description": "Homeowner has no phone number"},
        404: {"description": "Homeowner not found"},
        502: {"description": "Twilio rejected the message"},
        503: {"description": "SMS not configured"},
    },
)
async def send_sms(
    data: SmsSendRequest,
    current_user: StaffUser,
    db: DbSession,
    sms: Sms,
    realtime: Realtime,
) -> SmsSendResponse:
    homeowner = await get_homeowner_or_404(data.homeowner_id, current_user, db)

    to_number = normalize_phone_number(homeowner.phone) if homeowner.phone else None
    if not to_number:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Homeowner has no phone number",
        )

    try:
        sid = await sms.send(to_number, data.message)
    except IntegrationNotConfigured as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        ) from e
    except SmsDeliveryError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(e),
        ) from e

    thread = await get_or_create_thread(db, homeowner.id, to_number)
    message = SmsMessage(
        id=uuid4(),
        thread_id=thread.id,
        direction=SmsDirection.OUTBOUND,
        body=data.message,
        twilio_sid=sid,
        status=SmsStatus.SENT,
    )
    db.add(message)
    await db.commit()
    await db.refresh(message)

    await realtime.broadcast_sms_message(
        homeowner.id,
        SmsMessageResponse.model_validate(message).model_dump(mode="json"),
    )
    logger.info("sms_recorded", homeowner_id=str(homeowner.id), sid=sid, by=str(current_user.id))

    return SmsSendResponse(success=True, message_id=message.id, twilio_sid=sid)


@router.get("/threads", response_model=list[SmsThreadResponse], summary="List SMS threads")
async def list_sms_threads(current_user: StaffUser, db: DbSession) -> list[SmsThreadResponse]:
    query = select(SmsThread).order_by(SmsThread.last_message_at.desc())
    if current_user.role == UserRole.BUILDER:
        query = query.join(Homeowner, Homeowner.id == SmsThread.homeowner_id).where(
            Homeowner.builder_group_id == current_user.builder_group_id
        )
    threads = (await db.execute(query)).scalars().all()
    return [SmsThreadResponse.model_validate(t) for t in threads]


@router.get(
    "/threads/{homeowner_id}/messages",
    response_model=list[SmsMessageResponse],
    summary="Get a homeowner's SMS conversation",
)
async def get_thread_messages(
    homeowner_id: UUID,
    current_user: StaffUser,
    db: DbSession,
) -> list[SmsMessageResponse]:
    """Oldest first; empty when the homeowner has never texted."""
    await get_homeowner_or_404(homeowner_id, current_user, db)

    result = await db.execute(
        select(SmsMessage)
        .join(SmsThread, SmsThread.id == SmsMessage.thread_id)
        .where(SmsThread.homeowner_id == homeowner_id)
        .order_by(SmsMessage.created_at.asc())
    )
    return [SmsMessageResponse.model_validate(m) for m in result.scalars().all()]
