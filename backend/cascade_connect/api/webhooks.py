"""
Cascade Connect - Webhooks
===========================

Inbound integrations:
1. Twilio inbound SMS and delivery status callbacks
2. Vapi voice assistant call reports
3. SendGrid email events (opens)

Setup:
1. Twilio console → Phone Numbers → Messaging
   - "A message comes in": https://your-domain/api/v1/webhooks/twilio/sms
   - Status callback: https://your-domain/api/v1/webhooks/twilio/status
2. Vapi dashboard → Assistant → Server URL:
   https://your-domain/api/v1/webhooks/vapi with the x-vapi-secret header
3. SendGrid → Mail Settings → Event Webhook:
   https://your-domain/api/v1/webhooks/sendgrid with "Opened" selected
"""

import json
from datetime import timedelta
from typing import Any, Dict, Optional
from uuid import uuid4

import structlog
from fastapi import APIRouter, Header, HTTPException, Request, Response, status
from sqlalchemy import select

from cascade_connect.api.deps import DbSession, Email, Realtime, Sms, Vapi
from cascade_connect.core.address_matching import AddressMatch, find_matching_homeowner
from cascade_connect.core.claims import apply_homeowner_fields, next_claim_number
from cascade_connect.core.config import settings
from cascade_connect.core.database import as_utc, utcnow
from cascade_connect.core.mailer import CallScenario, event_email_id, event_time
from cascade_connect.core.models import (
    OPEN_CLAIM_STATUSES,
    Call,
    Claim,
    ClaimStatus,
    EmailLog,
    EmailStatus,
    SmsDirection,
    SmsMessage,
    SmsStatus,
)
from cascade_connect.core.phone import normalize_phone_number
from cascade_connect.core.schemas import SmsMessageResponse
from cascade_connect.core.sms import (
    EMPTY_TWIML,
    find_homeowner_by_phone,
    get_or_create_thread,
    map_twilio_status,
)
from cascade_connect.core.vapi import (
    CallData,
    default_intent,
    extract_call_data,
    extract_caller_number,
    is_final_event,
    verify_vapi_secret,
)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])
logger = structlog.get_logger()

CLAIM_INTENTS = ("new_claim", "emergency")
DUPLICATE_CLAIM_WINDOW = timedelta(hours=24)


def twiml(status_code: int = 200) -> Response:
    return Response(content=EMPTY_TWIML, media_type="text/xml", status_code=status_code)


# ==========================================================================
# Twilio
# ==========================================================================

async def verified_form(request: Request, sms) -> Dict[str, str]:
    """Form fields of a Twilio callback after the signature check."""
    form = {k: str(v) for k, v in (await request.form()).items()}
    signature = request.headers.get("X-Twilio-Signature")
    if not sms.validate_request(str(request.url), form, signature):
        logger.warning("twilio_signature_invalid", path=request.url.path)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid Twilio signature",
        )
    return form


@router.post("/twilio/sms", summary="Inbound SMS from Twilio")
async def twilio_inbound_sms(
    request: Request,
    db: DbSession,
    sms: Sms,
    realtime: Realtime,
) -> Response:
    """
    Store a homeowner's text in their thread.

    Texts from unknown numbers are acknowledged and dropped.
    """
    form = await verified_form(request, sms)
    from_number = form.get("From")
    body = form.get("Body")
    if not from_number or not body:
        return twiml(status.HTTP_400_BAD_REQUEST)

    homeowner = await find_homeowner_by_phone(db, from_number)
    if homeowner is None:
        logger.info("sms_inbound_unmatched", from_number=from_number)
        return twiml()

    thread = await get_or_create_thread(
        db, homeowner.id, normalize_phone_number(from_number) or from_number
    )
    message = SmsMessage(
        id=uuid4(),
        thread_id=thread.id,
        direction=SmsDirection.INBOUND,
        body=body,
        twilio_sid=form.get("MessageSid"),
        status=SmsStatus.DELIVERED,
    )
    db.add(message)
    await db.commit()
    await db.refresh(message)

    logger.info("sms_inbound_stored", homeowner_id=str(homeowner.id), sid=message.twilio_sid)
    await realtime.broadcast_sms_message(
        homeowner.id,
        SmsMessageResponse.model_validate(message).model_dump(mode="json"),
    )
    return twiml()


@router.post("/twilio/status", summary="SMS delivery status from Twilio")
async def twilio_status_callback(request: Request, db: DbSession, sms: Sms) -> Response:
    form = await verified_form(request, sms)
    sid = form.get("MessageSid")

    if sid:
        result = await db.execute(select(SmsMessage).where(SmsMessage.twilio_sid == sid))
        message = result.scalar_one_or_none()
        if message is not None:
            message.status = map_twilio_status(form.get("MessageStatus"))
            await db.commit()
            logger.debug("sms_status_updated", sid=sid, status=message.status.value)

    return twiml()


# ==========================================================================
# Vapi
# ==========================================================================

async def has_recent_open_claim(db, homeowner_id) -> bool:
    cutoff = utcnow() - DUPLICATE_CLAIM_WINDOW
    result = await db.execute(
        select(Claim.date_submitted).where(
            Claim.homeowner_id == homeowner_id,
            Claim.status.in_(OPEN_CLAIM_STATUSES),
        )
    )
    return any(as_utc(submitted) >= cutoff for submitted in result.scalars())


async def upsert_call(db, data: CallData, match: Optional[AddressMatch]) -> Call:
    result = await db.execute(select(Call).where(Call.vapi_call_id == data.vapi_call_id))
    call = result.scalar_one_or_none()
    if call is None:
        call = Call(id=uuid4(), vapi_call_id=data.vapi_call_id)
        db.add(call)

    # Later events for the same call only fill in, never blank out
    for field in (
        "phone_number",
        "property_address",
        "issue_description",
        "call_intent",
        "transcript",
        "recording_url",
    ):
        setattr(call, field, getattr(data, field) or getattr(call, field))
    call.homeowner_name = data.homeowner_name or call.homeowner_name or (
        match.homeowner.name if match else None
    )
    call.is_urgent = bool(call.is_urgent) or data.is_urgent

    if match is not None:
        call.homeowner_id = match.homeowner.id
        call.is_verified = True
        call.address_match_similarity = f"{match.similarity:.3f}"
    elif call.homeowner_id is None:
        call.is_verified = False
    return call


async def create_claim_from_call(db, data: CallData, match: Optional[AddressMatch]) -> Optional[Claim]:
    """A "Call in" claim for matched callers reporting a new issue, at most one per day."""
    if match is None or data.call_intent not in CLAIM_INTENTS:
        return None
    if await has_recent_open_claim(db, match.homeowner.id):
        logger.info("vapi_claim_skipped_duplicate", homeowner_id=str(match.homeowner.id))
        return None

    claim = Claim(
        id=uuid4(),
        title="Call in",
        description=data.issue_description or "",
        category="General",
        status=ClaimStatus.SUBMITTED,
        claim_number=await next_claim_number(db, match.homeowner.id),
    )
    apply_homeowner_fields(claim, match.homeowner)
    db.add(claim)
    return claim


@router.post("/vapi", summary="Vapi call events")
async def vapi_webhook(
    request: Request,
    db: DbSession,
    vapi: Vapi,
    email: Email,
    x_vapi_secret: Optional[str] = Header(None),
) -> Dict[str, Any]:
    """
    Record a call, match the caller to a homeowner by address and open a
    claim when appropriate. Staff are emailed on the final event.
    """
    if not verify_vapi_secret(x_vapi_secret):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid webhook secret",
        )

    try:
        payload = json.loads(await request.body())
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON payload",
        ) from e
    if not isinstance(payload, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON payload",
        )

    data = extract_call_data(payload)
    if not data.vapi_call_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing call id",
        )

    data = await vapi.fill_missing(data)
    final = is_final_event(payload, data)
    if not data.phone_number or data.phone_number.strip().lower() == "not provided":
        data.phone_number = extract_caller_number(payload)
    if not data.call_intent:
        data.call_intent = default_intent(data.issue_description)

    match = await find_matching_homeowner(
        db, data.property_address, settings.VAPI_MIN_ADDRESS_SIMILARITY
    )
    call = await upsert_call(db, data, match)
    claim = await create_claim_from_call(db, data, match)
    await db.commit()

    logger.info(
        "vapi_call_recorded",
        call_id=data.vapi_call_id,
        matched=match is not None,
        similarity=call.address_match_similarity,
        claim_created=claim is not None,
    )

    if final:
        if claim is not None:
            scenario = CallScenario.CLAIM_CREATED
        elif match is not None:
            scenario = CallScenario.MATCH_NO_CLAIM
        else:
            scenario = CallScenario.NO_MATCH
        await email.notify_call_received(
            scenario,
            caller_name=data.homeowner_name,
            phone_number=data.phone_number,
            property_address=data.property_address,
            issue_description=data.issue_description,
            is_urgent=data.is_urgent,
            homeowner_name=match.homeowner.name if match else None,
            claim_number=claim.claim_number if claim else None,
            similarity=match.similarity if match else None,
        )

    return {"success": True}


# ==========================================================================
# SendGrid Events
# ==========================================================================

@router.post("/sendgrid", summary="SendGrid event webhook")
async def sendgrid_webhook(request: Request, db: DbSession) -> Dict[str, Any]:
    """
    Mark logged emails as read when SendGrid reports an open.

    Other event types are acknowledged and ignored. Unknown email ids are
    skipped so SendGrid does not retry the batch.
    """
    try:
        payload = json.loads(await request.body())
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON payload",
        ) from e

    events = payload if isinstance(payload, list) else [payload]
    updated = 0

    for event in events:
        if not isinstance(event, dict):
            continue
        if str(event.get("event") or "").lower() != "open":
            continue

        email_id = event_email_id(event)
        if email_id is None:
            logger.warning("sendgrid_event_without_id", email=event.get("email"))
            continue

        email_log = await db.get(EmailLog, email_id)
        if email_log is None:
            logger.warning("sendgrid_event_unknown_email", email_id=str(email_id))
            continue

        if email_log.opened_at is None:
            email_log.opened_at = event_time(event)
        email_log.status = EmailStatus.READ
        updated += 1

    await db.commit()
    logger.info("sendgrid_events_processed", received=len(events), updated=updated)

    return {"success": True, "received": len(events), "updated": updated}
