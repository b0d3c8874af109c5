"""
Cascade Connect - SMS
======================

Twilio gateway plus the thread bookkeeping shared by the send endpoint
and the inbound webhooks.
"""

import asyncio
from typing import Mapping, Optional
from uuid import uuid4

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from twilio.base.exceptions import TwilioRestException
from twilio.request_validator import RequestValidator
from twilio.rest import Client

from cascade_connect.core.config import settings
from cascade_connect.core.database import utcnow
from cascade_connect.core.exceptions import IntegrationNotConfigured, SmsDeliveryError
from cascade_connect.core.models import Homeowner, SmsStatus, SmsThread
from cascade_connect.core.phone import is_e164, normalize_phone_number, phones_match

logger = structlog.get_logger()

EMPTY_TWIML = '<?xml version="1.0" encoding="UTF-8"?><Response></Response>'


def map_twilio_status(twilio_status: Optional[str]) -> SmsStatus:
    if twilio_status == "delivered":
        return SmsStatus.DELIVERED
    if twilio_status in ("failed", "undelivered"):
        return SmsStatus.FAILED
    return SmsStatus.SENT


# ==========================================================================
# Gateway
# ==========================================================================

class SmsGateway:
    """Sends SMS through Twilio and verifies Twilio webhook signatures."""

    def __init__(
        self,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        from_number: Optional[str] = None,
    ):
        self.account_sid = account_sid or settings.TWILIO_ACCOUNT_SID
        self.auth_token = auth_token or settings.TWILIO_AUTH_TOKEN
        self.from_number = from_number or settings.TWILIO_PHONE_NUMBER
        self._client: Optional[Client] = None

        if self.enabled:
            self._client = Client(self.account_sid, self.auth_token)
            logger.info("sms_gateway_initialized", mode="live", from_number=self.from_number)
        else:
            logger.info("sms_gateway_initialized", mode="disabled")

    @property
    def enabled(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    async def send(self, to: str, body: str) -> str:
        """
        Send a text message.

        Returns:
            The Twilio message SID

        Raises:
            IntegrationNotConfigured: Twilio credentials are missing
            SmsDeliveryError: Twilio rejected the message
        """
        if not self.enabled or self._client is None:
            raise IntegrationNotConfigured("SMS service not configured")

        try:
            message = await asyncio.to_thread(
                self._client.messages.create,
                body=body,
                from_=self.from_number,
                to=to,
            )
        except TwilioRestException as e:
            logger.error("sms_send_failed", to=to, code=e.code, error=e.msg)
            raise SmsDeliveryError(f"Failed to send SMS: {e.msg}") from e

        logger.info("sms_sent", to=to, sid=message.sid)
        return message.sid

    def validate_request(self, url: str, params: Mapping[str, str], signature: Optional[str]) -> bool:
        """Check X-Twilio-Signature. Always passes when validation is off."""
        if not settings.TWILIO_VALIDATE_WEBHOOKS or not self.auth_token:
            return True
        if not signature:
            return False
        return RequestValidator(self.auth_token).validate(url, dict(params), signature)


_sms_gateway: Optional[SmsGateway] = None


def get_sms_gateway() -> SmsGateway:
    """Get or create the shared SMS gateway."""
    global _sms_gateway
    if _sms_gateway is None:
        _sms_gateway = SmsGateway()
    return _sms_gateway


# ==========================================================================
# Thread Bookkeeping
# ==========================================================================

async def find_homeowner_by_phone(db: AsyncSession, phone: str) -> Optional[Homeowner]:
    """Match an incoming number against homeowner phones, comparing E.164 forms."""
    target = normalize_phone_number(phone)
    if target is None:
        return None

    # Exact hit on already-normalized numbers first
    result = await db.execute(select(Homeowner).where(Homeowner.phone == target).limit(1))
    homeowner = result.scalar_one_or_none()
    if homeowner:
        return homeowner

    result = await db.execute(select(Homeowner).where(Homeowner.phone.is_not(None)))
    for candidate in result.scalars():
        if is_e164(candidate.phone):
            continue  # covered by the exact match
        if phones_match(candidate.phone, target):
            return candidate
    return None


async def get_or_create_thread(
    db: AsyncSession,
    homeowner_id,
    phone_number: str,
) -> SmsThread:
    """The homeowner's SMS thread, created on first message; bumps last_message_at."""
    result = await db.execute(
        select(SmsThread).where(SmsThread.homeowner_id == homeowner_id)
    )
    thread = result.scalar_one_or_none()

    if thread is None:
        thread = SmsThread(
            id=uuid4(),
            homeowner_id=homeowner_id,
            phone_number=phone_number,
            last_message_at=utcnow(),
        )
        db.add(thread)
        await db.flush()
        logger.info("sms_thread_created", homeowner_id=str(homeowner_id))
    else:
        thread.last_message_at = utcnow()

    return thread
