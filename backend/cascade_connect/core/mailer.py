"""
Cascade Connect - Email Notifications
======================================

SendGrid client and the notification emails the service sends:
- Claim submitted (to staff who opted in)
- Task assigned (to the assignee, if opted in)
- Voice call intake summary (to the admin inbox)
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from html import escape
from typing import Any, Optional
from uuid import UUID, uuid4

import httpx
import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cascade_connect.core.address_matching import match_quality_description
from cascade_connect.core.config import settings
from cascade_connect.core.database import AsyncSessionLocal, utcnow
from cascade_connect.core.models import EmailLog, EmailStatus
from cascade_connect.core.phone import format_phone_for_display

logger = structlog.get_logger()


class CallScenario(str, Enum):
    CLAIM_CREATED = "CLAIM_CREATED"
    MATCH_NO_CLAIM = "MATCH_NO_CLAIM"
    NO_MATCH = "NO_MATCH"


@dataclass
class EmailMessage:
    to: str
    subject: str
    html: str


# ==========================================================================
# Email Client
# ==========================================================================

class EmailClient:
    """
    Client for the SendGrid v3 mail API.
    Logs instead of sending when no API key is configured.

    Every real send attempt is recorded in ``email_logs``. The row id is
    passed to SendGrid as the ``system_email_id`` custom argument.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    ):
        self.api_key = api_key or settings.SENDGRID_API_KEY
        self.api_url = api_url or settings.SENDGRID_API_URL
        self._client = httpx.AsyncClient(timeout=30.0)
        self._session_factory = session_factory or AsyncSessionLocal

        if self.enabled:
            logger.info("email_client_initialized", mode="live")
        else:
            logger.info("email_client_initialized", mode="logging_only")

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def send(self, message: EmailMessage) -> bool:
        """Send an email. Never raises; returns False on failure."""
        if not self.enabled:
            logger.info(
                "email_logged",
                to=message.to,
                subject=message.subject,
                mode="disabled",
            )
            return True

        log_id = uuid4()
        error: Optional[str] = None
        message_id: Optional[str] = None
        try:
            response = await self._client.post(
                f"{self.api_url}/mail/send",
                json={
                    "personalizations": [{"to": [{"email": message.to}]}],
                    "from": {"email": settings.EMAIL_FROM, "name": settings.EMAIL_FROM_NAME},
                    "subject": message.subject,
                    "content": [{"type": "text/html", "value": message.html}],
                    "custom_args": {"system_email_id": str(log_id)},
                },
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
            if response.status_code in (200, 202):
                message_id = response.headers.get("X-Message-Id")
                logger.debug("email_sent", to=message.to, subject=message.subject)
            else:
                error = f"SendGrid returned {response.status_code}"
                logger.warning(
                    "email_send_failed",
                    to=message.to,
                    status_code=response.status_code,
                )
        except httpx.HTTPError as e:
            error = str(e) or type(e).__name__
            logger.error("email_error", error=error, to=message.to)

        await self._record_delivery(log_id, message, error, message_id)
        return error is None

    async def _record_delivery(
        self,
        log_id: UUID,
        message: EmailMessage,
        error: Optional[str],
        message_id: Optional[str],
    ) -> None:
        try:
            async with self._session_factory() as session:
                session.add(EmailLog(
                    id=log_id,
                    recipient=message.to,
                    subject=message.subject[:500],
                    status=EmailStatus.FAILED if error else EmailStatus.SENT,
                    error=error,
                    sendgrid_message_id=message_id,
                ))
                await session.commit()
        except SQLAlchemyError as e:
            logger.warning("email_log_failed", to=message.to, error=str(e))

    async def close(self) -> None:
        await self._client.aclose()

    # ==================== Notifications ====================

    async def notify_claim_submitted(
        self,
        to: str,
        claim_title: str,
        claim_number: str,
        homeowner_name: str,
        address: str,
    ) -> bool:
        return await self.send(EmailMessage(
            to=to,
            subject=f"New Claim #{claim_number}: {claim_title}",
            html=(
                f"<p>A new warranty claim was submitted.</p>"
                f"<p><strong>{escape(claim_title)}</strong><br>"
                f"Homeowner: {escape(homeowner_name)}<br>"
                f"Address: {escape(address)}</p>"
                f'<p><a href="{settings.PUBLIC_APP_URL}/#claims">Open Cascade Connect</a></p>'
            ),
        ))

    async def notify_task_assigned(
        self,
        to: str,
        task_title: str,
        assigned_by: str,
        context_label: Optional[str] = None,
    ) -> bool:
        context = f"<br>Context: {escape(context_label)}" if context_label else ""
        return await self.send(EmailMessage(
            to=to,
            subject=f"Task assigned: {task_title[:60]}",
            html=(
                f"<p>{escape(assigned_by)} assigned you a task.</p>"
                f"<p><strong>{escape(task_title)}</strong>{context}</p>"
            ),
        ))

    async def notify_call_received(
        self,
        scenario: CallScenario,
        *,
        caller_name: Optional[str],
        phone_number: Optional[str],
        property_address: Optional[str],
        issue_description: Optional[str],
        is_urgent: bool,
        homeowner_name: Optional[str] = None,
        claim_number: Optional[str] = None,
        similarity: Optional[float] = None,
    ) -> bool:
        urgent = "URGENT " if is_urgent else ""
        if scenario == CallScenario.CLAIM_CREATED:
            subject = f"{urgent}Call in: claim #{claim_number} created for {homeowner_name}"
            headline = "A claim was created automatically from this call."
        elif scenario == CallScenario.MATCH_NO_CLAIM:
            subject = f"{urgent}Call in from {homeowner_name}: no claim created"
            headline = "The caller matched a homeowner but no claim was created."
        else:
            subject = f"{urgent}Call in: unmatched caller {caller_name or phone_number or ''}".strip()
            headline = "The caller's address did not match any homeowner."

        match_line = ""
        if similarity is not None:
            match_line = f"<br>Address match: {match_quality_description(similarity)} ({similarity:.0%})"

        return await self.send(EmailMessage(
            to=settings.ADMIN_NOTIFICATION_EMAIL,
            subject=subject,
            html=(
                f"<p>{headline}</p>"
                f"<p>Caller: {escape(caller_name or 'Unknown')}<br>"
                f"Phone: {escape(format_phone_for_display(phone_number) or 'Not provided')}<br>"
                f"Address: {escape(property_address or 'Not provided')}{match_line}</p>"
                f"<p>{escape(issue_description or 'No description')}</p>"
            ),
        ))


# ==========================================================================
# SendGrid Events
# ==========================================================================

def event_email_id(event: dict[str, Any]) -> Optional[UUID]:
    """
    The ``system_email_id`` of a SendGrid event.

    SendGrid flattens custom arguments into the event; nested
    ``custom_args``/``customArgs`` forms are accepted as well.
    """
    value = event.get("system_email_id")
    for key in ("custom_args", "customArgs"):
        nested = event.get(key)
        if not value and isinstance(nested, dict):
            value = nested.get("system_email_id")
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        return None


def event_time(event: dict[str, Any]) -> datetime:
    timestamp = event.get("timestamp")
    if isinstance(timestamp, (int, float)) and not isinstance(timestamp, bool):
        return datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return utcnow()


_email_client: Optional[EmailClient] = None


def get_email_client() -> EmailClient:
    """Get or create the shared email client."""
    global _email_client
    if _email_client is None:
        _email_client = EmailClient()
    return _email_client


async def close_email_client() -> None:
    global _email_client
    if _email_client is not None:
        await _email_client.close()
        _email_client = None
