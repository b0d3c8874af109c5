"""
Cascade Connect - Email Delivery Tests
=======================================

SendGrid sends recorded in the email log, open events from the SendGrid
webhook and the admin email log page.
"""

import json
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import httpx
import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cascade_connect.core.config import settings
from cascade_connect.core.database import as_utc, utcnow
from cascade_connect.core.mailer import EmailClient, EmailMessage, event_email_id, event_time
from cascade_connect.core.models import EmailLog, EmailStatus

MESSAGE = EmailMessage(to="staff@example.com", subject="New Claim #1: Leaky sink", html="<p>Hi</p>")


class SendGridStub:
    """Answers every mail/send request with a fixed response."""

    def __init__(self, status_code: int = 202, error: Exception | None = None):
        self.status_code = status_code
        self.error = error
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, headers={"X-Message-Id": "sg-msg-1"})


async def live_client(session_factory, stub: SendGridStub) -> EmailClient:
    email = EmailClient(api_key="sg-test-key", session_factory=session_factory)
    await email.close()
    email._client = httpx.AsyncClient(transport=httpx.MockTransport(stub))
    return email


class TestEmailLogging:
    async def test_successful_send_logged(self, session_factory, db_session: AsyncSession):
        stub = SendGridStub()
        email = await live_client(session_factory, stub)

        assert await email.send(MESSAGE) is True
        await email.close()

        log = (await db_session.execute(select(EmailLog))).scalar_one()
        assert log.recipient == "staff@example.com"
        assert log.subject == "New Claim #1: Leaky sink"
        assert log.status == EmailStatus.SENT
        assert log.sendgrid_message_id == "sg-msg-1"
        assert log.error is None

        body = json.loads(stub.requests[0].content)
        assert body["custom_args"] == {"system_email_id": str(log.id)}
        assert stub.requests[0].headers["Authorization"] == "Bearer sg-test-key"

    async def test_rejected_send_logged_as_failed(self, session_factory, db_session: AsyncSession):
        email = await live_client(session_factory, SendGridStub(status_code=400))

        assert await email.send(MESSAGE) is False
        await email.close()

        log = (await db_session.execute(select(EmailLog))).scalar_one()
        assert log.status == EmailStatus.FAILED
        assert log.error == "SendGrid returned 400"

    async def test_transport_error_logged_as_failed(self, session_factory, db_session: AsyncSession):
        email = await live_client(session_factory, SendGridStub(error=httpx.ConnectError("connection refused")))

        assert await email.send(MESSAGE) is False
        await email.close()

        log = (await db_session.execute(select(EmailLog))).scalar_one()
        assert log.status == EmailStatus.FAILED
        assert log.error == "connection refused"

    async def test_logging_only_mode_writes_nothing(
        self, session_factory, db_session: AsyncSession, monkeypatch
    ):
        monkeypatch.setattr(settings, "SENDGRID_API_KEY", None)
        email = EmailClient(session_factory=session_factory)

        assert await email.send(MESSAGE) is True
        await email.close()

        assert (await db_session.execute(select(EmailLog))).scalars().all() == []


class TestSendGridEvents:
    def test_email_id_locations(self):
        email_id = uuid4()

        assert event_email_id({"system_email_id": str(email_id)}) == email_id
        assert event_email_id({"custom_args": {"system_email_id": str(email_id)}}) == email_id
        assert event_email_id({"customArgs": {"system_email_id": str(email_id)}}) == email_id
        assert event_email_id({"system_email_id": "42"}) is None
        assert event_email_id({}) is None

    def test_event_time(self):
        assert event_time({"timestamp": 1700000000}) == datetime.fromtimestamp(1700000000, tz=timezone.utc)
        assert abs(event_time({}) - utcnow()) < timedelta(seconds=5)


@pytest.fixture
async def sent_email(db_session: AsyncSession) -> EmailLog:
    log = EmailLog(
        id=uuid4(),
        recipient="staff@example.com",
        subject="Task assigned: Call the plumber",
        status=EmailStatus.SENT,
    )
    db_session.add(log)
    await db_session.commit()
    return log


class TestSendGridWebhook:
    async def test_open_marks_email_read(
        self, client: AsyncClient, db_session: AsyncSession, sent_email: EmailLog
    ):
        response = await client.post("/api/v1/webhooks/sendgrid", json=[
            {"event": "delivered", "email": "staff@example.com", "system_email_id": str(sent_email.id)},
            {"event": "open", "email": "staff@example.com", "timestamp": 1700000000,
             "system_email_id": str(sent_email.id)},
            {"event": "open", "email": "other@example.com", "system_email_id": str(uuid4())},
            {"event": "open", "email": "nobody@example.com"},
        ])

        assert response.status_code == 200
        assert response.json() == {"success": True, "received": 4, "updated": 1}

        await db_session.refresh(sent_email)
        assert sent_email.status == EmailStatus.READ
        assert as_utc(sent_email.opened_at) == datetime.fromtimestamp(1700000000, tz=timezone.utc)

    async def test_first_open_time_kept(
        self, client: AsyncClient, db_session: AsyncSession, sent_email: EmailLog
    ):
        for timestamp in (1700000000, 1700009999):
            await client.post("/api/v1/webhooks/sendgrid", json={
                "event": "open",
                "timestamp": timestamp,
                "custom_args": {"system_email_id": str(sent_email.id)},
            })

        await db_session.refresh(sent_email)
        assert as_utc(sent_email.opened_at) == datetime.fromtimestamp(1700000000, tz=timezone.utc)

    async def test_invalid_json(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/webhooks/sendgrid",
            content=b"not json",
            headers={"content-type": "application/json"},
        )

        assert response.status_code == 400


class TestEmailLogPage:
    async def test_logs_and_stats(
        self, client: AsyncClient, admin_headers: dict, db_session: AsyncSession
    ):
        now = utcnow()
        for status, age in ((EmailStatus.SENT, 1), (EmailStatus.FAILED, 2), (EmailStatus.READ, 40)):
            db_session.add(EmailLog(
                id=uuid4(),
                recipient=f"{status.value}@example.com",
                subject="Hello",
                status=status,
                created_at=now - timedelta(days=age),
            ))
        await db_session.commit()

        response = await client.get("/api/v1/backend/email-logs", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert [log["recipient"] for log in data["logs"]] == [
            "sent@example.com",
            "failed@example.com",
            "read@example.com",
        ]
        assert data["stats"] == {"total": 3, "sent": 1, "failed": 1, "read": 1}

        response = await client.get(
            "/api/v1/backend/email-logs",
            headers=admin_headers,
            params={"start_date": (now - timedelta(days=7)).isoformat()},
        )
        data = response.json()
        assert len(data["logs"]) == 2
        assert data["stats"]["total"] == 3

    async def test_admin_only(self, client: AsyncClient, builder_headers: dict):
        response = await client.get("/api/v1/backend/email-logs", headers=builder_headers)

        assert response.status_code == 403
