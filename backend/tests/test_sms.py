"""
Cascade Connect - SMS Tests
============================

Outbound sends, thread browsing and the Twilio webhooks.
"""

from uuid import UUID

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cascade_connect.core.exceptions import IntegrationNotConfigured, SmsDeliveryError
from cascade_connect.core.models import Homeowner, SmsMessage, SmsStatus, SmsThread
from cascade_connect.core.sms import EMPTY_TWIML, find_homeowner_by_phone, map_twilio_status


class TestSmsHelpers:
    def test_map_twilio_status(self):
        assert map_twilio_status("delivered") == SmsStatus.DELIVERED
        assert map_twilio_status("undelivered") == SmsStatus.FAILED
        assert map_twilio_status("failed") == SmsStatus.FAILED
        assert map_twilio_status("sent") == SmsStatus.SENT
        assert map_twilio_status(None) == SmsStatus.SENT

    async def test_find_homeowner_by_phone(self, db_session: AsyncSession, homeowner: Homeowner):
        assert (await find_homeowner_by_phone(db_session, "(503) 555-0100")).id == homeowner.id
        assert await find_homeowner_by_phone(db_session, "+19995550000") is None
        assert await find_homeowner_by_phone(db_session, "12345") is None

    async def test_find_homeowner_with_unnormalized_phone(self, db_session: AsyncSession, homeowner: Homeowner):
        homeowner.phone = "503-555-0100"
        await db_session.commit()

        assert (await find_homeowner_by_phone(db_session, "+15035550100")).id == homeowner.id


class TestSendSms:
    async def test_send(
        self, client: AsyncClient, admin_headers: dict, homeowner: Homeowner, fake_sms, fake_realtime
    ):
        response = await client.post(
            "/api/v1/sms/send",
            headers=admin_headers,
            json={"homeowner_id": str(homeowner.id), "message": "Your repair is scheduled for Friday."},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["twilio_sid"] == f"SM{1:032d}"
        assert fake_sms.sent == [("+15035550100", "Your repair is scheduled for Friday.")]

        events = fake_realtime.events_named("new-message")
        assert events[0][0] == "sms-channel"
        assert events[0][2]["homeownerId"] == str(homeowner.id)
        assert events[0][2]["message"]["direction"] == "outbound"

        response = await client.get(f"/api/v1/sms/threads/{homeowner.id}/messages", headers=admin_headers)
        messages = response.json()
        assert [m["body"] for m in messages] == ["Your repair is scheduled for Friday."]
        assert messages[0]["status"] == "sent"

    async def test_second_send_reuses_thread(
        self, client: AsyncClient, admin_headers: dict, homeowner: Homeowner, db_session: AsyncSession
    ):
        for text in ("First", "Second"):
            await client.post(
                "/api/v1/sms/send",
                headers=admin_headers,
                json={"homeowner_id": str(homeowner.id), "message": text},
            )

        response = await client.get("/api/v1/sms/threads", headers=admin_headers)
        threads = response.json()
        assert len(threads) == 1
        assert threads[0]["phone_number"] == "+15035550100"

    async def test_homeowner_without_phone(
        self, client: AsyncClient, admin_headers: dict, homeowner: Homeowner, db_session: AsyncSession
    ):
        homeowner.phone = None
        await db_session.commit()

        response = await client.post(
            "/api/v1/sms/send",
            headers=admin_headers,
            json={"homeowner_id": str(homeowner.id), "message": "Hello"},
        )

        assert response.status_code == 400

    @pytest.mark.parametrize(
        "error,expected_status",
        [
            (IntegrationNotConfigured("SMS service not configured"), 503),
            (SmsDeliveryError("Failed to send SMS: invalid number"), 502),
        ],
    )
    async def test_gateway_failures(
        self,
        client: AsyncClient,
        admin_headers: dict,
        homeowner: Homeowner,
        fake_sms,
        db_session: AsyncSession,
        error,
        expected_status,
    ):
        fake_sms.error = error

        response = await client.post(
            "/api/v1/sms/send",
            headers=admin_headers,
            json={"homeowner_id": str(homeowner.id), "message": "Hello"},
        )

        assert response.status_code == expected_status
        assert (await db_session.execute(select(SmsMessage))).scalars().all() == []

    async def test_message_validation(self, client: AsyncClient, admin_headers: dict, homeowner: Homeowner):
        for message in ("", "x" * 1601):
            response = await client.post(
                "/api/v1/sms/send",
                headers=admin_headers,
                json={"homeowner_id": str(homeowner.id), "message": message},
            )
            assert response.status_code == 422

    async def test_builder_threads_scoped(
        self,
        client: AsyncClient,
        admin_headers: dict,
        builder_headers: dict,
        homeowner: Homeowner,
        other_homeowner: Homeowner,
    ):
        for target in (homeowner, other_homeowner):
            await client.post(
                "/api/v1/sms/send",
                headers=admin_headers,
                json={"homeowner_id": str(target.id), "message": "Hi"},
            )

        response = await client.get("/api/v1/sms/threads", headers=builder_headers)
        assert [t["homeowner_id"] for t in response.json()] == [str(homeowner.id)]

        response = await client.get(f"/api/v1/sms/threads/{other_homeowner.id}/messages", headers=builder_headers)
        assert response.status_code == 404


class TestTwilioWebhooks:
    async def test_inbound_sms_stored(
        self, client: AsyncClient, homeowner: Homeowner, db_session: AsyncSession, fake_realtime
    ):
        response = await client.post(
            "/api/v1/webhooks/twilio/sms",
            data={"From": "+15035550100", "Body": "The leak is back", "MessageSid": "SMinbound1"},
        )

        assert response.status_code == 200
        assert response.text == EMPTY_TWIML
        assert response.headers["content-type"].startswith("text/xml")

        result = await db_session.execute(select(SmsMessage))
        message = result.scalar_one()
        assert message.body == "The leak is back"
        assert message.twilio_sid == "SMinbound1"
        assert message.direction.value == "inbound"

        thread = (await db_session.execute(select(SmsThread))).scalar_one()
        assert thread.homeowner_id == homeowner.id
        assert fake_realtime.events_named("new-message")

    async def test_inbound_from_unknown_number(
        self, client: AsyncClient, homeowner: Homeowner, db_session: AsyncSession
    ):
        response = await client.post(
            "/api/v1/webhooks/twilio/sms",
            data={"From": "+19995550000", "Body": "Who is this?", "MessageSid": "SMx"},
        )

        assert response.status_code == 200
        assert (await db_session.execute(select(SmsMessage))).scalars().all() == []

    async def test_inbound_missing_fields(self, client: AsyncClient):
        response = await client.post("/api/v1/webhooks/twilio/sms", data={"From": "+15035550100"})

        assert response.status_code == 400
        assert response.text == EMPTY_TWIML

    async def test_invalid_signature(self, client: AsyncClient, fake_sms, homeowner: Homeowner):
        fake_sms.signature_valid = False

        response = await client.post(
            "/api/v1/webhooks/twilio/sms",
            data={"From": "+15035550100", "Body": "x"},
            headers={"X-Twilio-Signature": "bogus"},
        )

        assert response.status_code == 403

    async def test_status_callback_updates_message(
        self, client: AsyncClient, admin_headers: dict, homeowner: Homeowner, db_session: AsyncSession
    ):
        sent = (await client.post(
            "/api/v1/sms/send",
            headers=admin_headers,
            json={"homeowner_id": str(homeowner.id), "message": "Hello"},
        )).json()

        response = await client.post(
            "/api/v1/webhooks/twilio/status",
            data={"MessageSid": sent["twilio_sid"], "MessageStatus": "delivered"},
        )
        assert response.status_code == 200

        response = await client.post(
            "/api/v1/webhooks/twilio/status",
            data={"MessageSid": "SMunknown", "MessageStatus": "failed"},
        )
        assert response.status_code == 200

        message = await db_session.get(SmsMessage, UUID(sent["message_id"]))
        await db_session.refresh(message)
        assert message.status == SmsStatus.DELIVERED
