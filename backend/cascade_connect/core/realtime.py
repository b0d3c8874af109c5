"""
Cascade Connect - Real-time Fan-out
====================================

Pusher integration for chat and SMS events.

Channels and events:
- team-chat:          new-message, message-read, message-updated, user-typing
- public-user-{id}:   user-typing (direct messages)
- sms-channel:        new-message

Broadcasting is best effort: a failed trigger is logged and never
propagates, so the write that caused it still succeeds.
"""

import asyncio
from typing import Any, Optional

import pusher
import structlog
from fastapi.encoders import jsonable_encoder

from cascade_connect.core.config import settings
from cascade_connect.core.exceptions import IntegrationNotConfigured

logger = structlog.get_logger()

TEAM_CHAT_CHANNEL = "team-chat"
SMS_CHANNEL = "sms-channel"


def user_channel(user_id: Any) -> str:
    """Per-user channel used for typing indicators in DMs."""
    return f"public-user-{user_id}"


class RealtimeClient:
    """
    Thin async wrapper around the Pusher HTTP client.

    The Pusher SDK is synchronous; triggers run in a worker thread.
    """

    def __init__(
        self,
        app_id: Optional[str] = None,
        key: Optional[str] = None,
        secret: Optional[str] = None,
        cluster: Optional[str] = None,
    ):
        app_id = app_id or settings.PUSHER_APP_ID
        key = key or settings.PUSHER_KEY
        secret = secret or settings.PUSHER_SECRET
        self._client: Optional[pusher.Pusher] = None

        if app_id and key and secret:
            self._client = pusher.Pusher(
                app_id=app_id,
                key=key,
                secret=secret,
                cluster=cluster or settings.PUSHER_CLUSTER,
                ssl=True,
            )
            logger.info("realtime_client_initialized", mode="live")
        else:
            logger.info("realtime_client_initialized", mode="logging_only")

    @property
    def enabled(self) -> bool:
        return self._client is not None

    async def trigger(self, channel: str, event: str, data: dict[str, Any]) -> bool:
        """Publish an event. Returns False when delivery failed."""
        payload = jsonable_encoder(data)

        if not self.enabled:
            logger.info("realtime_event_logged", channel=channel, event=event, mode="disabled")
            return True

        try:
            await asyncio.to_thread(self._client.trigger, channel, event, payload)
            logger.debug("realtime_event_sent", channel=channel, event=event)
            return True
        except Exception as e:
            logger.error("realtime_trigger_failed", channel=channel, event=event, error=str(e))
            return False

    def authenticate(self, channel: str, socket_id: str) -> dict[str, Any]:
        """Sign a private channel subscription for the browser client."""
        if not self.enabled:
            raise IntegrationNotConfigured("Real-time messaging is not configured")
        return self._client.authenticate_subscription(channel=channel, socket_id=socket_id)

    # ==================== Convenience ====================

    async def broadcast_chat_event(self, event: str, data: dict[str, Any]) -> bool:
        return await self.trigger(TEAM_CHAT_CHANNEL, event, data)

    async def broadcast_user_event(self, user_id: Any, event: str, data: dict[str, Any]) -> bool:
        return await self.trigger(user_channel(user_id), event, data)

    async def broadcast_sms_message(self, homeowner_id: Any, message: dict[str, Any]) -> bool:
        return await self.trigger(
            SMS_CHANNEL,
            "new-message",
            {"homeownerId": homeowner_id, "message": message},
        )


_realtime_client: Optional[RealtimeClient] = None


def get_realtime_client() -> RealtimeClient:
    """Get or create the shared realtime client."""
    global _realtime_client
    if _realtime_client is None:
        _realtime_client = RealtimeClient()
    return _realtime_client
