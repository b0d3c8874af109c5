"""
Cascade Connect - Voice Intake
===============================

Vapi webhook payload parsing and the Vapi REST fallback.

Vapi sends structured call data in several shapes depending on the
event type and assistant configuration, so extraction walks a list of
known locations and field aliases.
"""

import hmac
from dataclasses import dataclass, fields
from typing import Any, Optional

import httpx
import structlog

from cascade_connect.core.config import settings

logger = structlog.get_logger()

FINAL_EVENT_TYPES = ("end-of-call-report", "function-call")

_ADDRESS_KEYS = ("propertyAddress", "property_address", "address")
_NAME_KEYS = ("homeownerName", "homeowner_name", "name")
_PHONE_KEYS = ("phoneNumber", "phone_number")
_ISSUE_KEYS = ("issueDescription", "issue_description", "description")
_INTENT_KEYS = ("callIntent", "call_intent", "intent")
_URGENT_KEYS = ("isUrgent", "is_urgent", "urgent")


@dataclass
class CallData:
    vapi_call_id: str = ""
    property_address: Optional[str] = None
    homeowner_name: Optional[str] = None
    phone_number: Optional[str] = None
    issue_description: Optional[str] = None
    call_intent: Optional[str] = None
    is_urgent: bool = False
    transcript: Optional[str] = None
    recording_url: Optional[str] = None


def verify_vapi_secret(header_secret: Optional[str]) -> bool:
    """Constant-time check of the x-vapi-secret header."""
    if not header_secret or not settings.VAPI_SECRET:
        return False
    return hmac.compare_digest(header_secret, settings.VAPI_SECRET)


# ==========================================================================
# Extraction
# ==========================================================================

def _dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _first(source: dict, keys: tuple[str, ...]) -> Optional[Any]:
    for key in keys:
        value = source.get(key)
        if value not in (None, ""):
            return value
    return None


def _message(payload: dict) -> dict:
    return _dict(payload.get("message")) or payload


def _call(payload: dict) -> dict:
    message = _message(payload)
    return _dict(message.get("call")) or _dict(payload.get("call")) or message


def extract_call_id(payload: dict) -> Optional[str]:
    call = _call(payload)
    call_id = call.get("id") or call.get("callId") or payload.get("id")
    return str(call_id) if call_id else None


def extract_structured_data(payload: dict) -> dict:
    """First non-empty structured data block in the payload."""
    message = _message(payload)
    call = _call(payload)
    analysis = _dict(message.get("analysis")) or _dict(call.get("analysis")) or _dict(payload.get("analysis"))
    artifact = _dict(message.get("artifact")) or _dict(call.get("artifact")) or _dict(payload.get("artifact"))

    candidates = (
        _dict(message.get("analysis")).get("structuredData"),
        _dict(message.get("artifact")).get("structuredOutputs"),
        message.get("structuredData"),
        analysis.get("structuredData"),
        artifact.get("structuredOutputs"),
        artifact.get("structuredData"),
    )
    for candidate in candidates:
        if isinstance(candidate, dict) and candidate:
            return candidate
    return {}


def extract_call_data(payload: dict) -> CallData:
    message = _message(payload)
    call = _call(payload)
    structured = extract_structured_data(payload)

    intent = _first(structured, _INTENT_KEYS)
    is_urgent = any(structured.get(key) is True for key in _URGENT_KEYS) or intent == "urgent"

    return CallData(
        vapi_call_id=extract_call_id(payload) or "",
        property_address=_first(structured, _ADDRESS_KEYS) or _first(call, ("propertyAddress", "address")),
        homeowner_name=_first(structured, _NAME_KEYS) or call.get("homeownerName"),
        phone_number=_first(structured, _PHONE_KEYS) or _first(call, ("phoneNumber", "from")),
        issue_description=_first(structured, _ISSUE_KEYS),
        call_intent=intent,
        is_urgent=is_urgent,
        transcript=call.get("transcript") or call.get("transcription") or message.get("transcript"),
        recording_url=call.get("recordingUrl") or call.get("recording_url"),
    )


def extract_caller_number(payload: dict) -> Optional[str]:
    """Caller ID as reported by the telephony side."""
    call = _call(payload)
    customer = _dict(call.get("customer")) or _dict(_message(payload).get("customer"))
    return customer.get("number") or call.get("phoneNumber") or call.get("from")


def merge_missing(target: CallData, source: CallData) -> CallData:
    """Fill fields that are empty on target from source."""
    for f in fields(CallData):
        if f.name == "vapi_call_id":
            continue
        if f.name == "is_urgent":
            target.is_urgent = target.is_urgent or source.is_urgent
        elif not getattr(target, f.name) and getattr(source, f.name):
            setattr(target, f.name, getattr(source, f.name))
    return target


def is_final_event(payload: dict, data: CallData) -> bool:
    event_type = _message(payload).get("type") or payload.get("type")
    return (
        event_type in FINAL_EVENT_TYPES
        or bool(data.property_address)
        or bool(data.call_intent)
    )


def default_intent(issue_description: Optional[str]) -> str:
    if issue_description and len(issue_description) > 20:
        return "new_claim"
    return "other"


# ==========================================================================
# Vapi API Client
# ==========================================================================

class VapiClient:
    """Fetches call records from the Vapi REST API."""

    def __init__(self, api_url: Optional[str] = None, secret: Optional[str] = None):
        self.api_url = (api_url or settings.VAPI_API_URL).rstrip("/")
        self.secret = secret or settings.VAPI_SECRET
        self._client = httpx.AsyncClient(timeout=15.0)

    @property
    def enabled(self) -> bool:
        return bool(self.secret)

    async def fetch_call(self, call_id: str) -> dict:
        """
        GET /call/{id}.

        Raises:
            httpx.HTTPError: request failed or returned an error status
        """
        response = await self._client.get(
            f"{self.api_url}/call/{call_id}",
            headers={"Authorization": f"Bearer {self.secret}"},
        )
        response.raise_for_status()
        return response.json()

    async def fill_missing(self, data: CallData) -> CallData:
        """Merge structured data from the API when the webhook lacked an address."""
        if data.property_address or not data.vapi_call_id or not self.enabled:
            return data

        logger.info("vapi_fallback_fetch", call_id=data.vapi_call_id)
        try:
            api_payload = await self.fetch_call(data.vapi_call_id)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("vapi_fallback_failed", call_id=data.vapi_call_id, error=str(e))
            return data

        return merge_missing(data, extract_call_data(api_payload))

    async def close(self) -> None:
        await self._client.aclose()


_vapi_client: Optional[VapiClient] = None


def get_vapi_client() -> VapiClient:
    """Get or create the shared Vapi client."""
    global _vapi_client
    if _vapi_client is None:
        _vapi_client = VapiClient()
    return _vapi_client


async def close_vapi_client() -> None:
    global _vapi_client
    if _vapi_client is not None:
        await _vapi_client.close()
        _vapi_client = None
