"""
Cascade Connect - Real-time API
================================

Signs private Pusher channel subscriptions for signed-in staff.
"""

from typing import Any

from fastapi import APIRouter, HTTPException, status

from cascade_connect.api.deps import Realtime, StaffUser
from cascade_connect.core.exceptions import IntegrationNotConfigured
from cascade_connect.core.schemas import RealtimeAuthRequest

router = APIRouter(prefix="/realtime", tags=["Real-time"])


@router.post(
    "/auth",
    summary="Authorize a private channel subscription",
    responses={503: {"description": "Real-time messaging not configured"}},
)
async def authenticate_channel(
    data: RealtimeAuthRequest,
    current_user: StaffUser,
    realtime: Realtime,
) -> dict[str, Any]:
    try:
        return realtime.authenticate(data.channel_name, data.socket_id)
    except IntegrationNotConfigured as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        ) from e
    except ValueError as e:
        # Pusher rejects malformed channel names and socket ids
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e
