"""
Cascade Connect - Calls API
============================

Voice assistant call log.
"""

from math import ceil
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy import func, select

from cascade_connect.api.deps import DbSession, StaffUser
from cascade_connect.core.models import Call, Homeowner, UserRole
from cascade_connect.core.schemas import CallListResponse, CallResponse

router = APIRouter(prefix="/calls", tags=["Calls"])


@router.get("", response_model=CallListResponse, summary="List calls")
async def list_calls(
    current_user: StaffUser,
    db: DbSession,
    verified: Optional[bool] = Query(None, description="Matched to a homeowner"),
    urgent: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
) -> CallListResponse:
    query = select(Call)

    if current_user.role == UserRole.BUILDER:
        query = query.join(Homeowner, Homeowner.id == Call.homeowner_id).where(
            Homeowner.builder_group_id == current_user.builder_group_id
        )
    if verified is not None:
        query = query.where(Call.is_verified.is_(verified))
    if urgent is not None:
        query = query.where(Call.is_urgent.is_(urgent))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0

    query = query.order_by(Call.created_at.desc()).offset((page - 1) * page_size).limit(page_size)
    result = await db.execute(query)

    return CallListResponse(
        items=[CallResponse.model_validate(c) for c in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size,
        pages=ceil(total / page_size) if total > 0 else 1,
    )


@router.get("/{call_id}", response_model=CallResponse, summary="Get call")
async def get_call(call_id: UUID, current_user: StaffUser, db: DbSession) -> CallResponse:
    call = await db.get(Call, call_id)
    if call is not None and current_user.role == UserRole.BUILDER:
        homeowner = await db.get(Homeowner, call.homeowner_id) if call.homeowner_id else None
        if homeowner is None or homeowner.builder_group_id != current_user.builder_group_id:
            call = None
    if call is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Call not found",
        )
    return CallResponse.model_validate(call)
