"""
Cascade Connect - Appointments API
===================================

Staff schedule. Homeowner users only see appointments shared with them.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

import structlog
from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy import select

from cascade_connect.api.deps import CurrentUser, DbSession, StaffUser, get_homeowner_or_404
from cascade_connect.core.database import as_utc
from cascade_connect.core.models import (
    Appointment,
    AppointmentGuest,
    AppointmentVisibility,
    Homeowner,
    User,
    UserRole,
)
from cascade_connect.core.schemas import (
    AppointmentCreate,
    AppointmentResponse,
    AppointmentUpdate,
    GuestInput,
)

router = APIRouter(prefix="/appointments", tags=["Appointments"])
logger = structlog.get_logger()


def scope_query(query, user: User):
    if user.role == UserRole.HOMEOWNER:
        return query.where(
            Appointment.homeowner_id == user.homeowner_id,
            Appointment.visibility == AppointmentVisibility.SHARED_WITH_HOMEOWNER,
        )
    if user.role == UserRole.BUILDER:
        return query.where(
            Appointment.homeowner_id.in_(
                select(Homeowner.id).where(Homeowner.builder_group_id == user.builder_group_id)
            )
        )
    return query


async def get_appointment_or_404(appointment_id: UUID, user: User, db) -> Appointment:
    query = scope_query(select(Appointment).where(Appointment.id == appointment_id), user)
    appointment = (await db.execute(query)).scalar_one_or_none()
    if appointment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Appointment not found",
        )
    return appointment


def build_guests(guests: list[GuestInput]) -> list[AppointmentGuest]:
    return [AppointmentGuest(id=uuid4(), email=g.email.lower(), role=g.role) for g in guests]


@router.get("", response_model=list[AppointmentResponse], summary="List appointments")
async def list_appointments(
    current_user: CurrentUser,
    db: DbSession,
    homeowner_id: Optional[UUID] = Query(None),
    start_date: Optional[datetime] = Query(None, description="Appointments ending after"),
    end_date: Optional[datetime] = Query(None, description="Appointments starting before"),
    visibility: Optional[AppointmentVisibility] = Query(None),
) -> list[AppointmentResponse]:
    query = scope_query(select(Appointment), current_user)

    if homeowner_id:
        query = query.where(Appointment.homeowner_id == homeowner_id)
    if start_date:
        query = query.where(Appointment.end_time >= start_date)
    if end_date:
        query = query.where(Appointment.start_time <= end_date)
    if visibility:
        query = query.where(Appointment.visibility == visibility)

    result = await db.execute(query.order_by(Appointment.start_time))
    return [AppointmentResponse.model_validate(a) for a in result.scalars().all()]


@router.post(
    "",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    current_user: StaffUser,
    db: DbSession,
) -> AppointmentResponse:
    if data.homeowner_id:
        await get_homeowner_or_404(data.homeowner_id, current_user, db)

    appointment = Appointment(
        id=uuid4(),
        title=data.title,
        description=data.description,
        start_time=data.start_time,
        end_time=data.end_time,
        homeowner_id=data.homeowner_id,
        visibility=data.visibility,
        type=data.type,
        created_by_id=current_user.id,
        guests=build_guests(data.guests or []),
    )
    db.add(appointment)
    await db.commit()
    await db.refresh(appointment)

    logger.info("appointment_created", appointment_id=str(appointment.id), guests=len(appointment.guests))
    return AppointmentResponse.model_validate(appointment)


@router.get("/{appointment_id}", response_model=AppointmentResponse, summary="Get appointment")
async def get_appointment(appointment_id: UUID, current_user: CurrentUser, db: DbSession) -> AppointmentResponse:
    return AppointmentResponse.model_validate(
        await get_appointment_or_404(appointment_id, current_user, db)
    )


@router.patch("/{appointment_id}", response_model=AppointmentResponse, summary="Update appointment")
async def update_appointment(
    appointment_id: UUID,
    data: AppointmentUpdate,
    current_user: StaffUser,
    db: DbSession,
) -> AppointmentResponse:
    appointment = await get_appointment_or_404(appointment_id, current_user, db)
    update_data = data.model_dump(exclude_unset=True, exclude={"guests"})

    start = as_utc(update_data.get("start_time") or appointment.start_time)
    end = as_utc(update_data.get("end_time") or appointment.end_time)
    if start and end and end <= start:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="end_time must be after start_time",
        )

    if update_data.get("homeowner_id"):
        await get_homeowner_or_404(update_data["homeowner_id"], current_user, db)

    for field, value in update_data.items():
        if value is None and field in ("title", "start_time", "end_time", "visibility", "type"):
            continue
        setattr(appointment, field, value)

    if data.guests is not None:
        appointment.guests = build_guests(data.guests)

    await db.commit()
    await db.refresh(appointment)
    return AppointmentResponse.model_validate(appointment)


@router.delete(
    "/{appointment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete appointment",
)
async def delete_appointment(appointment_id: UUID, current_user: StaffUser, db: DbSession) -> None:
    appointment = await get_appointment_or_404(appointment_id, current_user, db)
    await db.delete(appointment)
    await db.commit()
