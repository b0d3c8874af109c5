"""
Cascade Connect - Homeowners API
=================================

Homeowner directory for staff plus the public enrollment form.
Builder users only ever see homeowners of their own builder group.
"""

from math import ceil
from typing import Optional
from uuid import UUID, uuid4

import structlog
from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy import func, or_, select

from cascade_connect.api.deps import (
    CurrentAdminUser,
    CurrentUser,
    DbSession,
    StaffUser,
    get_homeowner_or_404,
)
from cascade_connect.core.homeowners import prepare_homeowner_fields
from cascade_connect.core.models import BuilderGroup, Homeowner, UserRole
from cascade_connect.core.schemas import (
    HomeownerCreate,
    HomeownerEnrollment,
    HomeownerListResponse,
    HomeownerResponse,
    HomeownerUpdate,
)

router = APIRouter(prefix="/homeowners", tags=["Homeowners"])
enrollment_router = APIRouter(prefix="/enroll", tags=["Enrollment"])
logger = structlog.get_logger()


# ==========================================================================
# Directory
# ==========================================================================

@router.get(
    "",
    response_model=HomeownerListResponse,
    summary="List homeowners",
)
async def list_homeowners(
    current_user: StaffUser,
    db: DbSession,
    q: Optional[str] = Query(None, description="Name, email, address or job name contains"),
    builder_group_id: Optional[UUID] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
) -> HomeownerListResponse:
    query = select(Homeowner)

    if current_user.role == UserRole.BUILDER:
        query = query.where(Homeowner.builder_group_id == current_user.builder_group_id)
    elif builder_group_id:
        query = query.where(Homeowner.builder_group_id == builder_group_id)

    if q and q.strip():
        pattern = f"%{q.strip()}%"
        query = query.where(or_(
            Homeowner.name.ilike(pattern),
            Homeowner.email.ilike(pattern),
            Homeowner.address.ilike(pattern),
            Homeowner.job_name.ilike(pattern),
        ))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0

    query = query.order_by(Homeowner.name).offset((page - 1) * page_size).limit(page_size)
    result = await db.execute(query)

    return HomeownerListResponse(
        items=[HomeownerResponse.model_validate(h) for h in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size,
        pages=ceil(total / page_size) if total > 0 else 1,
    )


@router.get("/{homeowner_id}", response_model=HomeownerResponse, summary="Get homeowner")
async def get_homeowner(homeowner_id: UUID, current_user: CurrentUser, db: DbSession) -> HomeownerResponse:
    """Staff within scope, or the homeowner themselves."""
    return HomeownerResponse.model_validate(
        await get_homeowner_or_404(homeowner_id, current_user, db)
    )


@router.post(
    "",
    response_model=HomeownerResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create homeowner",
)
async def create_homeowner(
    data: HomeownerCreate,
    current_user: StaffUser,
    db: DbSession,
) -> HomeownerResponse:
    fields = prepare_homeowner_fields(data.model_dump())

    if current_user.role == UserRole.BUILDER:
        fields["builder_group_id"] = current_user.builder_group_id

    if fields.get("builder_group_id"):
        group = await db.get(BuilderGroup, fields["builder_group_id"])
        if group is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Builder group not found",
            )
        fields["builder"] = fields.get("builder") or group.name

    homeowner = Homeowner(id=uuid4(), **fields)
    db.add(homeowner)
    await db.commit()
    await db.refresh(homeowner)

    logger.info("homeowner_created", homeowner_id=str(homeowner.id), by=str(current_user.id))
    return HomeownerResponse.model_validate(homeowner)


@router.patch("/{homeowner_id}", response_model=HomeownerResponse, summary="Update homeowner")
async def update_homeowner(
    homeowner_id: UUID,
    data: HomeownerUpdate,
    current_user: StaffUser,
    db: DbSession,
) -> HomeownerResponse:
    homeowner = await get_homeowner_or_404(homeowner_id, current_user, db)
    update_data = data.model_dump(exclude_unset=True)

    if current_user.role == UserRole.BUILDER:
        update_data.pop("builder_group_id", None)

    for field, value in prepare_homeowner_fields(update_data, current=homeowner).items():
        setattr(homeowner, field, value)

    await db.commit()
    await db.refresh(homeowner)
    return HomeownerResponse.model_validate(homeowner)


@router.delete(
    "/{homeowner_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete homeowner",
)
async def delete_homeowner(homeowner_id: UUID, current_user: CurrentAdminUser, db: DbSession) -> None:
    homeowner = await get_homeowner_or_404(homeowner_id, current_user, db)
    await db.delete(homeowner)
    await db.commit()
    logger.info("homeowner_deleted", homeowner_id=str(homeowner_id), by=str(current_user.id))


# ==========================================================================
# Public Enrollment
# ==========================================================================

@enrollment_router.post(
    "/{slug}",
    response_model=HomeownerResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Self-enroll with a builder group",
    responses={404: {"description": "Unknown enrollment link"}},
)
async def enroll_homeowner(slug: str, data: HomeownerEnrollment, db: DbSession) -> HomeownerResponse:
    result = await db.execute(select(BuilderGroup).where(BuilderGroup.enrollment_slug == slug))
    group = result.scalar_one_or_none()
    if group is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Enrollment link not found",
        )

    fields = prepare_homeowner_fields(data.model_dump())
    homeowner = Homeowner(
        id=uuid4(),
        builder_group_id=group.id,
        builder=group.name,
        **fields,
    )
    db.add(homeowner)
    await db.commit()
    await db.refresh(homeowner)

    logger.info("homeowner_enrolled", homeowner_id=str(homeowner.id), builder_group=group.name)
    return HomeownerResponse.model_validate(homeowner)
