"""
Cascade Connect - Builder Groups API
=====================================

Builder groups own homeowners and builder users. Each group has an
enrollment slug for the public homeowner enrollment form.
"""

import re
from uuid import UUID, uuid4

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import func, select

from cascade_connect.api.deps import CurrentAdminUser, DbSession, StaffUser
from cascade_connect.core.models import BuilderGroup, Homeowner, User, UserRole
from cascade_connect.core.schemas import (
    BuilderGroupCreate,
    BuilderGroupResponse,
    BuilderGroupUpdate,
    HomeownerResponse,
)

router = APIRouter(prefix="/builder-groups", tags=["Builder Groups"])


# ==========================================================================
# Helper Functions
# ==========================================================================

def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "builder"


async def unique_slug(name: str, db, exclude_id: UUID | None = None) -> str:
    """Slug from the name, with -2, -3 ... appended while it collides."""
    base = slugify(name)
    slug, n = base, 1
    while True:
        query = select(BuilderGroup.id).where(BuilderGroup.enrollment_slug == slug)
        if exclude_id is not None:
            query = query.where(BuilderGroup.id != exclude_id)
        if (await db.execute(query)).first() is None:
            return slug
        n += 1
        slug = f"{base}-{n}"


async def get_group_or_404(group_id: UUID, db) -> BuilderGroup:
    group = await db.get(BuilderGroup, group_id)
    if group is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Builder group not found",
        )
    return group


async def ensure_name_available(name: str, db, exclude_id: UUID | None = None) -> None:
    query = select(BuilderGroup.id).where(func.lower(BuilderGroup.name) == name.lower())
    if exclude_id is not None:
        query = query.where(BuilderGroup.id != exclude_id)
    if (await db.execute(query)).first() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A builder group with that name already exists",
        )


# ==========================================================================
# CRUD
# ==========================================================================

@router.get("", response_model=list[BuilderGroupResponse], summary="List builder groups")
async def list_builder_groups(current_user: StaffUser, db: DbSession) -> list[BuilderGroupResponse]:
    query = select(BuilderGroup).order_by(BuilderGroup.name)
    if current_user.role == UserRole.BUILDER:
        query = query.where(BuilderGroup.id == current_user.builder_group_id)
    result = await db.execute(query)
    return [BuilderGroupResponse.model_validate(g) for g in result.scalars().all()]


@router.post(
    "",
    response_model=BuilderGroupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create builder group",
)
async def create_builder_group(
    data: BuilderGroupCreate,
    current_user: CurrentAdminUser,
    db: DbSession,
) -> BuilderGroupResponse:
    await ensure_name_available(data.name, db)

    group = BuilderGroup(
        id=uuid4(),
        name=data.name,
        email=data.email,
        enrollment_slug=await unique_slug(data.name, db),
    )
    db.add(group)
    await db.commit()
    await db.refresh(group)
    return BuilderGroupResponse.model_validate(group)


@router.get("/{group_id}", response_model=BuilderGroupResponse, summary="Get builder group")
async def get_builder_group(group_id: UUID, current_user: CurrentAdminUser, db: DbSession) -> BuilderGroupResponse:
    return BuilderGroupResponse.model_validate(await get_group_or_404(group_id, db))


@router.patch("/{group_id}", response_model=BuilderGroupResponse, summary="Update builder group")
async def update_builder_group(
    group_id: UUID,
    data: BuilderGroupUpdate,
    current_user: CurrentAdminUser,
    db: DbSession,
) -> BuilderGroupResponse:
    group = await get_group_or_404(group_id, db)
    update_data = data.model_dump(exclude_unset=True)

    if update_data.get("name") and update_data["name"] != group.name:
        await ensure_name_available(update_data["name"], db, exclude_id=group.id)
        group.enrollment_slug = await unique_slug(update_data["name"], db, exclude_id=group.id)

    for field, value in update_data.items():
        setattr(group, field, value)

    await db.commit()
    await db.refresh(group)
    return BuilderGroupResponse.model_validate(group)


@router.delete(
    "/{group_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete builder group",
    responses={409: {"description": "Group still has homeowners or users"}},
)
async def delete_builder_group(group_id: UUID, current_user: CurrentAdminUser, db: DbSession) -> None:
    group = await get_group_or_404(group_id, db)

    homeowners = await db.execute(
        select(func.count(Homeowner.id)).where(Homeowner.builder_group_id == group.id)
    )
    users = await db.execute(
        select(func.count(User.id)).where(User.builder_group_id == group.id)
    )
    if (homeowners.scalar() or 0) or (users.scalar() or 0):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Builder group still has homeowners or users",
        )

    await db.delete(group)
    await db.commit()


@router.get(
    "/{group_id}/homeowners",
    response_model=list[HomeownerResponse],
    summary="List homeowners in a builder group",
)
async def list_group_homeowners(
    group_id: UUID,
    current_user: StaffUser,
    db: DbSession,
) -> list[HomeownerResponse]:
    if current_user.role == UserRole.BUILDER and current_user.builder_group_id != group_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Builder group not found",
        )
    await get_group_or_404(group_id, db)

    result = await db.execute(
        select(Homeowner).where(Homeowner.builder_group_id == group_id).order_by(Homeowner.name)
    )
    return [HomeownerResponse.model_validate(h) for h in result.scalars().all()]
