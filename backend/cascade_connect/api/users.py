"""
Cascade Connect - Users API
============================

Staff account management and the team directory.
"""

from uuid import uuid4

import structlog
from fastapi import APIRouter, HTTPException, status
from sqlalchemy import select

from cascade_connect.api.auth import hash_password
from cascade_connect.api.deps import CurrentAdminUser, DbSession, StaffUser
from cascade_connect.core.models import BuilderGroup, User, UserRole
from cascade_connect.core.schemas import InternalUserCreate, TeamMemberResponse, UserResponse

router = APIRouter(prefix="/users", tags=["Users"])
logger = structlog.get_logger()


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a staff user",
    responses={
        409: {"description": "Email already registered"},
        422: {"description": "Builder user without a valid builder group"},
    },
)
async def create_internal_user(
    data: InternalUserCreate,
    current_user: CurrentAdminUser,
    db: DbSession,
) -> UserResponse:
    email = data.email.lower()

    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        )

    if data.role == UserRole.BUILDER:
        if data.builder_group_id is None or await db.get(BuilderGroup, data.builder_group_id) is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Builder users require an existing builder group",
            )

    user = User(
        id=uuid4(),
        email=email,
        password_hash=hash_password(data.password),
        name=data.name,
        role=data.role,
        internal_role=data.internal_role,
        builder_group_id=data.builder_group_id if data.role == UserRole.BUILDER else None,
        is_active=True,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    logger.info("staff_user_created", user_id=str(user.id), role=user.role.value, by=str(current_user.id))
    return UserResponse.model_validate(user)


@router.get(
    "/team",
    response_model=list[TeamMemberResponse],
    summary="List team members",
)
async def list_team_members(
    current_user: StaffUser,
    db: DbSession,
) -> list[TeamMemberResponse]:
    """Active internal employees, by name. Used to start direct messages."""
    result = await db.execute(
        select(User)
        .where(User.role == UserRole.ADMIN, User.is_active.is_(True))
        .order_by(User.name)
    )
    return [TeamMemberResponse.model_validate(u) for u in result.scalars().all()]
