"""
Cascade Connect - Response Templates API
=========================================

Canned replies. Every template belongs to the user who created it.
"""

from uuid import UUID, uuid4

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import select

from cascade_connect.api.deps import DbSession, StaffUser
from cascade_connect.core.models import ResponseTemplate, User
from cascade_connect.core.schemas import TemplateCreate, TemplateResponse, TemplateUpdate

router = APIRouter(prefix="/templates", tags=["Templates"])


async def get_own_template_or_404(template_id: UUID, user: User, db) -> ResponseTemplate:
    result = await db.execute(
        select(ResponseTemplate).where(
            ResponseTemplate.id == template_id,
            ResponseTemplate.user_id == user.id,
        )
    )
    template = result.scalar_one_or_none()
    if template is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Template not found",
        )
    return template


@router.get("", response_model=list[TemplateResponse], summary="List my templates")
async def list_templates(current_user: StaffUser, db: DbSession) -> list[TemplateResponse]:
    result = await db.execute(
        select(ResponseTemplate)
        .where(ResponseTemplate.user_id == current_user.id)
        .order_by(ResponseTemplate.created_at.desc())
    )
    return [TemplateResponse.model_validate(t) for t in result.scalars().all()]


@router.post(
    "",
    response_model=TemplateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create template",
)
async def create_template(
    data: TemplateCreate,
    current_user: StaffUser,
    db: DbSession,
) -> TemplateResponse:
    template = ResponseTemplate(
        id=uuid4(),
        user_id=current_user.id,
        title=data.title,
        content=data.content,
        category=data.category or "General",
    )
    db.add(template)
    await db.commit()
    await db.refresh(template)
    return TemplateResponse.model_validate(template)


@router.patch("/{template_id}", response_model=TemplateResponse, summary="Update template")
async def update_template(
    template_id: UUID,
    data: TemplateUpdate,
    current_user: StaffUser,
    db: DbSession,
) -> TemplateResponse:
    template = await get_own_template_or_404(template_id, current_user, db)

    for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(template, field, value)

    await db.commit()
    await db.refresh(template)
    return TemplateResponse.model_validate(template)


@router.delete(
    "/{template_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete template",
)
async def delete_template(template_id: UUID, current_user: StaffUser, db: DbSession) -> None:
    template = await get_own_template_or_404(template_id, current_user, db)
    await db.delete(template)
    await db.commit()
