"""
Cascade Connect - Contractors API
==================================

Sub-contractor directory used when assigning claims.
"""

from uuid import UUID, uuid4

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import select

from cascade_connect.api.deps import DbSession, StaffUser
from cascade_connect.core.models import Contractor
from cascade_connect.core.phone import normalize_phone_number
from cascade_connect.core.schemas import ContractorCreate, ContractorResponse, ContractorUpdate

router = APIRouter(prefix="/contractors", tags=["Contractors"])


async def get_contractor_or_404(contractor_id: UUID, db) -> Contractor:
    contractor = await db.get(Contractor, contractor_id)
    if contractor is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Contractor not found",
        )
    return contractor


@router.get("", response_model=list[ContractorResponse], summary="List contractors")
async def list_contractors(current_user: StaffUser, db: DbSession) -> list[ContractorResponse]:
    result = await db.execute(select(Contractor).order_by(Contractor.company_name))
    return [ContractorResponse.model_validate(c) for c in result.scalars().all()]


@router.post(
    "",
    response_model=ContractorResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create contractor",
)
async def create_contractor(
    data: ContractorCreate,
    current_user: StaffUser,
    db: DbSession,
) -> ContractorResponse:
    fields = data.model_dump()
    if fields.get("phone"):
        fields["phone"] = normalize_phone_number(fields["phone"]) or fields["phone"]

    contractor = Contractor(id=uuid4(), **fields)
    db.add(contractor)
    await db.commit()
    await db.refresh(contractor)
    return ContractorResponse.model_validate(contractor)


@router.get("/{contractor_id}", response_model=ContractorResponse, summary="Get contractor")
async def get_contractor(contractor_id: UUID, current_user: StaffUser, db: DbSession) -> ContractorResponse:
    return ContractorResponse.model_validate(await get_contractor_or_404(contractor_id, db))


@router.patch("/{contractor_id}", response_model=ContractorResponse, summary="Update contractor")
async def update_contractor(
    contractor_id: UUID,
    data: ContractorUpdate,
    current_user: StaffUser,
    db: DbSession,
) -> ContractorResponse:
    contractor = await get_contractor_or_404(contractor_id, db)

    for field, value in data.model_dump(exclude_unset=True).items():
        if field == "phone" and value:
            value = normalize_phone_number(value) or value
        setattr(contractor, field, value)

    await db.commit()
    await db.refresh(contractor)
    return ContractorResponse.model_validate(contractor)


@router.delete(
    "/{contractor_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete contractor",
)
async def delete_contractor(contractor_id: UUID, current_user: StaffUser, db: DbSession) -> None:
    contractor = await get_contractor_or_404(contractor_id, db)
    await db.delete(contractor)
    await db.commit()
