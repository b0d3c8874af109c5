"""
Cascade Connect - Claims API
=============================

Warranty claim lifecycle.

Claims are always listed per homeowner; staff must name the homeowner
and homeowner users get their own claims. Status and classification
changes stamp the evaluation, scheduling and completion times.
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog
from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy import select

from cascade_connect.api.deps import (
    CurrentUser,
    DbSession,
    Email,
    StaffUser,
    can_access_homeowner,
    get_homeowner_or_404,
)
from cascade_connect.core.claims import (
    AUTOSAVE_FIELDS,
    ClaimFilter,
    apply_classification,
    apply_homeowner_fields,
    apply_status,
    claim_counts,
    filter_claims,
    format_claim_number,
    next_claim_number,
    requires_explanation,
)
from cascade_connect.core.database import utcnow
from cascade_connect.core.models import Claim, Contractor, Homeowner, User, UserRole
from cascade_connect.core.schemas import (
    ClaimBatchResult,
    ClaimBatchUpdate,
    ClaimCounts,
    ClaimCreate,
    ClaimFieldUpdate,
    ClaimListResponse,
    ClaimResponse,
    ClaimUpdate,
)

router = APIRouter(prefix="/claims", tags=["Claims"])
logger = structlog.get_logger()


# ==========================================================================
# Helper Functions
# ==========================================================================

def to_response(claim: Claim) -> ClaimResponse:
    response = ClaimResponse.model_validate(claim)
    response.display_number = format_claim_number(claim)
    return response


async def can_access_claim(claim: Claim, user: User, db) -> bool:
    if user.role == UserRole.ADMIN:
        return True
    if claim.homeowner_id is None:
        return False
    homeowner = await db.get(Homeowner, claim.homeowner_id)
    return homeowner is not None and can_access_homeowner(user, homeowner)


async def get_claim_or_404(claim_id: UUID, user: User, db) -> Claim:
    claim = await db.get(Claim, claim_id)
    if claim is None or not await can_access_claim(claim, user, db):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Claim not found",
        )
    return claim


def explanation_required() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail="A Non-Warranty classification requires a non-warranty explanation",
    )


async def notify_staff_of_claim(claim: Claim, db, email) -> int:
    """Email every active admin who opted in to new-claim notifications."""
    result = await db.execute(
        select(User.email).where(
            User.role == UserRole.ADMIN,
            User.is_active.is_(True),
            User.email_notify_claim_submitted.is_(True),
        )
    )
    sent = 0
    for address in result.scalars().all():
        if await email.notify_claim_submitted(
            to=address,
            claim_title=claim.title,
            claim_number=format_claim_number(claim),
            homeowner_name=claim.homeowner_name or "Unknown",
            address=claim.address or "",
        ):
            sent += 1
    return sent


# ==========================================================================
# Claims
# ==========================================================================

@router.get(
    "",
    response_model=ClaimListResponse,
    summary="List claims for a homeowner",
    responses={400: {"description": "homeowner_id missing for staff"}},
)
async def list_claims(
    current_user: CurrentUser,
    db: DbSession,
    homeowner_id: Optional[UUID] = Query(None),
    status_filter: ClaimFilter = Query("All", alias="status"),
) -> ClaimListResponse:
    """
    Claims for one homeowner, newest first.

    Counts cover every claim of the homeowner regardless of the filter.
    """
    if current_user.role == UserRole.HOMEOWNER:
        if current_user.homeowner_id is None:
            return ClaimListResponse(items=[], counts=ClaimCounts(total=0, open=0, closed=0))
        homeowner_id = current_user.homeowner_id
    elif homeowner_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="homeowner_id is required",
        )
    else:
        await get_homeowner_or_404(homeowner_id, current_user, db)

    result = await db.execute(
        select(Claim)
        .where(Claim.homeowner_id == homeowner_id)
        .order_by(Claim.date_submitted.desc())
    )
    claims = list(result.scalars().all())

    return ClaimListResponse(
        items=[to_response(c) for c in filter_claims(claims, status_filter)],
        counts=ClaimCounts(**claim_counts(claims)),
    )


@router.post(
    "",
    response_model=ClaimResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a claim",
)
async def create_claim(
    data: ClaimCreate,
    current_user: CurrentUser,
    db: DbSession,
    email: Email,
) -> ClaimResponse:
    homeowner_id = data.homeowner_id
    if current_user.role == UserRole.HOMEOWNER:
        if current_user.homeowner_id is None or homeowner_id not in (None, current_user.homeowner_id):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Homeowners can only submit claims for their own home",
            )
        homeowner_id = current_user.homeowner_id
    elif homeowner_id is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="homeowner_id is required",
        )

    homeowner = await get_homeowner_or_404(homeowner_id, current_user, db)

    claim = Claim(
        id=uuid4(),
        title=data.title,
        description=data.description,
        category=data.category,
        attachments=data.attachments,
        proposed_dates=data.proposed_dates,
        claim_number=await next_claim_number(db, homeowner.id),
    )
    apply_homeowner_fields(claim, homeowner)
    db.add(claim)
    await db.commit()
    await db.refresh(claim)

    logger.info(
        "claim_created",
        claim_id=str(claim.id),
        claim_number=claim.claim_number,
        homeowner_id=str(homeowner.id),
        by=str(current_user.id),
    )

    await notify_staff_of_claim(claim, db, email)
    return to_response(claim)


@router.post(
    "/batch",
    response_model=ClaimBatchResult,
    summary="Update status or classification of several claims",
)
async def batch_update_claims(
    data: ClaimBatchUpdate,
    current_user: StaffUser,
    db: DbSession,
) -> ClaimBatchResult:
    """Claims outside the user's scope are skipped."""
    result = await db.execute(select(Claim).where(Claim.id.in_(data.ids)))
    claims = [c for c in result.scalars().all() if await can_access_claim(c, current_user, db)]

    if data.classification is not None and any(
        requires_explanation(data.classification.value, c.non_warranty_explanation) for c in claims
    ):
        raise explanation_required()

    now = utcnow()
    for claim in claims:
        if data.status is not None:
            apply_status(claim, data.status, now)
        if data.classification is not None:
            apply_classification(claim, data.classification.value, now)

    await db.commit()
    logger.info("claims_batch_updated", count=len(claims), by=str(current_user.id))
    return ClaimBatchResult(updated=len(claims))


@router.get("/{claim_id}", response_model=ClaimResponse, summary="Get claim")
async def get_claim(claim_id: UUID, current_user: CurrentUser, db: DbSession) -> ClaimResponse:
    return to_response(await get_claim_or_404(claim_id, current_user, db))


@router.patch(
    "/{claim_id}",
    response_model=ClaimResponse,
    summary="Update claim",
    responses={422: {"description": "Non-Warranty without explanation"}},
)
async def update_claim(
    claim_id: UUID,
    data: ClaimUpdate,
    current_user: StaffUser,
    db: DbSession,
) -> ClaimResponse:
    claim = await get_claim_or_404(claim_id, current_user, db)
    update_data = data.model_dump(exclude_unset=True)
    now = utcnow()

    new_status = update_data.pop("status", None)
    new_classification = update_data.pop("classification", None)

    explanation = update_data.get("non_warranty_explanation", claim.non_warranty_explanation)
    classification = new_classification.value if new_classification else claim.classification
    if requires_explanation(classification, explanation):
        raise explanation_required()

    if "contractor_id" in update_data:
        contractor_id = update_data.pop("contractor_id")
        contractor = await db.get(Contractor, contractor_id) if contractor_id else None
        if contractor_id and contractor is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Contractor not found",
            )
        claim.contractor_id = contractor.id if contractor else None
        claim.contractor_name = contractor.company_name if contractor else None
        claim.contractor_email = contractor.email if contractor else None

    for field, value in update_data.items():
        setattr(claim, field, value)

    if new_status is not None:
        apply_status(claim, new_status, now)
    if new_classification is not None:
        apply_classification(claim, new_classification.value, now)

    await db.commit()
    await db.refresh(claim)

    logger.info("claim_updated", claim_id=str(claim.id), status=claim.status.value)
    return to_response(claim)


@router.patch(
    "/{claim_id}/field",
    response_model=ClaimResponse,
    summary="Auto-save a single claim field",
    responses={400: {"description": "Field cannot be auto-saved"}},
)
async def update_claim_field(
    claim_id: UUID,
    data: ClaimFieldUpdate,
    current_user: StaffUser,
    db: DbSession,
) -> ClaimResponse:
    column = AUTOSAVE_FIELDS.get(data.field)
    if column is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Field '{data.field}' cannot be auto-saved",
        )

    claim = await get_claim_or_404(claim_id, current_user, db)
    value = data.value or ""
    setattr(claim, column, value if column == "description" else (value or None))

    await db.commit()
    await db.refresh(claim)
    return to_response(claim)


@router.delete(
    "/{claim_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete claim",
)
async def delete_claim(claim_id: UUID, current_user: StaffUser, db: DbSession) -> None:
    claim = await get_claim_or_404(claim_id, current_user, db)
    await db.delete(claim)
    await db.commit()
    logger.info("claim_deleted", claim_id=str(claim_id), by=str(current_user.id))
