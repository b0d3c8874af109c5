"""
Cascade Connect - Claim Helpers
================================

Numbering, open/closed filtering and homeowner denormalization shared by
the claims API and the voice intake webhook.
"""

from datetime import datetime
from typing import Iterable, Literal, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cascade_connect.core.models import Claim, ClaimClassification, ClaimStatus, Homeowner

ClaimFilter = Literal["All", "Open", "Closed"]

# Fields the auto-save endpoint may touch, keyed by accepted input name
AUTOSAVE_FIELDS = {
    "description": "description",
    "internal_notes": "internal_notes",
    "internalNotes": "internal_notes",
}


def format_claim_number(claim: Claim) -> str:
    if claim.claim_number:
        return claim.claim_number
    return str(claim.id).replace("-", "")[:8].upper()


def is_open(claim: Claim) -> bool:
    return claim.status != ClaimStatus.COMPLETED


def filter_claims(claims: Iterable[Claim], claim_filter: ClaimFilter = "All") -> list[Claim]:
    if claim_filter == "Open":
        return [c for c in claims if is_open(c)]
    if claim_filter == "Closed":
        return [c for c in claims if not is_open(c)]
    return list(claims)


def claim_counts(claims: Iterable[Claim]) -> dict[str, int]:
    claims = list(claims)
    open_count = sum(1 for c in claims if is_open(c))
    return {"total": len(claims), "open": open_count, "closed": len(claims) - open_count}


async def next_claim_number(db: AsyncSession, homeowner_id: Optional[UUID]) -> str:
    """Next sequential claim number for the homeowner; non-numeric numbers count as 0."""
    result = await db.execute(
        select(Claim.claim_number).where(Claim.homeowner_id == homeowner_id)
    )
    highest = 0
    for number in result.scalars():
        if number and number.isdigit():
            highest = max(highest, int(number))
    return str(highest + 1)


def apply_homeowner_fields(claim: Claim, homeowner: Homeowner) -> Claim:
    """Copy the homeowner's identity and address onto the claim."""
    claim.homeowner_id = homeowner.id
    claim.homeowner_name = homeowner.name
    claim.homeowner_email = homeowner.email
    claim.builder_name = homeowner.builder
    claim.job_name = homeowner.job_name
    claim.address = homeowner.address
    return claim


def apply_status(claim: Claim, new_status: ClaimStatus, now: datetime) -> None:
    """Set the status, stamping the schedule or completion time on transition."""
    if new_status == claim.status:
        return
    if new_status == ClaimStatus.SCHEDULED:
        claim.scheduled_at = now
    elif new_status == ClaimStatus.COMPLETED:
        claim.completed_at = now
    claim.status = new_status


def apply_classification(claim: Claim, classification: str, now: datetime) -> None:
    """Set the classification, stamping the evaluation time when it changes."""
    if classification == claim.classification:
        return
    claim.classification = classification
    claim.date_evaluated = now


def requires_explanation(classification: Optional[str], explanation: Optional[str]) -> bool:
    return (
        classification == ClaimClassification.NON_WARRANTY.value
        and not (explanation or "").strip()
    )
