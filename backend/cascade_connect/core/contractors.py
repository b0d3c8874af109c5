"""
Cascade Connect - Sub-contractor Import
========================================

Bulk load of the sub-contractor directory from a CSV export.
"""

from dataclasses import dataclass, field
from typing import Iterable
from uuid import uuid4

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cascade_connect.core.homeowners import build_header_map
from cascade_connect.core.models import Contractor
from cascade_connect.core.phone import normalize_phone_number

logger = structlog.get_logger()

CONTRACTOR_HEADER_ALIASES: dict[str, tuple[str, ...]] = {
    "company_name": ("company", "company name", "company_name", "subcontractor", "vendor", "business name"),
    "contact_name": ("contact", "contact name", "contact_name", "name"),
    "email": ("email", "email address", "contact email"),
    "phone": ("phone", "phone number", "mobile", "cell", "office phone"),
}


@dataclass
class ContractorImportSummary:
    created: int = 0
    updated: int = 0
    invalid: int = 0
    errors: list[str] = field(default_factory=list)


async def import_contractor_rows(
    db: AsyncSession,
    rows: Iterable[dict[str, str]],
    headers: list[str],
) -> ContractorImportSummary:
    """
    Create or update contractors from CSV rows, keyed on company name
    (case-insensitive).

    Contact name, email and phone are replaced by the row's values. The
    specialty is never set by an import and is left as it was.
    """
    header_map = build_header_map(headers, CONTRACTOR_HEADER_ALIASES)
    summary = ContractorImportSummary()

    for index, row in enumerate(rows, start=2):  # row 1 is the header
        values = {
            key: (row.get(header) or "").strip() or None
            for key, header in header_map.items()
        }
        company_name = values.pop("company_name", None)
        if not company_name:
            summary.invalid += 1
            summary.errors.append(f"Row {index}: missing company name")
            continue

        fields = {
            "contact_name": values.get("contact_name"),
            "email": values.get("email"),
            "phone": values.get("phone"),
        }
        if fields["phone"]:
            fields["phone"] = normalize_phone_number(fields["phone"]) or fields["phone"]

        result = await db.execute(
            select(Contractor)
            .where(func.lower(Contractor.company_name) == company_name.lower())
            .limit(1)
        )
        contractor = result.scalar_one_or_none()

        if contractor is None:
            db.add(Contractor(id=uuid4(), company_name=company_name, **fields))
            summary.created += 1
        else:
            for key, value in fields.items():
                setattr(contractor, key, value)
            summary.updated += 1
        await db.flush()

    logger.info(
        "contractors_imported",
        created=summary.created,
        updated=summary.updated,
        invalid=summary.invalid,
    )
    return summary
