"""
Cascade Connect - Homeowner Records
====================================

Derived-field rules shared by the API, self-enrollment and the CSV import.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable
from uuid import uuid4

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cascade_connect.core.models import BuilderGroup, Homeowner
from cascade_connect.core.phone import normalize_phone_number

logger = structlog.get_logger()


def compose_name(first_name: str | None, last_name: str | None) -> str:
    return " ".join(p for p in (first_name, last_name) if p).strip()


def compose_address(street: str | None, city: str | None, state: str | None, zip_code: str | None) -> str:
    """'street, city, state zip' with missing parts left out."""
    region = " ".join(p for p in (state, zip_code) if p)
    return ", ".join(p for p in (street, city, region) if p)


def prepare_homeowner_fields(data: dict[str, Any], current: Any = None) -> dict[str, Any]:
    """
    Fill name and address from their parts and store phones as E.164.

    ``current`` is the existing record on update; its values stand in for
    parts the update does not touch.
    """
    def value(key: str) -> Any:
        if key in data:
            return data[key]
        return getattr(current, key, None) if current is not None else None

    prepared = dict(data)

    name_parts_changed = "first_name" in data or "last_name" in data
    if not prepared.get("name") and (current is None or name_parts_changed):
        composed = compose_name(value("first_name"), value("last_name"))
        if composed:
            prepared["name"] = composed

    address_parts = ("street", "city", "state", "zip")
    address_parts_changed = any(k in data for k in address_parts)
    if not prepared.get("address") and (current is None or address_parts_changed):
        composed = compose_address(value("street"), value("city"), value("state"), value("zip"))
        if composed:
            prepared["address"] = composed

    for key in ("phone", "buyer_2_phone", "agent_phone"):
        if prepared.get(key):
            prepared[key] = normalize_phone_number(prepared[key]) or prepared[key]

    for key in ("email", "buyer_2_email", "agent_email"):
        if prepared.get(key):
            prepared[key] = str(prepared[key]).lower()

    if current is None and not prepared.get("address"):
        prepared["address"] = ""

    return prepared


# ==========================================================================
# CSV Import
# ==========================================================================

# Canonical field -> accepted header spellings (compared lower-cased)
HEADER_ALIASES: dict[str, tuple[str, ...]] = {
    "name": ("name", "homeowner", "homeowner name", "full name", "buyer name"),
    "first_name": ("first name", "first_name", "firstname"),
    "last_name": ("last name", "last_name", "lastname"),
    "email": ("email", "email address", "homeowner email", "buyer email"),
    "phone": ("phone", "phone number", "mobile", "cell", "homeowner phone"),
    "street": ("street", "street address", "address 1", "address1"),
    "city": ("city",),
    "state": ("state", "st"),
    "zip": ("zip", "zip code", "zipcode", "postal code"),
    "address": ("address", "property address", "full address"),
    "job_name": ("job name", "job_name", "job", "project", "lot"),
    "closing_date": ("closing date", "closing_date", "close date", "coe"),
}

DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m/%d/%y", "%Y/%m/%d")


def build_header_map(
    headers: list[str],
    aliases_by_field: dict[str, tuple[str, ...]] = HEADER_ALIASES,
) -> dict[str, str]:
    """Map canonical field names to the CSV's actual header names."""
    lookup = {h.strip().lower(): h for h in headers if h}
    mapping: dict[str, str] = {}
    for key, aliases in aliases_by_field.items():
        for alias in aliases:
            if alias in lookup:
                mapping[key] = lookup[alias]
                break
    return mapping


def parse_date(value: str | None) -> datetime | None:
    if not value or not value.strip():
        return None
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value.strip(), fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def row_to_homeowner_fields(row: dict[str, str], header_map: dict[str, str]) -> dict[str, Any] | None:
    """
    Homeowner fields for one CSV row, or None when the row lacks a name,
    an email or an address.
    """
    data: dict[str, Any] = {}
    for key, header in header_map.items():
        raw = (row.get(header) or "").strip()
        if raw:
            data[key] = raw

    if "closing_date" in data:
        data["closing_date"] = parse_date(data["closing_date"])

    fields = prepare_homeowner_fields(data)
    if not fields.get("name") or not fields.get("email") or not fields.get("address"):
        return None
    return fields


@dataclass
class ImportSummary:
    created: int = 0
    skipped: int = 0
    invalid: int = 0
    errors: list[str] = field(default_factory=list)


async def import_homeowner_rows(
    db: AsyncSession,
    rows: Iterable[dict[str, str]],
    headers: list[str],
    builder_group: BuilderGroup | None = None,
) -> ImportSummary:
    """
    Create homeowners from CSV rows.

    A row is skipped when a homeowner with the same email (and the same job
    name, when the row has one) already exists, so one buyer can own
    several homes.
    """
    header_map = build_header_map(headers)
    summary = ImportSummary()

    for index, row in enumerate(rows, start=2):  # row 1 is the header
        fields = row_to_homeowner_fields(row, header_map)
        if fields is None:
            summary.invalid += 1
            summary.errors.append(f"Row {index}: missing name, email or address")
            continue

        query = select(Homeowner.id).where(Homeowner.email == fields["email"])
        if fields.get("job_name"):
            query = query.where(Homeowner.job_name == fields["job_name"])
        if (await db.execute(query.limit(1))).first() is not None:
            summary.skipped += 1
            continue

        if builder_group is not None:
            fields["builder_group_id"] = builder_group.id
            fields["builder"] = builder_group.name

        db.add(Homeowner(id=uuid4(), **fields))
        await db.flush()
        summary.created += 1

    logger.info(
        "homeowners_imported",
        created=summary.created,
        skipped=summary.skipped,
        invalid=summary.invalid,
        builder_group=builder_group.name if builder_group else None,
    )
    return summary
