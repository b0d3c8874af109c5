"""
Cascade Connect - Address Matching
===================================

Fuzzy matching of spoken or typed property addresses against
homeowner records. Used by the voice intake webhook, where the caller's
address comes from speech recognition and is rarely an exact match.
"""

import re
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cascade_connect.core.models import Homeowner

DEFAULT_MIN_SIMILARITY = 0.4
SIMILAR_THRESHOLD = 0.85

# Compound directions must be replaced before single ones
_ABBREVIATIONS: list[tuple[str, str]] = [
    (r"\bstreet\b", "st"),
    (r"\bavenue\b", "ave"),
    (r"\broad\b", "rd"),
    (r"\bdrive\b", "dr"),
    (r"\bcourt\b", "ct"),
    (r"\blane\b", "ln"),
    (r"\bboulevard\b", "blvd"),
    (r"\bway\b", "wy"),
    (r"\bcircle\b", "cir"),
    (r"\bplace\b", "pl"),
    (r"\bnortheast\b", "ne"),
    (r"\bnorthwest\b", "nw"),
    (r"\bsoutheast\b", "se"),
    (r"\bsouthwest\b", "sw"),
    (r"\bnorth\b", "n"),
    (r"\bsouth\b", "s"),
    (r"\beast\b", "e"),
    (r"\bwest\b", "w"),
]


@dataclass
class AddressMatch:
    homeowner: Homeowner
    similarity: float
    matched_address: str


def normalize_address(address: Optional[str]) -> str:
    """Lowercase, strip punctuation and abbreviate street types and directions."""
    if not address:
        return ""

    normalized = address.lower().strip()
    normalized = re.sub(r"[.,#]", "", normalized)
    normalized = re.sub(r"\s+", " ", normalized)

    for pattern, replacement in _ABBREVIATIONS:
        normalized = re.sub(pattern, replacement, normalized)

    return normalized.strip()


def levenshtein_distance(a: str, b: str) -> int:
    """Classic edit distance, two-row dynamic programming."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(
                previous[j] + 1,         # deletion
                current[j - 1] + 1,      # insertion
                previous[j - 1] + cost,  # substitution
            ))
        previous = current
    return previous[-1]


def calculate_similarity(address1: Optional[str], address2: Optional[str]) -> float:
    """Similarity in [0, 1] between two addresses after normalization."""
    a = normalize_address(address1)
    b = normalize_address(address2)

    if a == b:
        return 1.0
    if not a or not b:
        return 0.0

    distance = levenshtein_distance(a, b)
    return 1.0 - distance / max(len(a), len(b))


def are_addresses_similar(
    address1: Optional[str],
    address2: Optional[str],
    threshold: float = SIMILAR_THRESHOLD,
) -> bool:
    return calculate_similarity(address1, address2) >= threshold


def extract_street_number(address: Optional[str]) -> Optional[str]:
    match = re.match(r"^\s*(\d+)", address or "")
    return match.group(1) if match else None


def extract_street_name(address: Optional[str]) -> Optional[str]:
    """Street part of an address: leading number removed, up to the first comma."""
    if not address:
        return None
    street = address.split(",")[0]
    street = re.sub(r"^\s*\d+\s*", "", street)
    street = normalize_address(street)
    return street or None


def match_quality_description(similarity: float) -> str:
    if similarity >= 0.95:
        return "Excellent match"
    if similarity >= 0.85:
        return "Very good match"
    if similarity >= 0.70:
        return "Good match"
    if similarity >= 0.50:
        return "Fair match"
    return "Weak match"


def _candidate_addresses(homeowner: Homeowner) -> list[str]:
    candidates = [homeowner.address]
    if homeowner.street:
        composed = ", ".join(p for p in (homeowner.street, homeowner.city, homeowner.state) if p)
        candidates.append(composed)
        candidates.append(homeowner.street)
    return [c for c in candidates if c]


def _score(address: str, homeowner: Homeowner) -> tuple[float, str]:
    best, best_address = 0.0, homeowner.address or ""
    for candidate in _candidate_addresses(homeowner):
        similarity = calculate_similarity(address, candidate)
        if similarity > best:
            best, best_address = similarity, candidate
    return best, best_address


async def find_multiple_matches(
    db: AsyncSession,
    address: Optional[str],
    min_similarity: float = DEFAULT_MIN_SIMILARITY,
    limit: int = 5,
) -> list[AddressMatch]:
    """All homeowners at or above the threshold, best first."""
    if not address or not normalize_address(address):
        return []

    result = await db.execute(select(Homeowner))
    matches: list[AddressMatch] = []
    for homeowner in result.scalars().all():
        similarity, matched = _score(address, homeowner)
        if similarity >= min_similarity:
            matches.append(AddressMatch(homeowner, similarity, matched))

    matches.sort(key=lambda m: m.similarity, reverse=True)
    return matches[:limit]


async def find_matching_homeowner(
    db: AsyncSession,
    address: Optional[str],
    min_similarity: float = DEFAULT_MIN_SIMILARITY,
) -> Optional[AddressMatch]:
    """Best homeowner match for the address, or None below the threshold."""
    matches = await find_multiple_matches(db, address, min_similarity, limit=1)
    return matches[0] if matches else None
