"""
Cascade Connect - Matching & Import Tests
==========================================

Phone normalization, fuzzy address matching and the CSV homeowner import.
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cascade_connect.core.address_matching import (
    are_addresses_similar,
    calculate_similarity,
    extract_street_name,
    extract_street_number,
    find_matching_homeowner,
    find_multiple_matches,
    levenshtein_distance,
    match_quality_description,
    normalize_address,
)
from cascade_connect.core.homeowners import build_header_map, import_homeowner_rows, parse_date
from cascade_connect.core.models import BuilderGroup, Homeowner
from cascade_connect.core.phone import (
    batch_normalize,
    format_phone_for_display,
    is_e164,
    normalize_phone_number,
    phones_match,
)


class TestPhoneNumbers:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("(503) 555-0100", "+15035550100"),
            ("503.555.0100", "+15035550100"),
            ("1-503-555-0100", "+15035550100"),
            ("+44 20 7946 0958", "+442079460958"),
            ("555-0100", None),
            ("", None),
            (None, None),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_phone_number(raw) == expected

    def test_is_e164(self):
        assert is_e164("+15035550100")
        assert not is_e164("5035550100")
        assert not is_e164(None)

    def test_display_format(self):
        assert format_phone_for_display("+15035550100") == "(503) 555-0100"
        assert format_phone_for_display("+442079460958") == "+442079460958"
        assert format_phone_for_display(None) == ""

    def test_display_formats_only_plus_one_or_ten_digits(self):
        assert format_phone_for_display("5551234567") == "(555) 123-4567"
        assert format_phone_for_display("15551234567") == "15551234567"
        assert format_phone_for_display("(555) 123-4567") == "(555) 123-4567"

    def test_phones_match(self):
        assert phones_match("(503) 555-0100", "+1 503 555 0100")
        assert not phones_match("555-0100", "555-0100")

    def test_batch_drops_unusable(self):
        assert batch_normalize(["5035550100", "12", None]) == ["+15035550100"]


class TestAddressNormalization:
    def test_abbreviations(self):
        assert normalize_address("123 North Main Street, Portland") == "123 n main st portland"
        assert normalize_address("9 Southwest Oak Avenue #4") == "9 sw oak ave 4"

    def test_empty(self):
        assert normalize_address(None) == ""
        assert normalize_address("   ") == ""

    def test_levenshtein(self):
        assert levenshtein_distance("kitten", "sitting") == 3
        assert levenshtein_distance("", "abc") == 3
        assert levenshtein_distance("same", "same") == 0

    def test_similarity_ignores_spelling_of_street_type(self):
        assert calculate_similarity("123 Main Street", "123 main st.") == 1.0

    def test_similarity_bounds(self):
        assert calculate_similarity("", "123 Main St") == 0.0
        assert 0.0 < calculate_similarity("123 Main St", "124 Main St") < 1.0
        assert are_addresses_similar("123 Main St", "123 Main Street")
        assert not are_addresses_similar("123 Main St", "88 Cedar Lane")

    def test_street_parts(self):
        assert extract_street_number("123 Main Street, Portland") == "123"
        assert extract_street_number("Main Street") is None
        assert extract_street_name("123 Main Street, Portland") == "main st"

    def test_quality_description(self):
        assert match_quality_description(0.97) == "Excellent match"
        assert match_quality_description(0.72) == "Good match"
        assert match_quality_description(0.2) == "Weak match"


class TestHomeownerMatching:
    async def test_best_match(self, db_session: AsyncSession, homeowner: Homeowner, other_homeowner: Homeowner):
        match = await find_matching_homeowner(db_session, "123 Main St Portland")

        assert match is not None
        assert match.homeowner.id == homeowner.id
        assert match.similarity > 0.85

    async def test_no_match_below_threshold(self, db_session: AsyncSession, homeowner: Homeowner):
        assert await find_matching_homeowner(db_session, "zzzz zzzz zzzz zzzz") is None
        assert await find_matching_homeowner(db_session, "") is None

    async def test_multiple_matches_sorted(
        self, db_session: AsyncSession, homeowner: Homeowner, other_homeowner: Homeowner
    ):
        matches = await find_multiple_matches(db_session, "123 Main Street", min_similarity=0.0)

        assert [m.homeowner.id for m in matches][0] == homeowner.id
        assert matches == sorted(matches, key=lambda m: m.similarity, reverse=True)


class TestCsvImport:
    HEADERS = ["Homeowner Name", "Email", "Phone", "Street", "City", "State", "Zip", "Job", "Closing Date"]

    def row(self, **overrides: str) -> dict[str, str]:
        values = {
            "Homeowner Name": "Chris Green",
            "Email": "Chris@Example.com",
            "Phone": "(541) 555-0142",
            "Street": "5 Alder St",
            "City": "Bend",
            "State": "OR",
            "Zip": "97701",
            "Job": "Lot 7",
            "Closing Date": "03/15/2024",
        }
        values.update(overrides)
        return values

    def test_header_map_is_case_insensitive(self):
        mapping = build_header_map(["FIRST NAME", "Last Name", "E-mail", "Email Address", "Zip Code"])

        assert mapping["first_name"] == "FIRST NAME"
        assert mapping["last_name"] == "Last Name"
        assert mapping["email"] == "Email Address"
        assert mapping["zip"] == "Zip Code"
        assert "phone" not in mapping

    def test_parse_date(self):
        assert parse_date("2024-03-15") == datetime(2024, 3, 15, tzinfo=timezone.utc)
        assert parse_date("3/15/24") == datetime(2024, 3, 15, tzinfo=timezone.utc)
        assert parse_date("someday") is None
        assert parse_date("") is None

    async def test_import_creates_and_skips(
        self, db_session: AsyncSession, builder_group: BuilderGroup, homeowner: Homeowner
    ):
        rows = [
            self.row(),
            self.row(),  # duplicate of the row above
            self.row(**{"Homeowner Name": "Jane Buyer", "Email": "jane@example.com", "Job": "Lot 12"}),
            self.row(**{"Job": "Lot 8"}),  # same buyer, second home
            self.row(**{"Email": ""}),
        ]

        summary = await import_homeowner_rows(db_session, rows, self.HEADERS, builder_group)
        await db_session.commit()

        assert summary.created == 2
        assert summary.skipped == 2
        assert summary.invalid == 1
        assert summary.errors == ["Row 6: missing name, email or address"]

        result = await db_session.execute(
            select(Homeowner).where(Homeowner.email == "chris@example.com").order_by(Homeowner.job_name)
        )
        imported = result.scalars().all()
        assert [h.job_name for h in imported] == ["Lot 7", "Lot 8"]
        first = imported[0]
        assert first.address == "5 Alder St, Bend, OR 97701"
        assert first.phone == "+15415550142"
        assert first.builder_group_id == builder_group.id
        assert first.builder == "Evergreen Homes"
        assert first.closing_date is not None
