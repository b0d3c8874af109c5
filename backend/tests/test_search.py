"""
Cascade Connect - Global Search Tests
======================================
"""

from datetime import timedelta
from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from cascade_connect.core.claims import apply_homeowner_fields
from cascade_connect.core.database import utcnow
from cascade_connect.core.models import Appointment, Claim, Homeowner
from cascade_connect.core.search import SearchService, token_filter, tokenize


@pytest.fixture
async def claim(db_session: AsyncSession, homeowner: Homeowner) -> Claim:
    record = Claim(
        id=uuid4(),
        title="Leaking faucet",
        description="Kitchen faucet drips all night",
        claim_number="1",
    )
    apply_homeowner_fields(record, homeowner)
    db_session.add(record)
    await db_session.commit()
    return record


async def search(client: AsyncClient, headers: dict, query: str, types: str | None = None) -> dict:
    params = {"query": query}
    if types:
        params["types"] = types
    response = await client.get("/api/v1/search", headers=headers, params=params)
    assert response.status_code == 200, response.text
    return response.json()


class TestSearchHelpers:
    def test_tokenize(self):
        assert tokenize("  lot   12 ") == ["lot", "12"]
        assert tokenize("") == []

    def test_token_filter_one_clause_per_token(self):
        assert len(token_filter(["a", "b"], [Homeowner.name, Homeowner.email])) == 2

    async def test_short_query_returns_nothing(self, db_session: AsyncSession, homeowner: Homeowner):
        assert await SearchService(db_session).search("j") == []
        assert await SearchService(db_session).search("   ") == []


class TestGlobalSearch:
    async def test_admin_only(self, client: AsyncClient, builder_headers: dict, homeowner_headers: dict):
        for headers in (builder_headers, homeowner_headers):
            response = await client.get("/api/v1/search", headers=headers, params={"query": "jane"})
            assert response.status_code == 403

    async def test_homeowner_result(self, client: AsyncClient, admin_headers: dict, homeowner: Homeowner):
        data = await search(client, admin_headers, "Jane", types="homeowner")

        assert data["query"] == "Jane"
        assert data["total"] == 1
        result = data["results"][0]
        assert result["type"] == "homeowner"
        assert result["title"] == "Jane Buyer"
        assert result["subtitle"] == "Lot 12 • 123 Main Street, Portland, OR 97201"
        assert result["url"] == f"#homeowners?homeownerId={homeowner.id}"
        assert result["icon"] == "User"
        assert result["score"] == 75

    async def test_every_token_must_match(
        self, client: AsyncClient, admin_headers: dict, homeowner: Homeowner, other_homeowner: Homeowner
    ):
        data = await search(client, admin_headers, "lot 12", types="homeowner")
        assert [r["id"] for r in data["results"]] == [str(homeowner.id)]
        assert data["results"][0]["score"] == 82

        data = await search(client, admin_headers, "lot cedar", types="homeowner")
        assert data["results"] == []

    async def test_claim_result(self, client: AsyncClient, admin_headers: dict, claim: Claim):
        data = await search(client, admin_headers, "faucet", types="claim")

        result = data["results"][0]
        assert result["type"] == "claim"
        assert result["title"] == "Leaking faucet"
        assert result["url"] == f"#claims?claimId={claim.id}"
        assert "#1" in result["subtitle"]
        assert result["subtitle"].startswith("Lot 12")
        assert result["score"] == 77

    async def test_types_filter(self, client: AsyncClient, admin_headers: dict, claim: Claim):
        data = await search(client, admin_headers, "jane")
        assert {r["type"] for r in data["results"]} == {"homeowner", "claim"}

        data = await search(client, admin_headers, "jane", types="claim")
        assert {r["type"] for r in data["results"]} == {"claim"}

    async def test_results_sorted_by_score(self, client: AsyncClient, admin_headers: dict, claim: Claim):
        data = await search(client, admin_headers, "jane")

        scores = [r["score"] for r in data["results"]]
        assert scores == sorted(scores, reverse=True)

    async def test_upcoming_appointment(self, client: AsyncClient, admin_headers: dict, db_session: AsyncSession):
        start = utcnow() + timedelta(days=3)
        db_session.add(Appointment(
            id=uuid4(), title="Drywall repair", start_time=start, end_time=start + timedelta(hours=1)
        ))
        old = utcnow() - timedelta(days=60)
        db_session.add(Appointment(
            id=uuid4(), title="Drywall inspection", start_time=old, end_time=old + timedelta(hours=1)
        ))
        await db_session.commit()

        data = await search(client, admin_headers, "drywall", types="event")

        assert [r["title"] for r in data["results"]] == ["Drywall repair"]
        assert data["results"][0]["score"] == 100
        assert data["results"][0]["icon"] == "Calendar"

    async def test_chat_messages_and_threads(
        self, client: AsyncClient, admin_headers: dict, homeowner: Homeowner
    ):
        channel = (await client.post(
            "/api/v1/chat/channels", headers=admin_headers, json={"name": "general"}
        )).json()
        kept = (await client.post(
            f"/api/v1/chat/channels/{channel['id']}/messages",
            headers=admin_headers,
            json={"content": "Drywall crack in the garage"},
        )).json()
        removed = (await client.post(
            f"/api/v1/chat/channels/{channel['id']}/messages",
            headers=admin_headers,
            json={"content": "Drywall note to delete"},
        )).json()
        await client.delete(f"/api/v1/chat/messages/{removed['id']}", headers=admin_headers)
        thread = (await client.post(
            "/api/v1/threads",
            headers=admin_headers,
            json={"subject": "Drywall follow up", "homeowner_id": str(homeowner.id), "content": "Booked"},
        )).json()

        data = await search(client, admin_headers, "drywall", types="message")

        by_id = {r["id"]: r for r in data["results"]}
        assert set(by_id) == {kept["id"], thread["id"]}
        assert by_id[kept["id"]]["subtitle"] == "Admin User • #general"
        assert by_id[kept["id"]]["icon"] == "MessageSquare"
        assert by_id[thread["id"]]["url"] == f"#messages?threadId={thread['id']}"
        assert by_id[thread["id"]]["subtitle"] == "Jane Buyer • Lot 12"
