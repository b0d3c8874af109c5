"""
Cascade Connect - Message Thread Tests
=======================================
"""

from httpx import AsyncClient

from cascade_connect.core.models import Homeowner, User


class TestThreads:
    async def test_staff_starts_thread(
        self, client: AsyncClient, admin_headers: dict, test_admin: User, homeowner: Homeowner, fake_email
    ):
        response = await client.post(
            "/api/v1/threads",
            headers=admin_headers,
            json={"subject": "Walk-through", "homeowner_id": str(homeowner.id), "content": "Does Friday work?"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["participants"] == [str(test_admin.id)]
        assert data["is_read"] is False
        assert len(data["messages"]) == 1
        assert data["messages"][0]["sender_name"] == "Admin User"
        assert fake_email.sent == []

    async def test_staff_must_name_homeowner(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/v1/threads", headers=admin_headers, json={"subject": "x", "content": "y"}
        )
        assert response.status_code == 422

        response = await client.get("/api/v1/threads", headers=admin_headers)
        assert response.status_code == 400

    async def test_homeowner_reply_notifies_admins(
        self,
        client: AsyncClient,
        admin_headers: dict,
        homeowner_headers: dict,
        homeowner_user: User,
        homeowner: Homeowner,
        fake_email,
    ):
        thread = (await client.post(
            "/api/v1/threads",
            headers=admin_headers,
            json={"subject": "Walk-through", "homeowner_id": str(homeowner.id), "content": "Does Friday work?"},
        )).json()

        response = await client.post(
            f"/api/v1/threads/{thread['id']}/messages",
            headers=homeowner_headers,
            json={"content": "Friday is great"},
        )

        assert response.status_code == 201
        data = response.json()
        assert [m["content"] for m in data["messages"]] == ["Does Friday work?", "Friday is great"]
        assert str(homeowner_user.id) in data["participants"]
        assert [m.to for m in fake_email.sent] == ["admin@example.com"]
        assert fake_email.sent[0].subject == "New message from Jane Buyer: Walk-through"

    async def test_homeowner_starts_thread_for_own_home(
        self, client: AsyncClient, homeowner_headers: dict, homeowner: Homeowner, other_homeowner: Homeowner
    ):
        response = await client.post(
            "/api/v1/threads",
            headers=homeowner_headers,
            json={"subject": "Question", "homeowner_id": str(other_homeowner.id), "content": "Hi"},
        )

        assert response.status_code == 201
        assert response.json()["homeowner_id"] == str(homeowner.id)

        response = await client.get("/api/v1/threads", headers=homeowner_headers)
        assert [t["subject"] for t in response.json()] == ["Question"]

    async def test_builder_cannot_see_other_groups_threads(
        self, client: AsyncClient, admin_headers: dict, builder_headers: dict, other_homeowner: Homeowner
    ):
        thread = (await client.post(
            "/api/v1/threads",
            headers=admin_headers,
            json={"subject": "Private", "homeowner_id": str(other_homeowner.id), "content": "x"},
        )).json()

        response = await client.get(f"/api/v1/threads/{thread['id']}", headers=builder_headers)
        assert response.status_code == 404

    async def test_mark_read(self, client: AsyncClient, admin_headers: dict, homeowner: Homeowner):
        thread = (await client.post(
            "/api/v1/threads",
            headers=admin_headers,
            json={"subject": "Read me", "homeowner_id": str(homeowner.id), "content": "x"},
        )).json()

        response = await client.post(f"/api/v1/threads/{thread['id']}/read", headers=admin_headers)
        assert response.json()["success"] is True

        response = await client.get(f"/api/v1/threads/{thread['id']}", headers=admin_headers)
        assert response.json()["is_read"] is True
