"""
Cascade Connect - Builder Group Tests
======================================
"""

import pytest
from httpx import AsyncClient

from cascade_connect.api.builder_groups import slugify
from cascade_connect.core.models import BuilderGroup, Homeowner


@pytest.mark.parametrize(
    "name,expected",
    [
        ("Evergreen Homes", "evergreen-homes"),
        ("  O'Brien & Sons, LLC ", "o-brien-sons-llc"),
        ("!!!", "builder"),
    ],
)
def test_slugify(name, expected):
    assert slugify(name) == expected


class TestBuilderGroups:
    async def test_create_assigns_slug(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/v1/builder-groups",
            headers=admin_headers,
            json={"name": "Pacific Crest", "email": "hello@pacificcrest.com"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["enrollment_slug"] == "pacific-crest"
        assert data["email"] == "hello@pacificcrest.com"

    async def test_slug_collision_gets_suffix(
        self, client: AsyncClient, admin_headers: dict, builder_group: BuilderGroup
    ):
        response = await client.post(
            "/api/v1/builder-groups", headers=admin_headers, json={"name": "Evergreen Homes!"}
        )
        assert response.json()["enrollment_slug"] == "evergreen-homes-2"

        response = await client.post(
            "/api/v1/builder-groups", headers=admin_headers, json={"name": "Evergreen  Homes"}
        )
        assert response.json()["enrollment_slug"] == "evergreen-homes-3"

    async def test_duplicate_name_conflicts(
        self, client: AsyncClient, admin_headers: dict, builder_group: BuilderGroup
    ):
        response = await client.post(
            "/api/v1/builder-groups", headers=admin_headers, json={"name": "evergreen homes"}
        )

        assert response.status_code == 409

    async def test_rename_updates_slug(
        self, client: AsyncClient, admin_headers: dict, builder_group: BuilderGroup
    ):
        response = await client.patch(
            f"/api/v1/builder-groups/{builder_group.id}",
            headers=admin_headers,
            json={"name": "Evergreen Custom Homes"},
        )

        assert response.status_code == 200
        assert response.json()["enrollment_slug"] == "evergreen-custom-homes"

    async def test_builder_sees_only_own_group(
        self,
        client: AsyncClient,
        builder_headers: dict,
        builder_group: BuilderGroup,
        other_builder_group: BuilderGroup,
    ):
        response = await client.get("/api/v1/builder-groups", headers=builder_headers)
        assert [g["name"] for g in response.json()] == ["Evergreen Homes"]

        response = await client.post("/api/v1/builder-groups", headers=builder_headers, json={"name": "Mine"})
        assert response.status_code == 403

    async def test_group_homeowners(
        self,
        client: AsyncClient,
        admin_headers: dict,
        builder_headers: dict,
        homeowner: Homeowner,
        other_homeowner: Homeowner,
        other_builder_group: BuilderGroup,
    ):
        response = await client.get(
            f"/api/v1/builder-groups/{homeowner.builder_group_id}/homeowners", headers=builder_headers
        )
        assert [h["name"] for h in response.json()] == ["Jane Buyer"]

        response = await client.get(
            f"/api/v1/builder-groups/{other_builder_group.id}/homeowners", headers=builder_headers
        )
        assert response.status_code == 404

        response = await client.get(
            f"/api/v1/builder-groups/{other_builder_group.id}/homeowners", headers=admin_headers
        )
        assert [h["name"] for h in response.json()] == ["Sam Owner"]

    async def test_delete_blocked_while_in_use(
        self, client: AsyncClient, admin_headers: dict, homeowner: Homeowner, builder_group: BuilderGroup
    ):
        response = await client.delete(f"/api/v1/builder-groups/{builder_group.id}", headers=admin_headers)

        assert response.status_code == 409

    async def test_delete_empty_group(self, client: AsyncClient, admin_headers: dict):
        group = (await client.post(
            "/api/v1/builder-groups", headers=admin_headers, json={"name": "Short Lived"}
        )).json()

        response = await client.delete(f"/api/v1/builder-groups/{group['id']}", headers=admin_headers)
        assert response.status_code == 204

        response = await client.get(f"/api/v1/builder-groups/{group['id']}", headers=admin_headers)
        assert response.status_code == 404


class TestRealtimeAuth:
    async def test_unconfigured_realtime(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/v1/realtime/auth",
            headers=admin_headers,
            json={"socket_id": "123.456", "channel_name": "private-team-chat"},
        )

        assert response.status_code == 503

    async def test_homeowner_forbidden(self, client: AsyncClient, homeowner_headers: dict):
        response = await client.post(
            "/api/v1/realtime/auth",
            headers=homeowner_headers,
            json={"socket_id": "123.456", "channel_name": "private-team-chat"},
        )

        assert response.status_code == 403
