"""
Cascade Connect - Homeowner Tests
==================================

Directory CRUD, builder scoping and public enrollment.
"""

from uuid import uuid4

from httpx import AsyncClient

from cascade_connect.core.homeowners import compose_address, compose_name, prepare_homeowner_fields
from cascade_connect.core.models import BuilderGroup, Homeowner


class TestDerivedFields:
    def test_compose_name(self):
        assert compose_name("Jane", "Buyer") == "Jane Buyer"
        assert compose_name("Jane", None) == "Jane"
        assert compose_name(None, None) == ""

    def test_compose_address(self):
        assert compose_address("1 Elm St", "Bend", "OR", "97701") == "1 Elm St, Bend, OR 97701"
        assert compose_address("1 Elm St", None, "OR", None) == "1 Elm St, OR"

    def test_prepare_fields_on_create(self):
        fields = prepare_homeowner_fields({
            "first_name": "Jane",
            "last_name": "Buyer",
            "email": "Jane@Example.COM",
            "phone": "(503) 555-0100",
            "street": "1 Elm St",
            "city": "Bend",
        })

        assert fields["name"] == "Jane Buyer"
        assert fields["address"] == "1 Elm St, Bend"
        assert fields["email"] == "jane@example.com"
        assert fields["phone"] == "+15035550100"

    def test_prepare_fields_keeps_unusable_phone(self):
        fields = prepare_homeowner_fields({"name": "X", "phone": "555-1234"})
        assert fields["phone"] == "555-1234"
        assert fields["address"] == ""

    def test_update_recomposes_from_current_parts(self, ):
        current = Homeowner(street="1 Elm St", city="Bend", state="OR", zip="97701", address="old")
        fields = prepare_homeowner_fields({"city": "Redmond"}, current=current)
        assert fields["address"] == "1 Elm St, Redmond, OR 97701"

    def test_update_without_parts_leaves_address(self):
        current = Homeowner(street="1 Elm St", address="1 Elm St")
        fields = prepare_homeowner_fields({"job_name": "Lot 3"}, current=current)
        assert "address" not in fields


class TestHomeownerDirectory:
    async def test_admin_lists_all(
        self, client: AsyncClient, admin_headers: dict, homeowner: Homeowner, other_homeowner: Homeowner
    ):
        response = await client.get("/api/v1/homeowners", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert [h["name"] for h in data["items"]] == ["Jane Buyer", "Sam Owner"]

    async def test_builder_sees_only_own_group(
        self, client: AsyncClient, builder_headers: dict, homeowner: Homeowner, other_homeowner: Homeowner
    ):
        response = await client.get(
            "/api/v1/homeowners",
            headers=builder_headers,
            params={"builder_group_id": str(other_homeowner.builder_group_id)},
        )

        assert response.status_code == 200
        ids = [h["id"] for h in response.json()["items"]]
        assert ids == [str(homeowner.id)]

    async def test_search_filter(
        self, client: AsyncClient, admin_headers: dict, homeowner: Homeowner, other_homeowner: Homeowner
    ):
        response = await client.get("/api/v1/homeowners", headers=admin_headers, params={"q": "cedar"})

        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["id"] == str(other_homeowner.id)

    async def test_pagination(self, client: AsyncClient, admin_headers: dict, homeowner, other_homeowner):
        response = await client.get(
            "/api/v1/homeowners", headers=admin_headers, params={"page": 2, "page_size": 1}
        )

        data = response.json()
        assert data["pages"] == 2
        assert [h["name"] for h in data["items"]] == ["Sam Owner"]

    async def test_builder_gets_404_outside_group(
        self, client: AsyncClient, builder_headers: dict, other_homeowner: Homeowner
    ):
        response = await client.get(f"/api/v1/homeowners/{other_homeowner.id}", headers=builder_headers)

        assert response.status_code == 404

    async def test_homeowner_user_reads_own_record_only(
        self, client: AsyncClient, homeowner_headers: dict, homeowner: Homeowner, other_homeowner: Homeowner
    ):
        own = await client.get(f"/api/v1/homeowners/{homeowner.id}", headers=homeowner_headers)
        other = await client.get(f"/api/v1/homeowners/{other_homeowner.id}", headers=homeowner_headers)

        assert own.status_code == 200
        assert other.status_code == 404


class TestHomeownerWrites:
    async def test_create_composes_fields(
        self, client: AsyncClient, admin_headers: dict, builder_group: BuilderGroup
    ):
        response = await client.post(
            "/api/v1/homeowners",
            headers=admin_headers,
            json={
                "first_name": "Maria",
                "last_name": "Lopez",
                "email": "Maria@Example.com",
                "phone": "503.555.0123",
                "street": "42 Fir Court",
                "city": "Salem",
                "state": "OR",
                "zip": "97301",
                "builder_group_id": str(builder_group.id),
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Maria Lopez"
        assert data["address"] == "42 Fir Court, Salem, OR 97301"
        assert data["phone"] == "+15035550123"
        assert data["email"] == "maria@example.com"
        assert data["builder"] == "Evergreen Homes"

    async def test_create_requires_name_and_address(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/v1/homeowners",
            headers=admin_headers,
            json={"email": "x@example.com"},
        )

        assert response.status_code == 422

    async def test_create_unknown_group(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/v1/homeowners",
            headers=admin_headers,
            json={"name": "X", "address": "1 A St", "builder_group_id": str(uuid4())},
        )

        assert response.status_code == 422

    async def test_builder_create_forced_into_own_group(
        self,
        client: AsyncClient,
        builder_headers: dict,
        builder_group: BuilderGroup,
        other_builder_group: BuilderGroup,
    ):
        response = await client.post(
            "/api/v1/homeowners",
            headers=builder_headers,
            json={
                "name": "Pat Doe",
                "address": "9 Oak Ave",
                "builder_group_id": str(other_builder_group.id),
            },
        )

        assert response.status_code == 201
        assert response.json()["builder_group_id"] == str(builder_group.id)

    async def test_update_partial(self, client: AsyncClient, admin_headers: dict, homeowner: Homeowner):
        response = await client.patch(
            f"/api/v1/homeowners/{homeowner.id}",
            headers=admin_headers,
            json={"city": "Beaverton", "phone": "503-555-0777"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["address"] == "123 Main Street, Beaverton, OR 97201"
        assert data["phone"] == "+15035550777"
        assert data["name"] == "Jane Buyer"

    async def test_builder_cannot_move_homeowner_to_other_group(
        self,
        client: AsyncClient,
        builder_headers: dict,
        homeowner: Homeowner,
        other_builder_group: BuilderGroup,
    ):
        response = await client.patch(
            f"/api/v1/homeowners/{homeowner.id}",
            headers=builder_headers,
            json={"builder_group_id": str(other_builder_group.id), "job_name": "Lot 13"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["builder_group_id"] == str(homeowner.builder_group_id)
        assert data["job_name"] == "Lot 13"

    async def test_delete_admin_only(
        self, client: AsyncClient, admin_headers: dict, builder_headers: dict, homeowner: Homeowner
    ):
        forbidden = await client.delete(f"/api/v1/homeowners/{homeowner.id}", headers=builder_headers)
        assert forbidden.status_code == 403

        response = await client.delete(f"/api/v1/homeowners/{homeowner.id}", headers=admin_headers)
        assert response.status_code == 204

        response = await client.get(f"/api/v1/homeowners/{homeowner.id}", headers=admin_headers)
        assert response.status_code == 404


class TestEnrollment:
    async def test_enroll_with_slug(self, client: AsyncClient, builder_group: BuilderGroup):
        response = await client.post(
            "/api/v1/enroll/evergreen-homes",
            json={
                "first_name": "Lee",
                "last_name": "Park",
                "email": "lee@example.com",
                "street": "7 Birch Way",
                "city": "Eugene",
                "state": "OR",
                "zip": "97401",
                "sms_opt_in": True,
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Lee Park"
        assert data["builder_group_id"] == str(builder_group.id)
        assert data["builder"] == "Evergreen Homes"
        assert data["sms_opt_in"] is True

    async def test_enroll_unknown_slug(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/enroll/no-such-builder",
            json={"name": "Lee Park", "address": "7 Birch Way"},
        )

        assert response.status_code == 404
