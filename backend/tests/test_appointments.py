"""
Cascade Connect - Appointment Tests
====================================
"""

from httpx import AsyncClient

from cascade_connect.core.models import Homeowner

START = "2024-06-03T16:00:00Z"
END = "2024-06-03T17:00:00Z"


async def create_appointment(client: AsyncClient, headers: dict, **fields) -> dict:
    payload = {"title": "Drywall repair", "start_time": START, "end_time": END}
    payload.update(fields)
    response = await client.post("/api/v1/appointments", headers=headers, json=payload)
    assert response.status_code == 201, response.text
    return response.json()


class TestAppointments:
    async def test_create_with_string_guests(
        self, client: AsyncClient, admin_headers: dict, homeowner: Homeowner
    ):
        data = await create_appointment(
            client,
            admin_headers,
            homeowner_id=str(homeowner.id),
            type="repair",
            guests=["Tech@PacificPlumbing.com", {"email": "jane@example.com", "role": "homeowner"}],
        )

        assert data["visibility"] == "shared_with_homeowner"
        assert data["type"] == "repair"
        assert sorted(g["email"] for g in data["guests"]) == ["jane@example.com", "tech@pacificplumbing.com"]

    async def test_end_must_follow_start(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/v1/appointments",
            headers=admin_headers,
            json={"title": "Backwards", "start_time": END, "end_time": START},
        )
        assert response.status_code == 422

    async def test_update_checks_times_against_stored_values(
        self, client: AsyncClient, admin_headers: dict
    ):
        appointment = await create_appointment(client, admin_headers)

        response = await client.patch(
            f"/api/v1/appointments/{appointment['id']}",
            headers=admin_headers,
            json={"end_time": "2024-06-03T15:00:00Z"},
        )
        assert response.status_code == 422

        response = await client.patch(
            f"/api/v1/appointments/{appointment['id']}",
            headers=admin_headers,
            json={"end_time": "2024-06-03T18:30:00Z", "guests": ["crew@example.com"]},
        )
        assert response.status_code == 200
        assert [g["email"] for g in response.json()["guests"]] == ["crew@example.com"]

    async def test_homeowner_sees_only_shared(
        self, client: AsyncClient, admin_headers: dict, homeowner_headers: dict, homeowner: Homeowner
    ):
        shared = await create_appointment(client, admin_headers, homeowner_id=str(homeowner.id))
        internal = await create_appointment(
            client, admin_headers, homeowner_id=str(homeowner.id), visibility="internal_only"
        )

        response = await client.get("/api/v1/appointments", headers=homeowner_headers)
        assert [a["id"] for a in response.json()] == [shared["id"]]

        response = await client.get(f"/api/v1/appointments/{internal['id']}", headers=homeowner_headers)
        assert response.status_code == 404

    async def test_builder_scope(
        self,
        client: AsyncClient,
        admin_headers: dict,
        builder_headers: dict,
        homeowner: Homeowner,
        other_homeowner: Homeowner,
    ):
        mine = await create_appointment(client, admin_headers, homeowner_id=str(homeowner.id))
        await create_appointment(client, admin_headers, homeowner_id=str(other_homeowner.id))

        response = await client.get("/api/v1/appointments", headers=builder_headers)
        assert [a["id"] for a in response.json()] == [mine["id"]]

        response = await client.post(
            "/api/v1/appointments",
            headers=builder_headers,
            json={
                "title": "Not my homeowner",
                "start_time": START,
                "end_time": END,
                "homeowner_id": str(other_homeowner.id),
            },
        )
        assert response.status_code == 404

    async def test_date_window_filter(self, client: AsyncClient, admin_headers: dict):
        june = await create_appointment(client, admin_headers)
        await create_appointment(
            client, admin_headers, start_time="2024-07-10T16:00:00Z", end_time="2024-07-10T17:00:00Z"
        )

        response = await client.get(
            "/api/v1/appointments",
            headers=admin_headers,
            params={"start_date": "2024-06-01T00:00:00Z", "end_date": "2024-06-30T23:59:59Z"},
        )

        assert [a["id"] for a in response.json()] == [june["id"]]

    async def test_delete(self, client: AsyncClient, admin_headers: dict):
        appointment = await create_appointment(client, admin_headers)

        response = await client.delete(f"/api/v1/appointments/{appointment['id']}", headers=admin_headers)
        assert response.status_code == 204

        response = await client.get(f"/api/v1/appointments/{appointment['id']}", headers=admin_headers)
        assert response.status_code == 404
