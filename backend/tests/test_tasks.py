"""
Cascade Connect - Task & Template Tests
========================================
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from cascade_connect.api.tasks import sort_tasks
from cascade_connect.core.models import Task, User


class TestTaskOrdering:
    def test_active_newest_first_then_completed_oldest_first(self):
        base = datetime(2024, 5, 1, tzinfo=timezone.utc)

        def task(title: str, hours: int, done: bool = False) -> Task:
            return Task(title=title, is_completed=done, created_at=base + timedelta(hours=hours))

        tasks = [
            task("old active", 1),
            task("new done", 4, done=True),
            task("new active", 3),
            task("old done", 2, done=True),
        ]

        assert [t.title for t in sort_tasks(tasks)] == ["new active", "old active", "old done", "new done"]


class TestTasks:
    async def test_create_note(self, client: AsyncClient, admin_headers: dict, fake_email):
        response = await client.post(
            "/api/v1/tasks",
            headers=admin_headers,
            json={"content": "Order replacement tile", "context_label": "Jane Buyer - Lot 12"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["title"] == "Order replacement tile"
        assert data["assigned_to_id"] is None
        assert data["assigned_by_id"] is None
        assert data["is_completed"] is False
        assert fake_email.sent == []

    async def test_blank_content_rejected(self, client: AsyncClient, admin_headers: dict):
        response = await client.post("/api/v1/tasks", headers=admin_headers, json={"content": ""})

        assert response.status_code == 422

    async def test_assignment_emails_assignee(
        self, client: AsyncClient, admin_headers: dict, test_admin: User, second_admin: User, fake_email
    ):
        response = await client.post(
            "/api/v1/tasks",
            headers=admin_headers,
            json={
                "content": "Schedule drywall repair",
                "assigned_to_id": str(second_admin.id),
                "context_label": "Claim #3",
            },
        )

        assert response.status_code == 201
        assert response.json()["assigned_by_id"] == str(test_admin.id)
        assert len(fake_email.sent) == 1
        message = fake_email.sent[0]
        assert message.to == "alex@example.com"
        assert message.subject == "Task assigned: Schedule drywall repair"
        assert "Claim #3" in message.html

    async def test_self_assignment_sends_nothing(
        self, client: AsyncClient, admin_headers: dict, test_admin: User, fake_email
    ):
        await client.post(
            "/api/v1/tasks",
            headers=admin_headers,
            json={"content": "Remind myself", "assigned_to_id": str(test_admin.id)},
        )

        assert fake_email.sent == []

    async def test_opted_out_assignee_not_emailed(
        self,
        client: AsyncClient,
        admin_headers: dict,
        second_admin: User,
        db_session: AsyncSession,
        fake_email,
    ):
        second_admin.email_notify_task_assigned = False
        await db_session.commit()

        await client.post(
            "/api/v1/tasks",
            headers=admin_headers,
            json={"content": "Quiet task", "assigned_to_id": str(second_admin.id)},
        )

        assert fake_email.sent == []

    async def test_unknown_assignee(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/v1/tasks",
            headers=admin_headers,
            json={"content": "Nobody", "assigned_to_id": str(uuid4())},
        )

        assert response.status_code == 422

    async def test_notes_only_filter(
        self, client: AsyncClient, admin_headers: dict, second_admin: User
    ):
        await client.post("/api/v1/tasks", headers=admin_headers, json={"content": "A note"})
        await client.post(
            "/api/v1/tasks",
            headers=admin_headers,
            json={"content": "A task", "assigned_to_id": str(second_admin.id)},
        )

        response = await client.get("/api/v1/tasks", headers=admin_headers, params={"notes_only": True})

        assert [t["title"] for t in response.json()] == ["A note"]

    async def test_complete_and_reassign(
        self, client: AsyncClient, admin_headers: dict, second_admin: User, fake_email
    ):
        created = (await client.post("/api/v1/tasks", headers=admin_headers, json={"content": "Follow up"})).json()

        response = await client.patch(
            f"/api/v1/tasks/{created['id']}",
            headers=admin_headers,
            json={"assigned_to_id": str(second_admin.id), "content": "Follow up with Jane"},
        )
        data = response.json()
        assert data["title"] == "Follow up with Jane"
        assert data["assigned_to_id"] == str(second_admin.id)
        assert len(fake_email.sent) == 1

        response = await client.patch(
            f"/api/v1/tasks/{created['id']}", headers=admin_headers, json={"is_completed": True}
        )
        assert response.json()["is_completed"] is True
        assert len(fake_email.sent) == 1

    async def test_empty_update_rejected(self, client: AsyncClient, admin_headers: dict):
        created = (await client.post("/api/v1/tasks", headers=admin_headers, json={"content": "x"})).json()

        response = await client.patch(f"/api/v1/tasks/{created['id']}", headers=admin_headers, json={})

        assert response.status_code == 400

    async def test_delete(self, client: AsyncClient, admin_headers: dict):
        created = (await client.post("/api/v1/tasks", headers=admin_headers, json={"content": "x"})).json()

        response = await client.delete(f"/api/v1/tasks/{created['id']}", headers=admin_headers)
        assert response.status_code == 204

        response = await client.get(f"/api/v1/tasks/{created['id']}", headers=admin_headers)
        assert response.status_code == 404

    async def test_homeowner_forbidden(self, client: AsyncClient, homeowner_headers: dict):
        response = await client.get("/api/v1/tasks", headers=homeowner_headers)

        assert response.status_code == 403


class TestTemplates:
    async def test_crud(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/v1/templates",
            headers=admin_headers,
            json={"title": "Scheduling", "content": "We will reach out to schedule a visit."},
        )
        assert response.status_code == 201
        template = response.json()
        assert template["category"] == "General"

        response = await client.patch(
            f"/api/v1/templates/{template['id']}",
            headers=admin_headers,
            json={"category": "Scheduling"},
        )
        assert response.json()["category"] == "Scheduling"
        assert response.json()["title"] == "Scheduling"

        response = await client.get("/api/v1/templates", headers=admin_headers)
        assert [t["id"] for t in response.json()] == [template["id"]]

        response = await client.delete(f"/api/v1/templates/{template['id']}", headers=admin_headers)
        assert response.status_code == 204

    async def test_templates_are_private(
        self, client: AsyncClient, admin_headers: dict, second_admin_headers: dict
    ):
        template = (await client.post(
            "/api/v1/templates",
            headers=admin_headers,
            json={"title": "Mine", "content": "Only mine"},
        )).json()

        response = await client.get("/api/v1/templates", headers=second_admin_headers)
        assert response.json() == []

        response = await client.patch(
            f"/api/v1/templates/{template['id']}",
            headers=second_admin_headers,
            json={"title": "Stolen"},
        )
        assert response.status_code == 404

        response = await client.delete(f"/api/v1/templates/{template['id']}", headers=second_admin_headers)
        assert response.status_code == 404
