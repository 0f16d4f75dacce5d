"""
Beyond Trips Backend — Health and Operator Endpoint Tests
=========================================================

What we test:
    ✅ /health reports healthy, degraded (dead tasks) and unhealthy (no database)
    ✅ Operators can list tasks and re-queue a dead one, which then runs
    ✅ Operator endpoints are admin-only
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy import func, select

from beyondtrips import __version__
from beyondtrips.dependencies import get_task_queue
from beyondtrips.models.notification import DriverNotification, SideEffectTask
from beyondtrips.services import task_queue as tq
from beyondtrips.services.task_queue import TaskQueue


@pytest.fixture
def dead_task(session_factory, driver):
    async def _make():
        async with session_factory() as session:
            task = await tq.enqueue_driver_notification(session, driver.id, "Late", "Delivered eventually")
            task.status = "dead"
            task.attempts = 5
            task.last_error = "RuntimeError: smtp timeout"
            await session.commit()
            return task

    return _make


class TestHealth:

    @pytest.mark.asyncio
    async def test_healthy(self, test_client):
        response = await test_client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert body["version"] == __version__
        assert body["pending_tasks"] == 0
        assert body["dead_tasks"] == 0

    @pytest.mark.asyncio
    async def test_degraded_with_dead_tasks(self, test_client, dead_task):
        await dead_task()
        response = await test_client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
        assert response.json()["dead_tasks"] == 1

    @pytest.mark.asyncio
    async def test_unhealthy_without_database(self, app, test_client):
        broken = TaskQueue(session_factory=MagicMock(side_effect=RuntimeError("connection refused")))
        app.dependency_overrides[get_task_queue] = lambda: broken

        response = await test_client.get("/health")
        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"
        assert response.json()["database"] == "disconnected"


class TestOperatorTasks:

    @pytest.mark.asyncio
    async def test_list_and_retry_dead_task(self, test_client, session_factory, admin_headers, dead_task):
        task = await dead_task()

        listing = await test_client.get("/api/admin/tasks", params={"status": "dead"}, headers=admin_headers)
        assert listing.status_code == 200
        assert listing.json()["total"] == 1
        item = listing.json()["tasks"][0]
        assert item["id"] == str(task.id)
        assert item["kind"] == "driver.notify"
        assert item["lastError"] == "RuntimeError: smtp timeout"

        retried = await test_client.post(f"/api/admin/tasks/{task.id}/retry", headers=admin_headers)
        assert retried.status_code == 200
        assert retried.json()["status"] == "pending"
        assert retried.json()["attempts"] == 0

        # The post-response drain has delivered it
        async with session_factory() as session:
            status = (
                await session.execute(select(SideEffectTask.status).where(SideEffectTask.id == task.id))
            ).scalar_one()
            delivered = (
                await session.execute(select(func.count()).select_from(DriverNotification))
            ).scalar()
        assert status == "completed"
        assert delivered == 1

    @pytest.mark.asyncio
    async def test_retry_unknown_task_404(self, test_client, admin_headers):
        response = await test_client.post(
            "/api/admin/tasks/00000000-0000-0000-0000-000000000000/retry", headers=admin_headers
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_unknown_status_filter_400(self, test_client, admin_headers):
        response = await test_client.get("/api/admin/tasks", params={"status": "zombie"}, headers=admin_headers)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_drivers_cannot_see_tasks(self, test_client, driver_headers):
        response = await test_client.get("/api/admin/tasks", headers=driver_headers)
        assert response.status_code == 403
