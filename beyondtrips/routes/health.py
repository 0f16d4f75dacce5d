"""
Beyond Trips Backend — Health Check Route
=========================================

What:  GET /health for load balancers and monitoring.
How:   Checks the database with SELECT 1 and reports the side-effect queue
       backlog.

    healthy:   database reachable, no dead tasks            (200)
    degraded:  database reachable, dead tasks need a retry  (200)
    unhealthy: database unreachable                         (503)
"""

import logging
import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text

from beyondtrips import __version__
from beyondtrips.dependencies import get_task_queue
from beyondtrips.models.notification import TaskStatus
from beyondtrips.schemas.common import HealthResponse
from beyondtrips.services.task_queue import TaskQueue

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
    summary="Service health check",
)
async def health_check(
    queue: TaskQueue = Depends(get_task_queue),
):
    uptime = round(time.time() - _start_time, 2)
    try:
        async with queue.session_factory() as session:
            await session.execute(text("SELECT 1"))
            counts = await queue.count_by_status(session)
    except Exception as e:
        logger.warning("Health check: database unreachable: %s", str(e))
        body = HealthResponse(
            status="unhealthy",
            version=__version__,
            database="disconnected",
            uptime_seconds=uptime,
        )
        return JSONResponse(status_code=503, content=body.model_dump())

    dead = counts.get(TaskStatus.DEAD.value, 0)
    return HealthResponse(
        status="degraded" if dead else "healthy",
        version=__version__,
        database="connected",
        pending_tasks=counts.get(TaskStatus.PENDING.value, 0),
        dead_tasks=dead,
        uptime_seconds=uptime,
    )
