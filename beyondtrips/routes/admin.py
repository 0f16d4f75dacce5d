"""
Operator endpoints: the side-effect queue (inspect tasks, re-queue dead ones
once the underlying problem is fixed) and driver withdrawal processing.

    GET   /api/admin/tasks
    POST  /api/admin/tasks/{id}/retry
    GET   /api/admin/withdrawals
    PATCH /api/admin/withdrawals/{id}
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from beyondtrips.database import get_db_session
from beyondtrips.dependencies import CurrentUser, get_task_queue, require_admin
from beyondtrips.schemas.common import ErrorResponse
from beyondtrips.schemas.task import TaskItem, TaskListResponse
from beyondtrips.schemas.withdrawal import (
    AdminWithdrawalListResponse,
    AdminWithdrawalResponse,
    WithdrawalUpdateRequest,
)
from beyondtrips.services.task_queue import TaskQueue
from beyondtrips.services.withdrawal_service import withdrawal_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])


# ── Side-effect tasks ─────────────────────────────────────────────────────

@router.get("/tasks", response_model=TaskListResponse, summary="List side-effect tasks")
async def list_tasks(
    status: Optional[str] = Query(default=None, description="pending, completed or dead"),
    limit: int = Query(default=50, ge=1, le=500),
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
    queue: TaskQueue = Depends(get_task_queue),
) -> TaskListResponse:
    tasks, total = await queue.list_tasks(db, status=status, limit=limit)
    return TaskListResponse(tasks=[TaskItem.model_validate(t) for t in tasks], total=total)


@router.post(
    "/tasks/{task_id}/retry",
    response_model=TaskItem,
    responses={
        400: {"description": "Task already completed", "model": ErrorResponse},
        404: {"description": "Task not found", "model": ErrorResponse},
    },
    summary="Re-queue a dead task",
)
async def retry_task(
    task_id: UUID,
    background_tasks: BackgroundTasks,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
    queue: TaskQueue = Depends(get_task_queue),
) -> TaskItem:
    task = await queue.retry_task(db, task_id)
    logger.info("Admin %s re-queued task %s", user.id, task_id)
    item = TaskItem.model_validate(task)
    await db.commit()
    background_tasks.add_task(queue.drain)
    return item


# ── Withdrawals ───────────────────────────────────────────────────────────

@router.get(
    "/withdrawals",
    response_model=AdminWithdrawalListResponse,
    summary="List driver withdrawals",
)
async def list_withdrawals(
    status: Optional[str] = Query(default=None, description="Omit for every status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> AdminWithdrawalListResponse:
    withdrawals, pagination = await withdrawal_service.list_withdrawals(
        db, status=status, page=page, limit=limit
    )
    return AdminWithdrawalListResponse(
        withdrawals=[AdminWithdrawalResponse.model_validate(w) for w in withdrawals],
        counts=await withdrawal_service.count_by_status(db),
        pagination=pagination,
    )


@router.patch(
    "/withdrawals/{withdrawal_id}",
    response_model=AdminWithdrawalResponse,
    responses={
        404: {"description": "Withdrawal not found", "model": ErrorResponse},
        409: {"description": "Status change not allowed", "model": ErrorResponse},
    },
    summary="Move a withdrawal to its next status",
)
async def update_withdrawal(
    withdrawal_id: UUID,
    body: WithdrawalUpdateRequest,
    background_tasks: BackgroundTasks,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
    queue: TaskQueue = Depends(get_task_queue),
) -> AdminWithdrawalResponse:
    withdrawal = await withdrawal_service.update_withdrawal(db, withdrawal_id, body, actor_id=user.id)
    item = AdminWithdrawalResponse.model_validate(withdrawal)
    await db.commit()
    background_tasks.add_task(queue.drain)
    return item
