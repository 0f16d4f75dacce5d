"""
Beyond Trips Backend — Magazine Pickup Routes
=============================================

What:  Pickup requests (drivers) and pickup management (admins).

    POST  /api/magazine-pickups        driver requests copies
    GET   /api/magazine-pickups        admin: all, driver: own
    GET   /api/magazine-pickups/{id}   admin: any, driver: own
    PATCH /api/magazine-pickups/{id}   admin status change / notes
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from beyondtrips.database import get_db_session
from beyondtrips.dependencies import (
    CurrentUser,
    get_task_queue,
    require_admin,
    require_driver,
    require_driver_or_admin,
)
from beyondtrips.schemas.common import ErrorResponse
from beyondtrips.schemas.pickup import (
    AdminPickupResponse,
    PickupCreateRequest,
    PickupListResponse,
    PickupResponse,
    PickupUpdateRequest,
)
from beyondtrips.services.pickup_service import pickup_service
from beyondtrips.services.task_queue import TaskQueue

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/magazine-pickups", tags=["Magazine Pickups"])


@router.post(
    "",
    response_model=PickupResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"description": "Unknown magazine", "model": ErrorResponse}},
    summary="Request a magazine pickup",
)
async def request_pickup(
    body: PickupCreateRequest,
    user: CurrentUser = Depends(require_driver),
    db: AsyncSession = Depends(get_db_session),
) -> PickupResponse:
    pickup = await pickup_service.request_pickup(db, driver_id=user.id, data=body)
    return PickupResponse.model_validate(pickup)


@router.get(
    "",
    response_model=PickupListResponse,
    summary="List magazine pickups",
)
async def list_pickups(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user: CurrentUser = Depends(require_driver_or_admin),
    db: AsyncSession = Depends(get_db_session),
) -> PickupListResponse:
    pickups, pagination = await pickup_service.list_pickups(
        db,
        driver_id=None if user.is_admin else user.id,
        status=status_filter,
        page=page,
        limit=limit,
    )
    return PickupListResponse(
        pickups=[PickupResponse.model_validate(p) for p in pickups],
        pagination=pagination,
    )


@router.get(
    "/{pickup_id}",
    # Admins get the admin fields; serialized as returned
    response_model=None,
    responses={
        200: {"description": "Pickup (admin fields for admins)", "model": AdminPickupResponse},
        404: {"description": "Pickup not found", "model": ErrorResponse},
    },
    summary="Get one magazine pickup",
)
async def get_pickup(
    pickup_id: UUID,
    user: CurrentUser = Depends(require_driver_or_admin),
    db: AsyncSession = Depends(get_db_session),
):
    pickup = await pickup_service.get_pickup(
        db, pickup_id, driver_id=None if user.is_admin else user.id
    )
    if user.is_admin:
        return AdminPickupResponse.model_validate(pickup)
    return PickupResponse.model_validate(pickup)


@router.patch(
    "/{pickup_id}",
    response_model=AdminPickupResponse,
    responses={
        400: {"description": "Activation barcode missing or wrong", "model": ErrorResponse},
        404: {"description": "Pickup not found", "model": ErrorResponse},
        409: {"description": "Status change not allowed", "model": ErrorResponse},
    },
    summary="Update a magazine pickup (admin)",
)
async def update_pickup(
    pickup_id: UUID,
    body: PickupUpdateRequest,
    background_tasks: BackgroundTasks,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
    queue: TaskQueue = Depends(get_task_queue),
) -> AdminPickupResponse:
    pickup = await pickup_service.update_pickup(db, pickup_id, body, actor_id=user.id)
    if body.status is not None:
        # Tasks must be committed before the post-response drain reads them
        await db.commit()
        background_tasks.add_task(queue.drain)
    return AdminPickupResponse.model_validate(pickup)
