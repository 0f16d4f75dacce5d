"""
Beyond Trips Backend — Driver Routes
====================================

What:  Endpoints of the driver app: magazine activation, BTL coin history,
       rating and earnings summaries, the notification inbox, and earnings
       withdrawals.
Who:   Authenticated drivers only (`require_driver`).
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from beyondtrips.database import get_db_session
from beyondtrips.dependencies import CurrentUser, get_task_queue, require_driver
from beyondtrips.schemas.common import ErrorResponse
from beyondtrips.schemas.driver import (
    DriverBTLCoinsResponse,
    EarningsSummaryResponse,
    MarkAllReadResponse,
    NotificationItem,
    NotificationListResponse,
    RatingSummaryResponse,
)
from beyondtrips.schemas.pickup import (
    ActivatedMagazine,
    ActivateMagazineRequest,
    ActivateMagazineResponse,
    PickupResponse,
)
from beyondtrips.schemas.withdrawal import (
    WithdrawalCreatedResponse,
    WithdrawalCreateRequest,
    WithdrawalListResponse,
    WithdrawalResponse,
)
from beyondtrips.services.driver_service import driver_service
from beyondtrips.services.pickup_service import pickup_service
from beyondtrips.services.task_queue import TaskQueue
from beyondtrips.services.withdrawal_service import withdrawal_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/driver", tags=["Driver"])


# ── Magazines ─────────────────────────────────────────────────────────────

@router.post(
    "/magazines/activate",
    response_model=ActivateMagazineResponse,
    responses={
        400: {"description": "Missing barcode or magazine no longer active", "model": ErrorResponse},
        404: {"description": "Unknown barcode or no picked-up copy", "model": ErrorResponse},
        409: {"description": "Already activated", "model": ErrorResponse},
    },
    summary="Activate a picked-up magazine by scanning its barcode",
)
async def activate_magazine(
    body: ActivateMagazineRequest,
    user: CurrentUser = Depends(require_driver),
    db: AsyncSession = Depends(get_db_session),
) -> ActivateMagazineResponse:
    pickup, magazine = await pickup_service.activate_magazine(
        db, driver_id=user.id, barcode=body.barcode, pickup_id=body.pickup_id
    )
    return ActivateMagazineResponse(
        pickup=PickupResponse.model_validate(pickup),
        magazine=ActivatedMagazine.model_validate(magazine),
    )


# ── Rewards ───────────────────────────────────────────────────────────────

@router.get("/btl-coins", response_model=DriverBTLCoinsResponse, summary="BTL coin history")
async def get_btl_coins(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user: CurrentUser = Depends(require_driver),
    db: AsyncSession = Depends(get_db_session),
) -> DriverBTLCoinsResponse:
    summary, pagination = await driver_service.get_driver_btl_coins(
        db, user.id, page=page, limit=limit
    )
    return DriverBTLCoinsResponse(btl_coins=summary, pagination=pagination)


@router.get("/ratings/summary", response_model=RatingSummaryResponse, summary="Rating summary")
async def get_rating_summary(
    user: CurrentUser = Depends(require_driver),
    db: AsyncSession = Depends(get_db_session),
) -> RatingSummaryResponse:
    return await driver_service.get_rating_summary(db, user.id)


@router.get("/earnings/summary", response_model=EarningsSummaryResponse, summary="Earnings summary")
async def get_earnings_summary(
    user: CurrentUser = Depends(require_driver),
    db: AsyncSession = Depends(get_db_session),
) -> EarningsSummaryResponse:
    return await driver_service.get_earnings_summary(db, user.id)


# ── Notifications ─────────────────────────────────────────────────────────

@router.get("/notifications", response_model=NotificationListResponse, summary="Notification inbox")
async def list_notifications(
    unread_only: bool = Query(default=False, alias="unreadOnly"),
    type: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user: CurrentUser = Depends(require_driver),
    db: AsyncSession = Depends(get_db_session),
) -> NotificationListResponse:
    notifications, unread, pagination = await driver_service.list_notifications(
        db, user.id, unread_only=unread_only, type=type, page=page, limit=limit
    )
    return NotificationListResponse(
        notifications=[NotificationItem.model_validate(n) for n in notifications],
        unread_count=unread,
        pagination=pagination,
    )


@router.patch(
    "/notifications/{notification_id}/read",
    response_model=NotificationItem,
    responses={404: {"description": "Notification not found", "model": ErrorResponse}},
    summary="Mark one notification read",
)
async def mark_notification_read(
    notification_id: UUID,
    user: CurrentUser = Depends(require_driver),
    db: AsyncSession = Depends(get_db_session),
) -> NotificationItem:
    notification = await driver_service.mark_notification_read(db, user.id, notification_id)
    return NotificationItem.model_validate(notification)


@router.post(
    "/notifications/read-all",
    response_model=MarkAllReadResponse,
    summary="Mark every notification read",
)
async def mark_all_read(
    user: CurrentUser = Depends(require_driver),
    db: AsyncSession = Depends(get_db_session),
) -> MarkAllReadResponse:
    updated = await driver_service.mark_all_read(db, user.id)
    return MarkAllReadResponse(updated=updated)


# ── Withdrawals ───────────────────────────────────────────────────────────

@router.post(
    "/withdrawals",
    response_model=WithdrawalCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Bad amount or bank details, or balance too low", "model": ErrorResponse},
    },
    summary="Request a withdrawal of earnings",
)
async def request_withdrawal(
    body: WithdrawalCreateRequest,
    background_tasks: BackgroundTasks,
    user: CurrentUser = Depends(require_driver),
    db: AsyncSession = Depends(get_db_session),
    queue: TaskQueue = Depends(get_task_queue),
) -> WithdrawalCreatedResponse:
    withdrawal, balance = await withdrawal_service.request_withdrawal(db, user.id, body)
    response = WithdrawalCreatedResponse(
        withdrawal=WithdrawalResponse.model_validate(withdrawal),
        available_balance=balance.available,
    )
    # Tasks must be committed before the post-response drain reads them
    await db.commit()
    background_tasks.add_task(queue.drain)
    return response


@router.get("/withdrawals", response_model=WithdrawalListResponse, summary="Withdrawal history and balance")
async def list_withdrawals(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user: CurrentUser = Depends(require_driver),
    db: AsyncSession = Depends(get_db_session),
) -> WithdrawalListResponse:
    withdrawals, pagination = await withdrawal_service.list_withdrawals(
        db, driver_id=user.id, status=status_filter, page=page, limit=limit
    )
    balance = await withdrawal_service.get_balance(db, user.id)
    return WithdrawalListResponse(
        withdrawals=[WithdrawalResponse.model_validate(w) for w in withdrawals],
        balance=balance.to_schema(),
        pagination=pagination,
    )
