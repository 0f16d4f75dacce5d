"""
Beyond Trips Backend — Public Rider Routes
==========================================

What:  POST /api/public/rider/scan-magazine and
       POST /api/public/rider/submit-review.
Who:   The rider web app opened from the QR/barcode printed in a driver's
       magazine. No authentication; the rate limiter guards this prefix.

A successful review schedules a drain of the side-effect queue after the
response, so the driver's notification and pickup counters usually land
within the same second. The TaskWorker catches anything left over.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from beyondtrips.database import get_db_session
from beyondtrips.dependencies import get_task_queue
from beyondtrips.schemas.common import ErrorResponse
from beyondtrips.schemas.rider import (
    ScanMagazineRequest,
    ScanMagazineResponse,
    SubmitReviewRequest,
    SubmitReviewResponse,
)
from beyondtrips.services.review_intake import review_intake_service
from beyondtrips.services.task_queue import TaskQueue

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/public/rider", tags=["Rider"])


@router.post(
    "/scan-magazine",
    response_model=ScanMagazineResponse,
    responses={
        400: {"description": "Missing barcode, magazine not active or not activated", "model": ErrorResponse},
        404: {"description": "Unknown barcode or driver", "model": ErrorResponse},
        429: {"description": "Scan cool-down or rate limit", "model": ErrorResponse},
    },
    summary="Resolve a scanned magazine barcode to its driver",
)
async def scan_magazine(
    body: ScanMagazineRequest,
    db: AsyncSession = Depends(get_db_session),
) -> ScanMagazineResponse:
    scan = await review_intake_service.scan_magazine(
        db, barcode=body.barcode, device_fingerprint=body.device_fingerprint
    )
    return ScanMagazineResponse(scan=scan)


@router.post(
    "/submit-review",
    response_model=SubmitReviewResponse,
    responses={
        400: {"description": "Invalid rating or name, magazine not activated", "model": ErrorResponse},
        404: {"description": "Unknown barcode or driver", "model": ErrorResponse},
        409: {"description": "Rider already reviewed this driver", "model": ErrorResponse},
    },
    summary="Rate the driver and award them a BTL coin",
)
async def submit_review(
    body: SubmitReviewRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db_session),
    queue: TaskQueue = Depends(get_task_queue),
) -> SubmitReviewResponse:
    rating = await review_intake_service.submit_review(db, body)
    if rating.btl_coin_awarded:
        # Tasks must be committed before the post-response drain reads them
        await db.commit()
        background_tasks.add_task(queue.drain)
    return SubmitReviewResponse(rating=rating)
