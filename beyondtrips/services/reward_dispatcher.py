"""
Beyond Trips Backend — Reward Dispatcher
========================================

What:  Credits a driver with one BTL coin for a rider review.
How:   Award, ledger entry and award→ledger link are written inside one
       savepoint, so either all three exist or none do. The secondary effects
       (pickup counters, driver notification, admin audit entry) are enqueued
       as durable side-effect tasks in the caller's transaction.
Who:   Called by the review intake after a review has been stored.

Steps:
    1. Idempotency: an award for this review already exists → not awarded
    2. BTLCoinAward(status=awarded, amount=1)
    3. DriverEarning(points=1, amount=coin value)
    4. award.earning_record_id = earning.id, status=processed
    5. enqueue pickup.increment_counters, driver.notify, admin.log

The dispatcher never raises for business failures; callers read
`AwardResult.success`.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from beyondtrips.database import utcnow
from beyondtrips.models.reward import AwardStatus, BTLCoinAward
from beyondtrips.services import task_queue
from beyondtrips.services.ledger import append_btl_coin_earning

logger = logging.getLogger(__name__)

ALREADY_AWARDED = "BTL coin already awarded for this review"

BTL_COIN_NOTIFICATION_TITLE = "BTL Coin Earned! 🪙"
BTL_COIN_NOTIFICATION_MESSAGE = (
    "You've earned 1 BTL coin from a passenger interaction. "
    "Thank you for providing excellent service!"
)


@dataclass(frozen=True)
class AwardRequest:
    driver_id: uuid.UUID
    magazine_id: uuid.UUID
    magazine_barcode: str
    review_id: uuid.UUID
    rider_device_id: Optional[str] = None
    rider_name: Optional[str] = None
    # Pickup whose counters the award bumps; newest pickup of the magazine if None
    pickup_id: Optional[uuid.UUID] = None


@dataclass(frozen=True)
class AwardResult:
    success: bool
    award_id: Optional[uuid.UUID] = None
    earning_id: Optional[uuid.UUID] = None
    error: Optional[str] = None


async def _existing_award_id(db: AsyncSession, review_id: uuid.UUID) -> Optional[uuid.UUID]:
    return await db.scalar(select(BTLCoinAward.id).where(BTLCoinAward.review_id == review_id))


async def award_btl_coin(db: AsyncSession, request: AwardRequest) -> AwardResult:
    """Award one BTL coin for `request.review_id` (at most once per review)."""
    existing = await _existing_award_id(db, request.review_id)
    if existing is not None:
        logger.info("Review %s already has award %s", request.review_id, existing)
        return AwardResult(success=False, award_id=existing, error=ALREADY_AWARDED)

    try:
        async with db.begin_nested():
            award = BTLCoinAward(
                driver_id=request.driver_id,
                magazine_id=request.magazine_id,
                magazine_barcode=request.magazine_barcode,
                review_id=request.review_id,
                rider_device_id=request.rider_device_id,
                rider_name=request.rider_name,
                amount=1,
                status=AwardStatus.AWARDED.value,
                awarded_at=utcnow(),
            )
            db.add(award)
            await db.flush()

            earning = await append_btl_coin_earning(db, request.driver_id, points=1)

            award.earning_record_id = earning.id
            award.status = AwardStatus.PROCESSED.value
            await db.flush()
    except IntegrityError:
        # Concurrent award for the same review won the unique constraint
        logger.warning("Award for review %s lost a concurrent insert", request.review_id)
        return AwardResult(success=False, error=ALREADY_AWARDED)
    except Exception as e:
        logger.error(
            "BTL coin award failed for driver %s, review %s: %s",
            request.driver_id, request.review_id, str(e),
            exc_info=True,
        )
        return AwardResult(success=False, error=str(e))

    logger.info(
        "BTL coin awarded: driver=%s review=%s award=%s earning=%s",
        request.driver_id, request.review_id, award.id, earning.id,
    )

    await _enqueue_side_effects(db, request, award.id, earning.id)

    return AwardResult(success=True, award_id=award.id, earning_id=earning.id)


async def _enqueue_side_effects(
    db: AsyncSession,
    request: AwardRequest,
    award_id: uuid.UUID,
    earning_id: uuid.UUID,
) -> None:
    """Queue counters, notification and audit entry; failures leave the award intact."""
    try:
        async with db.begin_nested():
            await task_queue.enqueue_pickup_counter_increment(
                db,
                driver_id=request.driver_id,
                magazine_id=request.magazine_id,
                pickup_id=request.pickup_id,
            )
            await task_queue.enqueue_driver_notification(
                db,
                driver_id=request.driver_id,
                title=BTL_COIN_NOTIFICATION_TITLE,
                message=BTL_COIN_NOTIFICATION_MESSAGE,
                type="earnings",
                priority="medium",
            )
            await task_queue.enqueue_admin_log(
                db,
                title="BTL Coin Awarded",
                message=(
                    f"BTL_COIN_AWARD: Driver {request.driver_id} earned 1 BTL coin "
                    f"from rider review {request.review_id}"
                ),
                metadata={
                    "event": "BTL_COIN_AWARD",
                    "driverId": str(request.driver_id),
                    "magazineId": str(request.magazine_id),
                    "magazineBarcode": request.magazine_barcode,
                    "reviewId": str(request.review_id),
                    "awardId": str(award_id),
                    "earningId": str(earning_id),
                    "timestamp": utcnow().isoformat(),
                },
            )
    except Exception as e:
        logger.error(
            "Could not enqueue side effects for award %s: %s", award_id, str(e), exc_info=True
        )
