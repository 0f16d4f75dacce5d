"""
Beyond Trips Backend — Rider Scan and Review Intake
===================================================

What:  Business logic behind the two public rider endpoints.
How:   Resolves barcode → magazine → activated pickup → driver, applies the
       duplicate and cool-down guards, persists the scan or review and, for
       reviews, hands off to the reward dispatcher.
Who:   Called by routes/rider.py. Riders are anonymous; nothing here trusts
       identity headers.

Review flow (order matters; the first failing check decides the response):
    1. rating in 1..5 and rater name present          → 400
    2. magazine with this barcode                      → 404
    3. active/picked-up pickup activated with barcode  → 400 "Magazine not activated"
    4. pickup's driver exists and is a driver          → 404
    5. no earlier review by device, then by e-mail     → 409
    6. store review (btl_coin_awarded = false)
    7. award BTL coin; flag the review if it succeeded
"""

import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from beyondtrips.config import settings
from beyondtrips.database import utcnow
from beyondtrips.exceptions import (
    DuplicateSubmissionError,
    NotFoundError,
    ScanCooldownError,
    ValidationError,
)
from beyondtrips.models.pickup import SCANNABLE_STATUSES, MagazinePickup
from beyondtrips.models.rating import DriverRating, RiderScan
from beyondtrips.models.user import Magazine, User, UserRole
from beyondtrips.schemas.rider import (
    ScannedDriver,
    ScanResult,
    SubmitReviewRequest,
    SubmittedRating,
)
from beyondtrips.services import duplicate_guard
from beyondtrips.services.reward_dispatcher import AwardRequest, award_btl_coin

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


@dataclass
class _ActivatedCopy:
    magazine: Magazine
    pickup: MagazinePickup
    driver: User


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _seconds_left(until: datetime, now: datetime) -> int:
    """Whole seconds until `until`, rounded up and never below 1."""
    return max(1, math.ceil((until - now).total_seconds()))


def _violated_identifier(exc: IntegrityError, device_fingerprint: Optional[str]) -> str:
    """Which unique constraint a racing duplicate hit, from the driver's error text."""
    text = str(exc.orig).lower()
    if "email" in text:
        return duplicate_guard.EMAIL
    if "device" in text:
        return duplicate_guard.DEVICE
    return duplicate_guard.DEVICE if device_fingerprint else duplicate_guard.EMAIL


class ReviewIntakeService:
    """
    Stateless service; a single module-level instance is shared by the routes.
    """

    # ── Lookups ───────────────────────────────────────────────────────────

    async def _get_magazine(self, db: AsyncSession, barcode: str) -> Magazine:
        magazine = await db.scalar(select(Magazine).where(Magazine.barcode == barcode))
        if magazine is None:
            raise NotFoundError(
                resource="magazine",
                message="Magazine not found",
                context={"barcode": barcode},
            )
        return magazine

    async def _get_activated_pickup(self, db: AsyncSession, barcode: str) -> MagazinePickup:
        pickup = await db.scalar(
            select(MagazinePickup)
            .where(
                MagazinePickup.activation_barcode == barcode,
                MagazinePickup.status.in_(SCANNABLE_STATUSES),
            )
            .order_by(MagazinePickup.activated_at.desc())
            .limit(1)
        )
        if pickup is None:
            raise ValidationError(
                message="Magazine not activated",
                field="barcode",
                context={"hint": "The driver must activate this magazine before riders can use it"},
            )
        return pickup

    async def _get_driver(self, db: AsyncSession, driver_id: uuid.UUID) -> User:
        driver = await db.get(User, driver_id)
        if driver is None or driver.role != UserRole.DRIVER:
            raise NotFoundError(resource="driver", message="Driver not found")
        return driver

    async def _resolve(self, db: AsyncSession, barcode: str, require_published: bool) -> _ActivatedCopy:
        magazine = await self._get_magazine(db, barcode)
        if require_published and not magazine.is_published:
            raise ValidationError(message="Magazine not active", field="barcode")
        pickup = await self._get_activated_pickup(db, barcode)
        driver = await self._get_driver(db, pickup.driver_id)
        return _ActivatedCopy(magazine=magazine, pickup=pickup, driver=driver)

    # ── Operations ────────────────────────────────────────────────────────

    async def scan_magazine(
        self,
        db: AsyncSession,
        barcode: Optional[str],
        device_fingerprint: Optional[str] = None,
    ) -> ScanResult:
        """
        Resolve a scanned barcode to the driver currently carrying it.

        Raises:
            ValidationError: missing barcode, unpublished or non-activated magazine
            NotFoundError: unknown barcode or driver
            ScanCooldownError: same device scanned this driver's copy too recently
        """
        barcode = _clean(barcode)
        if not barcode:
            raise ValidationError(message="Barcode is required", field="barcode")
        device_fingerprint = _clean(device_fingerprint)

        copy = await self._resolve(db, barcode, require_published=True)

        if device_fingerprint and settings.scan_cooldown_seconds > 0:
            now = utcnow()
            window = timedelta(seconds=settings.scan_cooldown_seconds)
            last_scan = await duplicate_guard.latest_scan_within(
                db,
                driver_id=copy.driver.id,
                barcode=barcode,
                device_fingerprint=device_fingerprint,
                window=window,
                now=now,
            )
            if last_scan is not None:
                raise ScanCooldownError(retry_after=_seconds_left(last_scan + window, now))

        db.add(
            RiderScan(
                driver_id=copy.driver.id,
                magazine_id=copy.magazine.id,
                magazine_barcode=barcode,
                device_fingerprint=device_fingerprint,
            )
        )
        await db.flush()

        logger.info("Rider scan: magazine %s → driver %s", copy.magazine.id, copy.driver.id)
        return ScanResult(
            magazine_id=copy.magazine.id,
            magazine_title=copy.magazine.title,
            magazine_barcode=copy.magazine.barcode,
            driver=ScannedDriver(
                id=copy.driver.id,
                first_name=copy.driver.first_name,
                last_name=copy.driver.last_name,
                name=copy.driver.full_name,
            ),
        )

    async def submit_review(self, db: AsyncSession, payload: SubmitReviewRequest) -> SubmittedRating:
        """
        Store a rider review and try to award the driver a BTL coin.

        A failed award never fails the review; it only leaves
        `btl_coin_awarded` false.
        """
        # 1. Input
        if payload.rating is None or not (MIN_RATING <= payload.rating <= MAX_RATING):
            raise ValidationError(
                message=f"Rating must be between {MIN_RATING} and {MAX_RATING}",
                field="rating",
            )
        rater_name = _clean(payload.rater_name)
        if not rater_name:
            raise ValidationError(message="Rater name is required", field="raterName")
        barcode = _clean(payload.barcode)
        if not barcode:
            raise ValidationError(message="Barcode is required", field="barcode")
        email = _clean(payload.rater_email)
        email = email.lower() if email else None
        device_fingerprint = _clean(payload.device_fingerprint)

        # 2-4. Magazine, activated pickup, driver
        copy = await self._resolve(db, barcode, require_published=False)

        # 5. Duplicates
        collision = await duplicate_guard.find_duplicate_review(
            db,
            driver_id=copy.driver.id,
            barcode=barcode,
            device_fingerprint=device_fingerprint,
            email=email,
        )
        if collision:
            raise DuplicateSubmissionError(identifier=collision)

        # 6. Persist
        review = DriverRating(
            driver_id=copy.driver.id,
            rater_name=rater_name,
            rater_email=email,
            rater_phone=_clean(payload.rater_phone),
            device_fingerprint=device_fingerprint,
            rating=payload.rating,
            review=(payload.review or "").strip(),
            category="overall",
            is_public=True,
            magazine_barcode=barcode,
            scan_timestamp=utcnow(),
            btl_coin_awarded=False,
        )
        try:
            async with db.begin_nested():
                db.add(review)
                await db.flush()
        except IntegrityError as e:
            # A concurrent submission passed step 5 first
            raise DuplicateSubmissionError(identifier=_violated_identifier(e, device_fingerprint))

        # 7. Reward
        result = await award_btl_coin(
            db,
            AwardRequest(
                driver_id=copy.driver.id,
                magazine_id=copy.magazine.id,
                magazine_barcode=barcode,
                review_id=review.id,
                rider_device_id=device_fingerprint,
                rider_name=rater_name,
                pickup_id=copy.pickup.id,
            ),
        )
        if result.success:
            review.btl_coin_awarded = True
            await db.flush()
        else:
            logger.warning("Review %s stored without BTL coin: %s", review.id, result.error)

        logger.info(
            "Review %s: driver %s rated %d (btl_coin_awarded=%s)",
            review.id, copy.driver.id, review.rating, review.btl_coin_awarded,
        )
        return SubmittedRating(
            id=review.id, rating=review.rating, btl_coin_awarded=review.btl_coin_awarded
        )


review_intake_service = ReviewIntakeService()
