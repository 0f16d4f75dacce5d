"""
Duplicate review and repeat-scan checks for the public rider endpoints.

Both functions are plain lookups. The review checks are advisory:
the unique constraints on `driver_ratings` are what actually prevents two
concurrent submissions from both landing.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from beyondtrips.database import utcnow
from beyondtrips.models.rating import DriverRating, RiderScan

logger = logging.getLogger(__name__)

DEVICE = "device"
EMAIL = "email"


async def find_duplicate_review(
    db: AsyncSession,
    driver_id: uuid.UUID,
    barcode: str,
    device_fingerprint: Optional[str] = None,
    email: Optional[str] = None,
) -> Optional[str]:
    """
    Return "device" or "email" when a matching review exists, else None.

    The device is checked first. Each check runs only when its identifier was
    supplied, so a rider who sends neither is never treated as a duplicate.
    """
    if device_fingerprint:
        found = await db.scalar(
            select(
                exists().where(
                    DriverRating.driver_id == driver_id,
                    DriverRating.magazine_barcode == barcode,
                    DriverRating.device_fingerprint == device_fingerprint,
                )
            )
        )
        if found:
            logger.info("Duplicate review by device for driver %s / %s", driver_id, barcode)
            return DEVICE

    if email:
        found = await db.scalar(
            select(
                exists().where(
                    DriverRating.driver_id == driver_id,
                    DriverRating.magazine_barcode == barcode,
                    DriverRating.rater_email == email,
                )
            )
        )
        if found:
            logger.info("Duplicate review by email for driver %s / %s", driver_id, barcode)
            return EMAIL

    return None


async def latest_scan_within(
    db: AsyncSession,
    driver_id: uuid.UUID,
    barcode: str,
    device_fingerprint: str,
    window: timedelta,
    now: Optional[datetime] = None,
) -> Optional[datetime]:
    """When this device last scanned this driver's magazine, if within `window`."""
    since = (now or utcnow()) - window
    latest = await db.scalar(
        select(func.max(RiderScan.created_at)).where(
            RiderScan.driver_id == driver_id,
            RiderScan.magazine_barcode == barcode,
            RiderScan.device_fingerprint == device_fingerprint,
            RiderScan.created_at > since,
        )
    )
    if latest is not None and latest.tzinfo is None:
        # SQLite hands timestamps back naive; they are stored as UTC
        latest = latest.replace(tzinfo=timezone.utc)
    return latest
