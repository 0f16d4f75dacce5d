"""
Beyond Trips Backend — Driver Dashboard Service
===============================================

What:  Read models for the driver dashboard (BTL coin history, rating and
       earnings summaries) and the driver's notification inbox.
How:   Aggregates run in SQL; pagination is 1-based with page metadata built
       by `Pagination.build()`.
Who:   Called by routes/driver.py with the authenticated driver's id.
"""

import logging
import uuid
from typing import List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from beyondtrips.config import settings
from beyondtrips.database import utcnow
from beyondtrips.exceptions import NotFoundError
from beyondtrips.models.notification import DriverNotification
from beyondtrips.models.rating import DriverRating
from beyondtrips.models.reward import BTLCoinAward, DriverEarning
from beyondtrips.schemas.common import Pagination
from beyondtrips.schemas.driver import (
    BTLCoinAwardItem,
    BTLCoinSummary,
    EarningsSummaryResponse,
    RatingSummaryResponse,
)
from beyondtrips.services.withdrawal_service import withdrawal_service

logger = logging.getLogger(__name__)


class DriverService:
    """Stateless; the shared instance is `driver_service`."""

    # ── BTL coins ─────────────────────────────────────────────────────────

    async def get_driver_btl_coins(
        self, db: AsyncSession, driver_id: uuid.UUID, page: int = 1, limit: int = 20
    ) -> Tuple[BTLCoinSummary, Pagination]:
        """
        Paginated award history, newest first.

        `total` counts every award of the driver (not just this page) and
        `total_earnings` values them at the configured coin rate.
        """
        total = (
            await db.execute(
                select(func.count(BTLCoinAward.id)).where(BTLCoinAward.driver_id == driver_id)
            )
        ).scalar() or 0

        awards = (
            await db.execute(
                select(BTLCoinAward)
                .where(BTLCoinAward.driver_id == driver_id)
                .order_by(BTLCoinAward.awarded_at.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
        ).scalars().all()

        summary = BTLCoinSummary(
            total=total,
            total_earnings=total * settings.btl_coin_value_ngn,
            awards=[BTLCoinAwardItem.model_validate(a) for a in awards],
        )
        return summary, Pagination.build(page=page, limit=limit, total_docs=total)

    # ── Summaries ─────────────────────────────────────────────────────────

    async def get_rating_summary(self, db: AsyncSession, driver_id: uuid.UUID) -> RatingSummaryResponse:
        rows = (
            await db.execute(
                select(DriverRating.rating, func.count(DriverRating.id))
                .where(DriverRating.driver_id == driver_id)
                .group_by(DriverRating.rating)
            )
        ).all()
        breakdown = {str(star): 0 for star in range(1, 6)}
        total = 0
        weighted = 0
        for rating, count in rows:
            breakdown[str(rating)] = count
            total += count
            weighted += rating * count

        coin_reviews = (
            await db.execute(
                select(func.count(DriverRating.id)).where(
                    DriverRating.driver_id == driver_id,
                    DriverRating.btl_coin_awarded.is_(True),
                )
            )
        ).scalar() or 0

        return RatingSummaryResponse(
            average_rating=round(weighted / total, 1) if total else 0.0,
            total_ratings=total,
            breakdown=breakdown,
            btl_coin_reviews=coin_reviews,
        )

    async def get_earnings_summary(self, db: AsyncSession, driver_id: uuid.UUID) -> EarningsSummaryResponse:
        """Totals over the driver's active ledger entries, less what was withdrawn or is pending."""
        active = (DriverEarning.driver_id == driver_id, DriverEarning.status == "active")
        total_amount, total_points, entries = (
            await db.execute(
                select(
                    func.coalesce(func.sum(DriverEarning.amount), 0),
                    func.coalesce(func.sum(DriverEarning.points), 0),
                    func.count(DriverEarning.id),
                ).where(*active)
            )
        ).one()
        btl_amount = (
            await db.execute(
                select(func.coalesce(func.sum(DriverEarning.amount), 0)).where(
                    *active, DriverEarning.source == "btl_coin"
                )
            )
        ).scalar() or 0
        balance = await withdrawal_service.get_balance(db, driver_id)

        return EarningsSummaryResponse(
            total_amount=int(total_amount),
            total_points=int(total_points),
            entries=entries,
            btl_coin_amount=int(btl_amount),
            withdrawn=balance.withdrawn,
            pending_withdrawals=balance.pending,
            available_balance=balance.available,
            currency=settings.btl_coin_currency,
        )

    # ── Notifications ─────────────────────────────────────────────────────

    async def list_notifications(
        self,
        db: AsyncSession,
        driver_id: uuid.UUID,
        unread_only: bool = False,
        type: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[DriverNotification], int, Pagination]:
        """Returns (page of notifications, unread count, pagination)."""
        filters = [DriverNotification.driver_id == driver_id]
        if unread_only:
            filters.append(DriverNotification.is_read.is_(False))
        if type:
            filters.append(DriverNotification.type == type)

        total = (
            await db.execute(select(func.count(DriverNotification.id)).where(*filters))
        ).scalar() or 0
        notifications = list(
            (
                await db.execute(
                    select(DriverNotification)
                    .where(*filters)
                    .order_by(DriverNotification.created_at.desc())
                    .offset((page - 1) * limit)
                    .limit(limit)
                )
            ).scalars().all()
        )
        unread = (
            await db.execute(
                select(func.count(DriverNotification.id)).where(
                    DriverNotification.driver_id == driver_id,
                    DriverNotification.is_read.is_(False),
                )
            )
        ).scalar() or 0
        return notifications, unread, Pagination.build(page=page, limit=limit, total_docs=total)

    async def mark_notification_read(
        self, db: AsyncSession, driver_id: uuid.UUID, notification_id: uuid.UUID
    ) -> DriverNotification:
        notification = await db.get(DriverNotification, notification_id)
        if notification is None or notification.driver_id != driver_id:
            raise NotFoundError(resource="notification", resource_id=str(notification_id))
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            await db.flush()
        return notification

    async def mark_all_read(self, db: AsyncSession, driver_id: uuid.UUID) -> int:
        result = await db.execute(
            update(DriverNotification)
            .where(
                DriverNotification.driver_id == driver_id,
                DriverNotification.is_read.is_(False),
            )
            .values(is_read=True, read_at=utcnow())
        )
        logger.info("Driver %s marked %d notifications read", driver_id, result.rowcount)
        return result.rowcount


driver_service = DriverService()
