"""
Beyond Trips Backend — Magazine Pickup Service
==============================================

What:  Driver pickup requests, admin status management and driver-side
       magazine activation.
How:   Every status change goes through `pickup_state.apply_transition()`.
       The driver notification a transition produces is enqueued on the
       side-effect queue inside a savepoint, so a failure to queue it can
       never undo the status change.
Who:   Called by routes/pickups.py and routes/driver.py.

Visibility:
    Admins see every pickup. Drivers see their own; another driver's pickup
    is reported as not found rather than forbidden.
"""

import logging
import uuid
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from beyondtrips.database import utcnow
from beyondtrips.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from beyondtrips.models.pickup import MagazinePickup, PickupStatus
from beyondtrips.models.user import Magazine, User, UserRole
from beyondtrips.schemas.common import Pagination
from beyondtrips.schemas.pickup import PickupCreateRequest, PickupUpdateRequest
from beyondtrips.services import pickup_state, task_queue

logger = logging.getLogger(__name__)


class PickupService:
    """Stateless; the shared instance is `pickup_service`."""

    # ── Reads ─────────────────────────────────────────────────────────────

    async def get_pickup(
        self,
        db: AsyncSession,
        pickup_id: uuid.UUID,
        driver_id: Optional[uuid.UUID] = None,
    ) -> MagazinePickup:
        """
        Fetch one pickup. With `driver_id`, only that driver's pickups are visible.

        Raises:
            NotFoundError: no such pickup, or it belongs to another driver
        """
        pickup = await db.get(MagazinePickup, pickup_id)
        if pickup is None or (driver_id is not None and pickup.driver_id != driver_id):
            raise NotFoundError(resource="pickup", resource_id=str(pickup_id))
        return pickup

    async def list_pickups(
        self,
        db: AsyncSession,
        driver_id: Optional[uuid.UUID] = None,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[MagazinePickup], Pagination]:
        query = select(MagazinePickup)
        count_query = select(func.count(MagazinePickup.id))
        if driver_id is not None:
            query = query.where(MagazinePickup.driver_id == driver_id)
            count_query = count_query.where(MagazinePickup.driver_id == driver_id)
        if status:
            try:
                status = PickupStatus(status).value
            except ValueError:
                raise ValidationError(message=f"Unknown pickup status '{status}'", field="status")
            query = query.where(MagazinePickup.status == status)
            count_query = count_query.where(MagazinePickup.status == status)

        total = (await db.execute(count_query)).scalar() or 0
        query = (
            query.order_by(MagazinePickup.requested_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        pickups = list((await db.execute(query)).scalars().all())
        return pickups, Pagination.build(page=page, limit=limit, total_docs=total)

    # ── Driver request ────────────────────────────────────────────────────

    async def request_pickup(
        self, db: AsyncSession, driver_id: uuid.UUID, data: PickupCreateRequest
    ) -> MagazinePickup:
        """
        Create a `requested` pickup for the calling driver.

        Raises:
            NotFoundError: unknown magazine or driver account
            ValidationError: magazine edition not available for pickup
        """
        driver = await db.get(User, driver_id)
        if driver is None or driver.role != UserRole.DRIVER:
            raise NotFoundError(resource="driver", resource_id=str(driver_id))

        magazine = await db.get(Magazine, data.magazine_id)
        if magazine is None:
            raise NotFoundError(resource="magazine", resource_id=str(data.magazine_id))
        if not magazine.is_published or magazine.status != "active":
            raise ValidationError(
                message="This magazine edition is not available for pickup",
                field="magazineId",
            )

        pickup = MagazinePickup(
            driver_id=driver_id,
            magazine_id=magazine.id,
            quantity=data.quantity,
            location_name=data.location_name,
            location_address=data.location_address,
            notes=data.notes,
            status=PickupStatus.REQUESTED.value,
            requested_at=utcnow(),
        )
        db.add(pickup)
        await db.flush()
        logger.info("Pickup %s requested by driver %s (%d × %s)", pickup.id, driver_id, pickup.quantity, magazine.id)
        return pickup

    # ── Admin update ──────────────────────────────────────────────────────

    async def update_pickup(
        self,
        db: AsyncSession,
        pickup_id: uuid.UUID,
        data: PickupUpdateRequest,
        actor_id: uuid.UUID,
    ) -> MagazinePickup:
        """
        Apply an admin update: notes and, optionally, one status transition.

        Raises:
            NotFoundError: unknown pickup
            InvalidTransitionError: status change not allowed from the current status
            ValidationError: activation barcode missing or not the magazine's barcode
        """
        pickup = await self.get_pickup(db, pickup_id)

        if data.admin_notes is not None:
            pickup.admin_notes = data.admin_notes

        if data.status is not None:
            activation_barcode = None
            if (
                data.status is PickupStatus.ACTIVE
                and data.activation_barcode
                and pickup_state.can_transition(pickup.status, data.status)
            ):
                magazine = await db.get(Magazine, pickup.magazine_id)
                if magazine is None or magazine.barcode != data.activation_barcode.strip():
                    raise ValidationError(
                        message="Activation barcode does not match the magazine barcode",
                        field="activationBarcode",
                    )
                activation_barcode = magazine.barcode

            notice = pickup_state.apply_transition(
                pickup,
                data.status,
                actor_id=actor_id,
                rejection_reason=data.rejection_reason,
                activation_barcode=activation_barcode,
            )
            if notice is not None:
                await self._enqueue_notice(db, pickup, notice)

        await db.flush()
        return pickup

    # ── Driver activation ─────────────────────────────────────────────────

    async def activate_magazine(
        self,
        db: AsyncSession,
        driver_id: uuid.UUID,
        barcode: Optional[str],
        pickup_id: Optional[uuid.UUID] = None,
    ) -> Tuple[MagazinePickup, Magazine]:
        """
        Driver scans the printed barcode of a picked-up copy: picked-up → active.

        Raises:
            ValidationError: no barcode, magazine not live, or barcode of another edition
            NotFoundError: unknown barcode, or no pickup of this magazine for the driver
            InvalidTransitionError: the driver's pickup is already active
        """
        barcode = (barcode or "").strip()
        if not barcode:
            raise ValidationError(message="Barcode is required", field="barcode")

        magazine = await db.scalar(select(Magazine).where(Magazine.barcode == barcode))
        if magazine is None:
            raise NotFoundError(
                resource="magazine",
                message="Magazine not found with this barcode",
                context={"barcode": barcode},
            )
        if not magazine.is_published or magazine.status != "active":
            raise ValidationError(
                message="This magazine edition is no longer active",
                field="barcode",
            )

        if pickup_id is not None:
            pickup = await self.get_pickup(db, pickup_id, driver_id=driver_id)
            if pickup.magazine_id != magazine.id:
                raise ValidationError(
                    message="Barcode does not belong to this pickup's magazine",
                    field="barcode",
                )
        else:
            pickup = await self._find_activatable(db, driver_id, magazine.id)

        if pickup.status == PickupStatus.ACTIVE.value:
            raise InvalidTransitionError(
                current=pickup.status,
                target=PickupStatus.ACTIVE.value,
                message="You have already activated this magazine edition",
            )

        pickup_state.apply_transition(
            pickup, PickupStatus.ACTIVE, actor_id=driver_id, activation_barcode=barcode
        )
        await db.flush()
        logger.info("Driver %s activated magazine %s (pickup %s)", driver_id, magazine.id, pickup.id)
        return pickup, magazine

    async def _find_activatable(
        self, db: AsyncSession, driver_id: uuid.UUID, magazine_id: uuid.UUID
    ) -> MagazinePickup:
        """Newest picked-up pickup of the magazine; else the active one (→ 409)."""
        candidates = (
            await db.execute(
                select(MagazinePickup)
                .where(
                    MagazinePickup.driver_id == driver_id,
                    MagazinePickup.magazine_id == magazine_id,
                    MagazinePickup.status.in_(
                        (PickupStatus.PICKED_UP.value, PickupStatus.ACTIVE.value)
                    ),
                )
                .order_by(MagazinePickup.requested_at.desc())
            )
        ).scalars().all()
        for status in (PickupStatus.PICKED_UP.value, PickupStatus.ACTIVE.value):
            for pickup in candidates:
                if pickup.status == status:
                    return pickup
        raise NotFoundError(
            resource="pickup",
            message="No picked-up copy of this magazine found for your account",
        )

    # ── Notifications ─────────────────────────────────────────────────────

    async def _enqueue_notice(
        self, db: AsyncSession, pickup: MagazinePickup, notice: pickup_state.PickupNotice
    ) -> None:
        try:
            async with db.begin_nested():
                await task_queue.enqueue_driver_notification(
                    db,
                    driver_id=pickup.driver_id,
                    title=notice.title,
                    message=notice.message,
                    type=notice.type,
                    priority=notice.priority,
                )
        except Exception as e:
            logger.error(
                "Could not queue '%s' notification for pickup %s: %s",
                notice.title, pickup.id, str(e), exc_info=True,
            )


pickup_service = PickupService()
