"""
Beyond Trips Backend — Magazine Pickup Model
============================================

What:  ORM model for the `magazine_pickups` table: a driver's custody of
       physical copies of a magazine edition.

Status lifecycle (transitions live in services/pickup_state.py):

    requested ──▶ approved ──▶ picked-up ──▶ active ──▶ returned
        │             │                         ├─────▶ lost
        └──▶ rejected ◀┘                        └─────▶ damaged

    rejected, returned, lost and damaged are terminal.

Counters:
    rider_scans and btl_coins_earned are incremented when a coin is awarded
    for a review of this pickup's magazine. They are not recomputed from the
    award table.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from beyondtrips.database import Base, utcnow


class PickupStatus(str, Enum):
    REQUESTED = "requested"
    APPROVED = "approved"
    REJECTED = "rejected"
    PICKED_UP = "picked-up"
    ACTIVE = "active"
    RETURNED = "returned"
    LOST = "lost"
    DAMAGED = "damaged"


# Statuses in which riders can scan the driver's copy
SCANNABLE_STATUSES = (PickupStatus.ACTIVE.value, PickupStatus.PICKED_UP.value)


class MagazinePickup(Base):
    """A driver's pickup request and the state of the copies they hold."""

    __tablename__ = "magazine_pickups"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    driver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    magazine_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("magazines.id", ondelete="CASCADE"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # ── Pickup location ───────────────────────────────────────────────────
    location_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    location_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # ── Status ────────────────────────────────────────────────────────────
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PickupStatus.REQUESTED.value
    )
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Written once at requested → approved
    qr_code: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, unique=True)
    verification_code: Mapped[Optional[str]] = mapped_column(String(6), nullable=True)

    activation_barcode: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    # ── Counters ──────────────────────────────────────────────────────────
    rider_scans: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    btl_coins_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # ── Timestamps ────────────────────────────────────────────────────────
    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    return_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    picked_up_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    activated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    actual_return_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_pickups_quantity_positive"),
        Index("idx_pickups_driver_magazine", "driver_id", "magazine_id"),
        Index("idx_pickups_activation_barcode", "activation_barcode", "status"),
    )

    def __repr__(self) -> str:
        return f"<MagazinePickup(id={self.id}, status='{self.status}')>"
