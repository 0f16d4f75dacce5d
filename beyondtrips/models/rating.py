"""
Beyond Trips Backend — Rider Review and Scan Models
===================================================

What:  `driver_ratings` holds reviews riders submit after scanning a driver's
       magazine; `rider_scans` records every successful barcode scan.

Duplicate protection:
    A rider may review a given driver's magazine once per device and once per
    e-mail address. The service checks both before inserting, and the two
    unique constraints below reject whatever slips past those checks under
    concurrency. NULL never collides in a unique constraint, so a review
    without a device fingerprint (or without an e-mail) is only constrained
    by the other identifier.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from beyondtrips.database import Base, utcnow


class DriverRating(Base):
    """A 1-5 star review of a driver, optionally rewarded with a BTL coin."""

    __tablename__ = "driver_ratings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    driver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    # ── Rater identity (riders are anonymous) ─────────────────────────────
    rater_name: Mapped[str] = mapped_column(String(255), nullable=False)
    rater_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    rater_phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    device_fingerprint: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # ── Review ────────────────────────────────────────────────────────────
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    review: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(32), nullable=False, default="overall")
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # ── Magazine link ─────────────────────────────────────────────────────
    magazine_barcode: Mapped[str] = mapped_column(String(128), nullable=False)
    scan_timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    btl_coin_awarded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_ratings_rating_range"),
        UniqueConstraint(
            "driver_id", "magazine_barcode", "device_fingerprint",
            name="uq_ratings_driver_barcode_device",
        ),
        UniqueConstraint(
            "driver_id", "magazine_barcode", "rater_email",
            name="uq_ratings_driver_barcode_email",
        ),
        Index("idx_ratings_driver_created", "driver_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<DriverRating(id={self.id}, rating={self.rating})>"


class RiderScan(Base):
    """One successful rider scan of a driver's magazine barcode."""

    __tablename__ = "rider_scans"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    driver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    magazine_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("magazines.id", ondelete="CASCADE"), nullable=False
    )
    magazine_barcode: Mapped[str] = mapped_column(String(128), nullable=False)
    device_fingerprint: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    __table_args__ = (
        Index(
            "idx_scans_cooldown",
            "driver_id", "magazine_barcode", "device_fingerprint", "created_at",
        ),
    )
