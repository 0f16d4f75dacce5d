"""
Beyond Trips Backend — BTL Coin Award and Earnings Ledger Models
================================================================

What:  `btl_coin_awards` records each coin a driver earns from a rider review;
       `driver_earnings` is the append-only earnings ledger.

Invariants:
    - At most one award per review (unique review_id).
    - An award is 'processed' only once its earning_record is attached.
    - Earning amount = points × coin value at creation; never recomputed.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from beyondtrips.database import Base, utcnow


class AwardStatus(str, Enum):
    AWARDED = "awarded"
    PROCESSED = "processed"
    CANCELLED = "cancelled"


class DriverEarning(Base):
    """One ledger entry. Rows are only ever inserted."""

    __tablename__ = "driver_earnings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    driver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    scans: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Whole NGN; the platform never pays fractions of a naira
    amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="NGN")
    type: Mapped[str] = mapped_column(String(32), nullable=False, default="bonus")
    source: Mapped[str] = mapped_column(String(32), nullable=False, default="btl_coin")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<DriverEarning(id={self.id}, amount={self.amount} {self.currency})>"


class BTLCoinAward(Base):
    """A BTL coin credited to a driver for one rider review."""

    __tablename__ = "btl_coin_awards"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    driver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    magazine_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("magazines.id", ondelete="CASCADE"), nullable=False
    )
    magazine_barcode: Mapped[str] = mapped_column(String(128), nullable=False)
    review_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("driver_ratings.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    rider_device_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    rider_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    earning_record_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("driver_earnings.id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AwardStatus.AWARDED.value
    )
    awarded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        Index("idx_awards_driver_awarded_at", "driver_id", "awarded_at"),
    )

    def __repr__(self) -> str:
        return f"<BTLCoinAward(id={self.id}, status='{self.status}')>"
