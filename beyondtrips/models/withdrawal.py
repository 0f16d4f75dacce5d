"""
Beyond Trips Backend — Driver Withdrawal Model
==============================================

What:  `driver_withdrawals` holds each payout a driver asks for against their
       earnings balance, with the bank account it goes to and the admin
       decisions taken on it.

Lifecycle (see services/withdrawal_state.py):

    pending ──▶ approved ──▶ processing ──▶ completed
       │            │
       └──▶ rejected ◀┘

Invariants:
    - amount is whole NGN and positive.
    - Every status but rejected holds its amount against the driver's
      available balance.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from beyondtrips.database import Base


class WithdrawalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PROCESSING = "processing"
    COMPLETED = "completed"


# Statuses whose amount is no longer (or never was) available to the driver
RESERVING_STATUSES = tuple(s.value for s in WithdrawalStatus if s is not WithdrawalStatus.REJECTED)


class DriverWithdrawal(Base):
    """A payout request. Drivers create it; only admins change it."""

    __tablename__ = "driver_withdrawals"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    driver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="NGN")
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=WithdrawalStatus.PENDING.value
    )

    bank_name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_number: Mapped[str] = mapped_column(String(32), nullable=False)

    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Never shown to the driver
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    transaction_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    processed_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_withdrawals_amount_positive"),
        Index("idx_withdrawals_driver_status", "driver_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<DriverWithdrawal(id={self.id}, amount={self.amount}, status='{self.status}')>"
