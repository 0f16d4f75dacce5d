"""
Beyond Trips Backend — Notification and Side-Effect Task Models
===============================================================

What:  In-app notifications for drivers and admins, plus the durable queue of
       side effects (notifications, counter updates, audit entries) that run
       after the request that caused them.

Task lifecycle:
    pending ──(handler succeeds)──▶ completed
       │
       └─(handler fails)─▶ pending again with attempts+1 and a later
                          next_attempt_at ─(attempts == max)─▶ dead
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from beyondtrips.database import Base, utcnow


class NotificationPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class DriverNotification(Base):
    """A notification shown in the driver's dashboard."""

    __tablename__ = "driver_notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    driver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    # earnings, magazine, rating, withdrawal, system, general
    type: Mapped[str] = mapped_column(String(32), nullable=False, default="general")
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    priority: Mapped[str] = mapped_column(
        String(10), nullable=False, default=NotificationPriority.MEDIUM.value
    )

    __table_args__ = (
        Index("idx_driver_notifications_driver_read", "driver_id", "is_read"),
    )


class AdminNotification(Base):
    """Audit-style entry for the admin console (e.g. BTL_COIN_AWARD events)."""

    __tablename__ = "admin_notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    type: Mapped[str] = mapped_column(String(32), nullable=False, default="system")
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    priority: Mapped[str] = mapped_column(
        String(10), nullable=False, default=NotificationPriority.LOW.value
    )
    event_metadata: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)


class TaskStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    DEAD = "dead"


class SideEffectTask(Base):
    """A unit of deferred work, executed at least once by the task worker."""

    __tablename__ = "side_effect_tasks"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    kind: Mapped[str] = mapped_column(String(64), nullable=False)
    payload: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=TaskStatus.PENDING.value
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    next_attempt_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_tasks_status_next_attempt", "status", "next_attempt_at"),
    )

    def __repr__(self) -> str:
        return f"<SideEffectTask(id={self.id}, kind='{self.kind}', status='{self.status}')>"
