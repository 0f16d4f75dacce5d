"""
Beyond Trips Backend — User and Magazine Models
===============================================

What:  Read-mostly reference tables maintained by the content-management side
       of the platform: platform users (drivers, admins, advertisers) and the
       magazine editions that drivers distribute.
Who:   Looked up by the rider intake, pickup service and reward dispatcher.

Barcode:
    Each magazine edition carries one printed barcode. Riders scan it in a
    driver's car, and drivers scan it to activate a picked-up copy.
"""

import uuid
from typing import Optional

from sqlalchemy import Boolean, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from beyondtrips.database import Base


class UserRole:
    DRIVER = "driver"
    ADMIN = "admin"
    ADVERTISER = "advertiser"


class User(Base):
    """A platform account. Only rows with role='driver' can earn BTL coins."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, unique=True)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=UserRole.DRIVER)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    def __repr__(self) -> str:
        return f"<User(id={self.id}, role='{self.role}')>"


class Magazine(Base):
    """
    A magazine edition available for pickup.

    Lifecycle (owned by the CMS):
        draft → is_published=True, status='active' → status='archived'
    Riders can only scan editions that are published.
    """

    __tablename__ = "magazines"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    edition_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    barcode: Mapped[str] = mapped_column(String(128), nullable=False, unique=True, index=True)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")

    def __repr__(self) -> str:
        return f"<Magazine(id={self.id}, barcode='{self.barcode}')>"
