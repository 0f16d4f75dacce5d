"""
Beyond Trips Backend — Request Dependencies
===========================================

What:  Caller identity and role checks for the authenticated API surface, and
       the side-effect queue handle used by routes.
How:   Authentication happens at the gateway, which forwards the verified
       user as `X-User-ID` (UUID) and `X-User-Role` headers. These
       dependencies only parse and check them.

    missing / malformed identity → 401 AuthenticationError
    wrong role                   → 403 PermissionDeniedError
"""

import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header

from beyondtrips.exceptions import AuthenticationError, PermissionDeniedError
from beyondtrips.models.user import UserRole
from beyondtrips.services.task_queue import TaskQueue, task_queue


@dataclass(frozen=True)
class CurrentUser:
    id: uuid.UUID
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_driver(self) -> bool:
        return self.role == UserRole.DRIVER


async def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> CurrentUser:
    if not x_user_id or not x_user_role:
        raise AuthenticationError("Unauthorized - Please log in")
    try:
        user_id = uuid.UUID(x_user_id)
    except ValueError:
        raise AuthenticationError("Invalid user identity")
    role = x_user_role.strip().lower()
    if role not in (UserRole.DRIVER, UserRole.ADMIN, UserRole.ADVERTISER):
        raise AuthenticationError("Invalid user role")
    return CurrentUser(id=user_id, role=role)


async def require_driver(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_driver:
        raise PermissionDeniedError("Unauthorized - Driver access only")
    return user


async def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise PermissionDeniedError("Unauthorized - Admin access only")
    return user


async def require_driver_or_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not (user.is_driver or user.is_admin):
        raise PermissionDeniedError()
    return user


def get_task_queue() -> TaskQueue:
    """Overridden in tests to bind the queue to the test database."""
    return task_queue
