"""
Beyond Trips Backend — Magazine Pickup State Machine
====================================================

What:  The single definition of which pickup status changes are legal and
       what each one stamps on the pickup.
How:   `ALLOWED_TRANSITIONS` maps each status to its permitted targets.
       `apply_transition()` validates the edge, mutates the pickup in place
       and returns the driver notification the change produces (if any).
       Persisting the pickup and delivering the notification are the
       caller's job.

State diagram:

    requested ──▶ approved ──▶ picked-up ──▶ active ──▶ returned
        │             │                         ├─────▶ lost
        └──▶ rejected ◀┘                        └─────▶ damaged

Edge side effects:
    → approved   qr_code + 6-digit verification_code (generated once),
                 approved_at, approved_by, return_date = approved_at + N days
    → rejected   rejection_reason
    → picked-up  picked_up_at
    → active     activation_barcode, activated_at
    → returned   actual_return_date
"""

import logging
import secrets
import string
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, Optional

from beyondtrips.config import settings
from beyondtrips.database import utcnow
from beyondtrips.exceptions import InvalidTransitionError, ValidationError
from beyondtrips.models.pickup import MagazinePickup, PickupStatus

logger = logging.getLogger(__name__)

S = PickupStatus

ALLOWED_TRANSITIONS: Dict[PickupStatus, FrozenSet[PickupStatus]] = {
    S.REQUESTED: frozenset({S.APPROVED, S.REJECTED}),
    S.APPROVED: frozenset({S.PICKED_UP, S.REJECTED}),
    S.PICKED_UP: frozenset({S.ACTIVE}),
    S.ACTIVE: frozenset({S.RETURNED, S.LOST, S.DAMAGED}),
    S.REJECTED: frozenset(),
    S.RETURNED: frozenset(),
    S.LOST: frozenset(),
    S.DAMAGED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in ALLOWED_TRANSITIONS.items() if not targets)

DEFAULT_REJECTION_REASON = (
    "Your magazine pickup request has been rejected. Please contact support."
)

_BASE36 = string.digits + string.ascii_uppercase


@dataclass(frozen=True)
class PickupNotice:
    """A driver notification produced by a transition."""

    title: str
    message: str
    priority: str
    type: str = "magazine"


def can_transition(current: str, target: str) -> bool:
    try:
        return PickupStatus(target) in ALLOWED_TRANSITIONS[PickupStatus(current)]
    except ValueError:
        return False


def generate_qr_code(now: datetime) -> str:
    """PICKUP-<epoch millis>-<7 random base36 chars>"""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(7))
    return f"PICKUP-{int(now.timestamp() * 1000)}-{suffix}"


def generate_verification_code() -> str:
    """Six digits, never starting with zero (100000-999999)."""
    return str(100000 + secrets.randbelow(900000))


def apply_transition(
    pickup: MagazinePickup,
    target: str,
    *,
    actor_id: Optional[uuid.UUID] = None,
    rejection_reason: Optional[str] = None,
    activation_barcode: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Optional[PickupNotice]:
    """
    Move `pickup` to `target`, stamping the fields that edge owns.

    Raises:
        InvalidTransitionError: edge not in ALLOWED_TRANSITIONS (includes
            same-status updates and anything leaving a terminal status)
        ValidationError: → active without an activation barcode
    """
    current = pickup.status
    if not can_transition(current, target):
        target_value = target.value if isinstance(target, PickupStatus) else target
        raise InvalidTransitionError(current=current, target=target_value)

    target_status = PickupStatus(target)
    now = now or utcnow()
    notice: Optional[PickupNotice] = None

    if target_status is S.APPROVED:
        if pickup.qr_code is None:
            pickup.qr_code = generate_qr_code(now)
        if pickup.verification_code is None:
            pickup.verification_code = generate_verification_code()
        pickup.approved_at = now
        pickup.approved_by = actor_id
        pickup.return_date = now + timedelta(days=settings.pickup_return_days)
        notice = PickupNotice(
            title="Magazine Pickup Approved",
            message=(
                "Your magazine pickup request has been approved. "
                f"Pickup code: {pickup.verification_code}. "
                f"Please pick up within {settings.pickup_window_days} days."
            ),
            priority="high",
        )

    elif target_status is S.REJECTED:
        pickup.rejection_reason = (rejection_reason or "").strip() or DEFAULT_REJECTION_REASON
        notice = PickupNotice(
            title="Magazine Pickup Rejected",
            message=pickup.rejection_reason,
            priority="high",
        )

    elif target_status is S.PICKED_UP:
        pickup.picked_up_at = now

    elif target_status is S.ACTIVE:
        if not activation_barcode:
            raise ValidationError(
                message="An activation barcode is required to activate a magazine",
                field="barcode",
            )
        pickup.activation_barcode = activation_barcode
        pickup.activated_at = now

    elif target_status is S.RETURNED:
        pickup.actual_return_date = now
        notice = PickupNotice(
            title="Magazine Returned Successfully",
            message="Thank you for returning the magazines. Your earnings will be processed soon.",
            priority="medium",
        )

    pickup.status = target_status.value
    logger.info("Pickup %s: %s → %s", pickup.id, current, target_status.value)
    return notice
