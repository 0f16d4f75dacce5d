"""
Beyond Trips Backend — Withdrawal State Machine
===============================================

What:  Which admin status changes a withdrawal may take and what each one
       records.
How:   `ALLOWED_TRANSITIONS` maps each status to its permitted targets.
       `apply_transition()` validates the edge, stamps the withdrawal and
       returns the driver notification for it. Persisting and delivering
       are the caller's job.

State diagram:

    pending ──▶ approved ──▶ processing ──▶ completed
       │            │
       └──▶ rejected ◀┘

Edge side effects:
    every edge   processed_by = acting admin; admin_notes and
                 transaction_id replaced when supplied
    → rejected   processed_at
    → completed  processed_at
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, FrozenSet, Optional

from beyondtrips.database import utcnow
from beyondtrips.exceptions import InvalidTransitionError
from beyondtrips.models.withdrawal import DriverWithdrawal, WithdrawalStatus

logger = logging.getLogger(__name__)

W = WithdrawalStatus

ALLOWED_TRANSITIONS: Dict[WithdrawalStatus, FrozenSet[WithdrawalStatus]] = {
    W.PENDING: frozenset({W.APPROVED, W.REJECTED}),
    W.APPROVED: frozenset({W.PROCESSING, W.REJECTED}),
    W.PROCESSING: frozenset({W.COMPLETED}),
    W.REJECTED: frozenset(),
    W.COMPLETED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in ALLOWED_TRANSITIONS.items() if not targets)

DEFAULT_REJECTION_MESSAGE = (
    "Your withdrawal request was rejected and the amount is back in your balance. "
    "Please contact support."
)


@dataclass(frozen=True)
class WithdrawalNotice:
    title: str
    message: str
    priority: str
    type: str = "withdrawal"


def naira(amount: int) -> str:
    return f"₦{amount:,}"


def can_transition(current: str, target: str) -> bool:
    try:
        return WithdrawalStatus(target) in ALLOWED_TRANSITIONS[WithdrawalStatus(current)]
    except ValueError:
        return False


def submitted_notice(withdrawal: DriverWithdrawal) -> WithdrawalNotice:
    """Sent to the driver when the request is created."""
    return WithdrawalNotice(
        title="Withdrawal Request Submitted",
        message=(
            f"Your withdrawal request for {naira(withdrawal.amount)} has been submitted. "
            "Status: Pending Admin Review"
        ),
        priority="high",
    )


def apply_transition(
    withdrawal: DriverWithdrawal,
    target: str,
    *,
    actor_id: Optional[uuid.UUID] = None,
    admin_notes: Optional[str] = None,
    transaction_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> WithdrawalNotice:
    """
    Move `withdrawal` to `target` and return the driver's notification.

    Raises:
        InvalidTransitionError: edge not in ALLOWED_TRANSITIONS
    """
    current = withdrawal.status
    if not can_transition(current, target):
        target_value = target.value if isinstance(target, WithdrawalStatus) else target
        raise InvalidTransitionError(current=current, target=target_value, resource="withdrawal")

    target_status = WithdrawalStatus(target)
    now = now or utcnow()
    amount = naira(withdrawal.amount)

    withdrawal.processed_by = actor_id
    if admin_notes:
        withdrawal.admin_notes = admin_notes
    if transaction_id:
        withdrawal.transaction_id = transaction_id
    if target_status in TERMINAL_STATUSES:
        withdrawal.processed_at = now

    if target_status is W.APPROVED:
        notice = WithdrawalNotice(
            title="Withdrawal Approved",
            message=f"Your withdrawal of {amount} has been approved and will be paid out shortly.",
            priority="high",
        )
    elif target_status is W.REJECTED:
        # admin_notes stay internal; the driver gets the stock message
        notice = WithdrawalNotice(
            title="Withdrawal Rejected",
            message=DEFAULT_REJECTION_MESSAGE,
            priority="high",
        )
    elif target_status is W.PROCESSING:
        notice = WithdrawalNotice(
            title="Withdrawal Processing",
            message=(
                f"Your withdrawal of {amount} is being paid to your {withdrawal.bank_name} "
                f"account ending {withdrawal.account_number[-4:]}."
            ),
            priority="medium",
        )
    else:
        reference = f" Reference: {withdrawal.transaction_id}." if withdrawal.transaction_id else ""
        notice = WithdrawalNotice(
            title="Withdrawal Completed",
            message=f"{amount} has been paid to your bank account.{reference}",
            priority="high",
        )

    withdrawal.status = target_status.value
    logger.info("Withdrawal %s: %s → %s", withdrawal.id, current, target_status.value)
    return notice
