"""
Beyond Trips Backend — Driver Withdrawal Service
================================================

What:  Drivers cash out their earnings; admins walk each request through
       approval and payout.
How:   The available balance is computed in SQL from the ledger and the
       withdrawals table on every request. Status changes go through
       `withdrawal_state.apply_transition()`, and the driver notification
       each one produces is queued inside a savepoint.
Who:   Called by routes/driver.py (request, history, balance) and
       routes/admin.py (listing, status updates).

Balance:
    available = Σ active earnings − Σ withdrawals not rejected

A request is refused when the available balance is below
`withdrawal_minimum_ngn` or smaller than the amount asked for. The driver's
user row is locked for the check so two concurrent requests cannot both
spend the same balance.
"""

import logging
import re
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from beyondtrips.config import settings
from beyondtrips.exceptions import NotFoundError, ValidationError
from beyondtrips.models.reward import DriverEarning
from beyondtrips.models.user import User, UserRole
from beyondtrips.models.withdrawal import (
    RESERVING_STATUSES,
    DriverWithdrawal,
    WithdrawalStatus,
)
from beyondtrips.schemas.common import Pagination
from beyondtrips.schemas.withdrawal import (
    BankDetails,
    WithdrawalBalance,
    WithdrawalCreateRequest,
    WithdrawalUpdateRequest,
)
from beyondtrips.services import task_queue, withdrawal_state

logger = logging.getLogger(__name__)

ACCOUNT_NUMBER = re.compile(r"^\d{10,}$")


@dataclass(frozen=True)
class Balance:
    total_earnings: int
    withdrawn: int
    pending: int

    @property
    def available(self) -> int:
        return self.total_earnings - self.withdrawn - self.pending

    def to_schema(self) -> WithdrawalBalance:
        return WithdrawalBalance(
            total_earnings=self.total_earnings,
            withdrawn=self.withdrawn,
            pending_withdrawals=self.pending,
            available_balance=self.available,
            minimum_withdrawal=settings.withdrawal_minimum_ngn,
            can_withdraw=self.available >= settings.withdrawal_minimum_ngn,
            currency=settings.btl_coin_currency,
        )


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


class WithdrawalService:
    """Stateless; the shared instance is `withdrawal_service`."""

    # ── Balance ───────────────────────────────────────────────────────────

    async def get_balance(self, db: AsyncSession, driver_id: uuid.UUID) -> Balance:
        earned = (
            await db.execute(
                select(func.coalesce(func.sum(DriverEarning.amount), 0)).where(
                    DriverEarning.driver_id == driver_id,
                    DriverEarning.status == "active",
                )
            )
        ).scalar() or 0
        rows = (
            await db.execute(
                select(DriverWithdrawal.status, func.sum(DriverWithdrawal.amount))
                .where(
                    DriverWithdrawal.driver_id == driver_id,
                    DriverWithdrawal.status.in_(RESERVING_STATUSES),
                )
                .group_by(DriverWithdrawal.status)
            )
        ).all()
        by_status = {status: int(total or 0) for status, total in rows}
        withdrawn = by_status.pop(WithdrawalStatus.COMPLETED.value, 0)
        return Balance(total_earnings=int(earned), withdrawn=withdrawn, pending=sum(by_status.values()))

    # ── Driver request ────────────────────────────────────────────────────

    async def request_withdrawal(
        self, db: AsyncSession, driver_id: uuid.UUID, data: WithdrawalCreateRequest
    ) -> Tuple[DriverWithdrawal, Balance]:
        """
        Create a pending withdrawal for the calling driver.

        Returns the withdrawal and the balance after it was reserved.

        Raises:
            NotFoundError: unknown driver account
            ValidationError: non-positive amount, missing or malformed bank
                details, balance under the minimum, or amount over the balance
        """
        if data.amount <= 0:
            raise ValidationError(message="Withdrawal amount must be greater than 0", field="amount")

        driver = await db.scalar(select(User).where(User.id == driver_id).with_for_update())
        if driver is None or driver.role != UserRole.DRIVER:
            raise NotFoundError(resource="driver", resource_id=str(driver_id))

        bank = data.bank_details or await self._previous_bank_details(db, driver_id)
        bank = self._validate_bank_details(bank)

        balance = await self.get_balance(db, driver_id)
        minimum = settings.withdrawal_minimum_ngn
        if balance.available < minimum:
            raise ValidationError(
                message=(
                    f"Insufficient balance. You have {withdrawal_state.naira(balance.available)}. "
                    f"Need {withdrawal_state.naira(minimum - balance.available)} more to reach "
                    f"the {withdrawal_state.naira(minimum)} minimum"
                ),
                field="amount",
                context={"availableBalance": balance.available, "minimumWithdrawal": minimum},
            )
        if data.amount > balance.available:
            raise ValidationError(
                message=(
                    f"Cannot withdraw {withdrawal_state.naira(data.amount)}. "
                    f"Your available balance is {withdrawal_state.naira(balance.available)}"
                ),
                field="amount",
                context={"availableBalance": balance.available},
            )

        withdrawal = DriverWithdrawal(
            driver_id=driver_id,
            amount=data.amount,
            currency=settings.btl_coin_currency,
            status=WithdrawalStatus.PENDING.value,
            bank_name=bank.bank_name,
            account_name=bank.account_name,
            account_number=bank.account_number,
            reason=_clean(data.reason) or None,
        )
        db.add(withdrawal)
        await db.flush()
        logger.info(
            "Withdrawal %s requested by driver %s: %d %s",
            withdrawal.id, driver_id, withdrawal.amount, withdrawal.currency,
        )

        await self._enqueue_notice(db, withdrawal, withdrawal_state.submitted_notice(withdrawal))
        after = Balance(
            total_earnings=balance.total_earnings,
            withdrawn=balance.withdrawn,
            pending=balance.pending + withdrawal.amount,
        )
        return withdrawal, after

    async def _previous_bank_details(
        self, db: AsyncSession, driver_id: uuid.UUID
    ) -> Optional[BankDetails]:
        last = await db.scalar(
            select(DriverWithdrawal)
            .where(DriverWithdrawal.driver_id == driver_id)
            .order_by(DriverWithdrawal.created_at.desc())
            .limit(1)
        )
        if last is None:
            return None
        return BankDetails(
            bank_name=last.bank_name,
            account_name=last.account_name,
            account_number=last.account_number,
        )

    @staticmethod
    def _validate_bank_details(bank: Optional[BankDetails]) -> BankDetails:
        if bank is None:
            raise ValidationError(message="Bank details are required", field="bankDetails")
        cleaned = BankDetails(
            bank_name=_clean(bank.bank_name),
            account_name=_clean(bank.account_name),
            account_number=_clean(bank.account_number),
        )
        if not (cleaned.bank_name and cleaned.account_name and cleaned.account_number):
            raise ValidationError(message="Bank details are required", field="bankDetails")
        if not ACCOUNT_NUMBER.match(cleaned.account_number):
            raise ValidationError(
                message="Invalid account number format (must be 10+ digits)",
                field="bankDetails.accountNumber",
            )
        return cleaned

    # ── Reads ─────────────────────────────────────────────────────────────

    async def get_withdrawal(
        self,
        db: AsyncSession,
        withdrawal_id: uuid.UUID,
        driver_id: Optional[uuid.UUID] = None,
    ) -> DriverWithdrawal:
        withdrawal = await db.get(DriverWithdrawal, withdrawal_id)
        if withdrawal is None or (driver_id is not None and withdrawal.driver_id != driver_id):
            raise NotFoundError(resource="withdrawal", resource_id=str(withdrawal_id))
        return withdrawal

    async def list_withdrawals(
        self,
        db: AsyncSession,
        driver_id: Optional[uuid.UUID] = None,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[DriverWithdrawal], Pagination]:
        """Newest first. Without `driver_id`, every driver's withdrawals."""
        filters = []
        if driver_id is not None:
            filters.append(DriverWithdrawal.driver_id == driver_id)
        if status:
            try:
                status = WithdrawalStatus(status).value
            except ValueError:
                raise ValidationError(message=f"Unknown withdrawal status '{status}'", field="status")
            filters.append(DriverWithdrawal.status == status)

        total = (
            await db.execute(select(func.count(DriverWithdrawal.id)).where(*filters))
        ).scalar() or 0
        withdrawals = list(
            (
                await db.execute(
                    select(DriverWithdrawal)
                    .where(*filters)
                    .order_by(DriverWithdrawal.created_at.desc())
                    .offset((page - 1) * limit)
                    .limit(limit)
                )
            ).scalars().all()
        )
        return withdrawals, Pagination.build(page=page, limit=limit, total_docs=total)

    async def count_by_status(self, db: AsyncSession) -> Dict[str, int]:
        rows = await db.execute(
            select(DriverWithdrawal.status, func.count(DriverWithdrawal.id)).group_by(
                DriverWithdrawal.status
            )
        )
        counts = {s.value: 0 for s in WithdrawalStatus}
        counts.update({status: count for status, count in rows.all()})
        return counts

    # ── Admin update ──────────────────────────────────────────────────────

    async def update_withdrawal(
        self,
        db: AsyncSession,
        withdrawal_id: uuid.UUID,
        data: WithdrawalUpdateRequest,
        actor_id: uuid.UUID,
    ) -> DriverWithdrawal:
        """
        Apply one admin status change and notify the driver.

        Raises:
            NotFoundError: unknown withdrawal
            InvalidTransitionError: status change not allowed from the current status
        """
        withdrawal = await self.get_withdrawal(db, withdrawal_id)
        notice = withdrawal_state.apply_transition(
            withdrawal,
            data.status,
            actor_id=actor_id,
            admin_notes=_clean(data.admin_notes) or None,
            transaction_id=_clean(data.transaction_id) or None,
        )
        await db.flush()
        await self._enqueue_notice(db, withdrawal, notice)
        return withdrawal

    # ── Notifications ─────────────────────────────────────────────────────

    async def _enqueue_notice(
        self,
        db: AsyncSession,
        withdrawal: DriverWithdrawal,
        notice: withdrawal_state.WithdrawalNotice,
    ) -> None:
        try:
            async with db.begin_nested():
                await task_queue.enqueue_driver_notification(
                    db,
                    driver_id=withdrawal.driver_id,
                    title=notice.title,
                    message=notice.message,
                    type=notice.type,
                    priority=notice.priority,
                )
        except Exception as e:
            logger.error(
                "Could not queue '%s' notification for withdrawal %s: %s",
                notice.title, withdrawal.id, str(e), exc_info=True,
            )


withdrawal_service = WithdrawalService()
