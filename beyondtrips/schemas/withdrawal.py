"""
Beyond Trips Backend — Withdrawal Schemas
=========================================

What:  Driver payout requests, the admin status update, and the balance a
       driver can still withdraw.
How:   Types only; the amount floor, balance and account number format are
       checked by the withdrawal service so they answer with a field-level
       validation_error.
"""

import uuid
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import Field, StrictInt

from beyondtrips.models.withdrawal import WithdrawalStatus
from beyondtrips.schemas.common import ApiModel, Pagination


class BankDetails(ApiModel):
    bank_name: str
    account_name: str
    account_number: str = Field(description="NUBAN, 10 or more digits")


class WithdrawalCreateRequest(ApiModel):
    amount: StrictInt = Field(description="Whole NGN")
    # Falls back to the account of the driver's previous withdrawal
    bank_details: Optional[BankDetails] = None
    reason: Optional[str] = None


class WithdrawalUpdateRequest(ApiModel):
    status: WithdrawalStatus
    admin_notes: Optional[str] = None
    transaction_id: Optional[str] = Field(default=None, max_length=128)


class WithdrawalBalance(ApiModel):
    total_earnings: int
    withdrawn: int
    # pending, approved and processing requests
    pending_withdrawals: int
    available_balance: int
    minimum_withdrawal: int
    can_withdraw: bool
    currency: str


class WithdrawalResponse(ApiModel):
    id: uuid.UUID
    amount: int
    currency: str
    status: str
    bank_name: str
    account_name: str
    account_number: str
    reason: Optional[str] = None
    transaction_id: Optional[str] = None
    created_at: datetime
    processed_at: Optional[datetime] = None


class AdminWithdrawalResponse(WithdrawalResponse):
    driver_id: uuid.UUID
    admin_notes: Optional[str] = None
    processed_by: Optional[uuid.UUID] = None


class WithdrawalCreatedResponse(ApiModel):
    success: bool = True
    message: str = "Withdrawal request submitted successfully"
    withdrawal: WithdrawalResponse
    available_balance: int


class WithdrawalListResponse(ApiModel):
    success: bool = True
    withdrawals: List[WithdrawalResponse]
    balance: WithdrawalBalance
    pagination: Pagination


class AdminWithdrawalListResponse(ApiModel):
    success: bool = True
    withdrawals: List[AdminWithdrawalResponse]
    # status → number of withdrawals, over all drivers
    counts: Dict[str, int]
    pagination: Pagination
