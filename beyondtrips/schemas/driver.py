"""
Beyond Trips Backend — Driver Dashboard Schemas
===============================================

What:  BTL coin history, rating and earnings summaries, and notifications as
       shown in the driver dashboard.
"""

import uuid
from datetime import datetime
from typing import Dict, List, Optional

from beyondtrips.schemas.common import ApiModel, Pagination


class BTLCoinAwardItem(ApiModel):
    id: uuid.UUID
    amount: int
    awarded_at: datetime
    rider_name: Optional[str] = None
    status: str


class BTLCoinSummary(ApiModel):
    total: int
    total_earnings: int
    awards: List[BTLCoinAwardItem]


class DriverBTLCoinsResponse(ApiModel):
    success: bool = True
    btl_coins: BTLCoinSummary
    pagination: Pagination


class RatingSummaryResponse(ApiModel):
    average_rating: float
    total_ratings: int
    # "1" .. "5" → count
    breakdown: Dict[str, int]
    btl_coin_reviews: int


class EarningsSummaryResponse(ApiModel):
    total_amount: int
    total_points: int
    entries: int
    btl_coin_amount: int
    withdrawn: int
    pending_withdrawals: int
    available_balance: int
    currency: str


class NotificationItem(ApiModel):
    id: uuid.UUID
    type: str
    title: str
    message: str
    is_read: bool
    priority: str
    created_at: datetime
    read_at: Optional[datetime] = None


class NotificationListResponse(ApiModel):
    success: bool = True
    notifications: List[NotificationItem]
    unread_count: int
    pagination: Pagination


class MarkAllReadResponse(ApiModel):
    success: bool = True
    updated: int
