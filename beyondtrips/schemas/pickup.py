"""
Beyond Trips Backend — Magazine Pickup Schemas
==============================================

What:  Request bodies and response shapes for pickup management and driver
       magazine activation.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from beyondtrips.models.pickup import PickupStatus
from beyondtrips.schemas.common import ApiModel, Pagination


class PickupCreateRequest(ApiModel):
    magazine_id: uuid.UUID
    quantity: int = Field(default=1, ge=1, le=1000)
    location_name: Optional[str] = Field(default=None, max_length=255)
    location_address: Optional[str] = None
    notes: Optional[str] = None


class PickupUpdateRequest(ApiModel):
    """Admin update. `status` drives the pickup state machine."""

    status: Optional[PickupStatus] = None
    rejection_reason: Optional[str] = None
    admin_notes: Optional[str] = None
    # Required when status is "active"; must equal the magazine barcode
    activation_barcode: Optional[str] = None


class ActivateMagazineRequest(ApiModel):
    barcode: str
    pickup_id: Optional[uuid.UUID] = None


class PickupResponse(ApiModel):
    id: uuid.UUID
    driver_id: uuid.UUID
    magazine_id: uuid.UUID
    quantity: int
    status: str
    location_name: Optional[str] = None
    location_address: Optional[str] = None
    notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    qr_code: Optional[str] = None
    verification_code: Optional[str] = None
    activation_barcode: Optional[str] = None
    rider_scans: int
    btl_coins_earned: int
    requested_at: datetime
    approved_at: Optional[datetime] = None
    return_date: Optional[datetime] = None
    picked_up_at: Optional[datetime] = None
    activated_at: Optional[datetime] = None
    actual_return_date: Optional[datetime] = None


class AdminPickupResponse(PickupResponse):
    admin_notes: Optional[str] = None
    approved_by: Optional[uuid.UUID] = None


class PickupListResponse(ApiModel):
    pickups: List[PickupResponse]
    pagination: Pagination


class ActivatedMagazine(ApiModel):
    id: uuid.UUID
    title: str
    edition_number: Optional[int] = None


class ActivateMagazineResponse(ApiModel):
    success: bool = True
    message: str = "Magazine activated successfully"
    pickup: PickupResponse
    magazine: ActivatedMagazine
