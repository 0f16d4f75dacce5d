"""
Beyond Trips Backend — Rider Request/Response Schemas
=====================================================

What:  Contracts of the two public rider endpoints (scan-magazine and
       submit-review).
How:   Types are enforced here; business ranges (rating 1-5, non-empty name)
       are enforced by the intake service so that every violation surfaces
       as the same 400 validation_error.
"""

import uuid
from typing import Optional

from pydantic import Field, StrictInt

from beyondtrips.schemas.common import ApiModel


class ScanMagazineRequest(ApiModel):
    barcode: str = Field(description="Barcode printed on the driver's magazine copy")
    device_fingerprint: Optional[str] = Field(
        default=None, description="Stable identifier of the rider's device"
    )


class ScannedDriver(ApiModel):
    id: uuid.UUID
    first_name: str
    last_name: str
    name: str


class ScanResult(ApiModel):
    magazine_id: uuid.UUID
    magazine_title: str
    magazine_barcode: str
    driver: ScannedDriver


class ScanMagazineResponse(ApiModel):
    success: bool = True
    scan: ScanResult
    message: str = "Magazine scanned successfully. Please submit your review."


class SubmitReviewRequest(ApiModel):
    barcode: str
    # JSON true/false and "5" are refused, not coerced
    rating: StrictInt = Field(description="Star rating from 1 to 5")
    review: Optional[str] = Field(default=None, description="Written feedback")
    rater_name: str = Field(description="Name of the rider")
    rater_email: Optional[str] = None
    rater_phone: Optional[str] = None
    device_fingerprint: Optional[str] = None


class SubmittedRating(ApiModel):
    id: uuid.UUID
    rating: int
    btl_coin_awarded: bool


class SubmitReviewResponse(ApiModel):
    success: bool = True
    message: str = "Thank you for your feedback! Your input has been recorded successfully."
    rating: SubmittedRating
