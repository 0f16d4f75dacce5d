"""
Beyond Trips Backend — Review Intake Service Tests
==================================================

What:  Tests for rider scans and review submission against a real (SQLite)
       database session.
How:   Seed fixtures from conftest.py; the service is called directly.

What we test:
    ✅ Scan resolves the barcode to the carrying driver and records the scan
    ✅ Scan of unknown, unpublished or non-activated magazines
    ✅ Same-device rescan inside the cool-down → ScanCooldownError with the time left
    ✅ Rating bounds, rater name, duplicate device / e-mail
    ✅ Unique constraints catch duplicates the lookup misses
    ✅ Review without device or e-mail is never a duplicate
    ✅ Successful review awards exactly one coin and flags the review
"""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select

from beyondtrips.config import settings
from beyondtrips.database import utcnow
from beyondtrips.exceptions import (
    DuplicateSubmissionError,
    NotFoundError,
    ScanCooldownError,
    ValidationError,
)
from beyondtrips.models.notification import SideEffectTask
from beyondtrips.models.pickup import PickupStatus
from beyondtrips.models.rating import DriverRating, RiderScan
from beyondtrips.models.reward import BTLCoinAward, DriverEarning
from beyondtrips.schemas.rider import SubmitReviewRequest
from beyondtrips.services import duplicate_guard
from beyondtrips.services.review_intake import ReviewIntakeService

TEST_BARCODE = "TEST-MAG-BTL-2025"


def _review(**overrides) -> SubmitReviewRequest:
    data = {
        "barcode": TEST_BARCODE,
        "rating": 5,
        "review": "Great ride, clean car",
        "rater_name": "Chioma",
        "rater_email": "Chioma@Example.com",
        "device_fingerprint": "device-abc",
    }
    data.update(overrides)
    return SubmitReviewRequest(**data)


async def _count(db, model, *where) -> int:
    return (await db.execute(select(func.count()).select_from(model).where(*where))).scalar()


class TestScanMagazine:

    def setup_method(self):
        self.service = ReviewIntakeService()

    @pytest.mark.asyncio
    async def test_scan_resolves_driver(self, db_session, active_pickup, driver, magazine):
        result = await self.service.scan_magazine(db_session, TEST_BARCODE, "device-1")

        assert result.driver.id == driver.id
        assert result.driver.name == "Tunde Bakare"
        assert result.magazine_id == magazine.id
        assert result.magazine_barcode == TEST_BARCODE
        assert await _count(db_session, RiderScan) == 1

    @pytest.mark.asyncio
    async def test_scan_requires_barcode(self, db_session):
        with pytest.raises(ValidationError):
            await self.service.scan_magazine(db_session, "   ")

    @pytest.mark.asyncio
    async def test_scan_unknown_barcode(self, db_session, active_pickup):
        with pytest.raises(NotFoundError):
            await self.service.scan_magazine(db_session, "NOPE-404")

    @pytest.mark.asyncio
    async def test_scan_unpublished_magazine(self, db_session, make_magazine, make_pickup, driver):
        draft = await make_magazine(barcode="DRAFT-1", is_published=False)
        await make_pickup(driver, draft, PickupStatus.ACTIVE.value)
        with pytest.raises(ValidationError) as exc_info:
            await self.service.scan_magazine(db_session, "DRAFT-1")
        assert exc_info.value.message == "Magazine not active"

    @pytest.mark.asyncio
    async def test_scan_not_activated(self, db_session, approved_pickup):
        with pytest.raises(ValidationError) as exc_info:
            await self.service.scan_magazine(db_session, TEST_BARCODE)
        assert exc_info.value.message == "Magazine not activated"

    @pytest.mark.asyncio
    async def test_rescan_inside_cooldown(self, db_session, active_pickup):
        await self.service.scan_magazine(db_session, TEST_BARCODE, "device-1")
        with pytest.raises(ScanCooldownError) as exc_info:
            await self.service.scan_magazine(db_session, TEST_BARCODE, "device-1")
        assert exc_info.value.retry_after > 0

        # Another device is unaffected
        await self.service.scan_magazine(db_session, TEST_BARCODE, "device-2")

    @pytest.mark.asyncio
    async def test_cooldown_reports_time_left_from_newest_scan(
        self, db_session, active_pickup, driver, magazine
    ):
        now = utcnow()
        for seconds_ago in (250, 200):
            db_session.add(
                RiderScan(
                    driver_id=driver.id,
                    magazine_id=magazine.id,
                    magazine_barcode=TEST_BARCODE,
                    device_fingerprint="device-1",
                    created_at=now - timedelta(seconds=seconds_ago),
                )
            )
        await db_session.flush()

        with pytest.raises(ScanCooldownError) as exc_info:
            await self.service.scan_magazine(db_session, TEST_BARCODE, "device-1")

        expected = settings.scan_cooldown_seconds - 200
        assert expected - 2 <= exc_info.value.retry_after <= expected + 1
        assert exc_info.value.headers == {"Retry-After": str(exc_info.value.retry_after)}

    @pytest.mark.asyncio
    async def test_rescan_after_cooldown(self, db_session, active_pickup, driver, magazine):
        db_session.add(
            RiderScan(
                driver_id=driver.id,
                magazine_id=magazine.id,
                magazine_barcode=TEST_BARCODE,
                device_fingerprint="device-1",
                created_at=utcnow() - timedelta(hours=2),
            )
        )
        await db_session.flush()

        await self.service.scan_magazine(db_session, TEST_BARCODE, "device-1")
        assert await _count(db_session, RiderScan) == 2

    @pytest.mark.asyncio
    async def test_scan_without_device_has_no_cooldown(self, db_session, active_pickup):
        await self.service.scan_magazine(db_session, TEST_BARCODE)
        await self.service.scan_magazine(db_session, TEST_BARCODE)
        assert await _count(db_session, RiderScan) == 2


class TestSubmitReview:

    def setup_method(self):
        self.service = ReviewIntakeService()

    @pytest.mark.asyncio
    async def test_review_awards_one_coin(self, db_session, active_pickup, driver):
        result = await self.service.submit_review(db_session, _review())

        assert result.btl_coin_awarded is True
        review = await db_session.get(DriverRating, result.id)
        assert review.rater_email == "chioma@example.com"
        assert review.btl_coin_awarded is True
        assert await _count(db_session, BTLCoinAward, BTLCoinAward.review_id == result.id) == 1
        earning = (await db_session.execute(select(DriverEarning))).scalar_one()
        assert earning.driver_id == driver.id
        assert earning.points == 1
        assert earning.amount == 500
        # counters, notification, admin log
        assert await _count(db_session, SideEffectTask) == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rating", [0, 6, -1])
    async def test_rating_out_of_range(self, db_session, active_pickup, rating):
        with pytest.raises(ValidationError) as exc_info:
            await self.service.submit_review(db_session, _review(rating=rating))
        assert exc_info.value.field == "rating"
        assert await _count(db_session, DriverRating) == 0

    @pytest.mark.asyncio
    async def test_blank_rater_name(self, db_session, active_pickup):
        with pytest.raises(ValidationError):
            await self.service.submit_review(db_session, _review(rater_name="  "))

    @pytest.mark.asyncio
    async def test_unknown_barcode(self, db_session, active_pickup):
        with pytest.raises(NotFoundError):
            await self.service.submit_review(db_session, _review(barcode="UNKNOWN"))

    @pytest.mark.asyncio
    async def test_not_activated(self, db_session, picked_up_pickup):
        with pytest.raises(ValidationError) as exc_info:
            await self.service.submit_review(db_session, _review())
        assert exc_info.value.message == "Magazine not activated"

    @pytest.mark.asyncio
    async def test_duplicate_device(self, db_session, active_pickup):
        await self.service.submit_review(db_session, _review())
        with pytest.raises(DuplicateSubmissionError) as exc_info:
            await self.service.submit_review(db_session, _review(rater_email="other@example.com"))
        assert exc_info.value.identifier == "device"

    @pytest.mark.asyncio
    async def test_duplicate_email_case_insensitive(self, db_session, active_pickup):
        await self.service.submit_review(db_session, _review())
        with pytest.raises(DuplicateSubmissionError) as exc_info:
            await self.service.submit_review(
                db_session, _review(device_fingerprint="device-xyz", rater_email="CHIOMA@example.com")
            )
        assert exc_info.value.identifier == "email"

    @pytest.mark.asyncio
    async def test_unique_constraint_stops_device_duplicate_past_lookup(self, db_session, active_pickup):
        await self.service.submit_review(db_session, _review())

        with patch.object(duplicate_guard, "find_duplicate_review", AsyncMock(return_value=None)):
            with pytest.raises(DuplicateSubmissionError) as exc_info:
                await self.service.submit_review(db_session, _review(rater_email="other@example.com"))

        assert exc_info.value.identifier == "device"
        assert await _count(db_session, DriverRating) == 1
        assert await _count(db_session, BTLCoinAward) == 1
        assert await _count(db_session, DriverEarning) == 1

    @pytest.mark.asyncio
    async def test_unique_constraint_stops_email_duplicate_past_lookup(self, db_session, active_pickup):
        await self.service.submit_review(db_session, _review())

        with patch.object(duplicate_guard, "find_duplicate_review", AsyncMock(return_value=None)):
            with pytest.raises(DuplicateSubmissionError) as exc_info:
                await self.service.submit_review(db_session, _review(device_fingerprint="device-xyz"))

        assert exc_info.value.identifier == "email"
        assert await _count(db_session, DriverRating) == 1
        assert await _count(db_session, BTLCoinAward) == 1

    @pytest.mark.asyncio
    async def test_anonymous_reviews_are_not_duplicates(self, db_session, active_pickup):
        first = await self.service.submit_review(
            db_session, _review(device_fingerprint=None, rater_email=None)
        )
        second = await self.service.submit_review(
            db_session, _review(device_fingerprint=None, rater_email=None)
        )
        assert first.id != second.id
        assert await _count(db_session, BTLCoinAward) == 2

    @pytest.mark.asyncio
    async def test_different_devices_without_email_both_succeed(self, db_session, active_pickup):
        first = await self.service.submit_review(
            db_session, _review(device_fingerprint="phone-1", rater_email=None)
        )
        second = await self.service.submit_review(
            db_session, _review(device_fingerprint="phone-2", rater_email=None)
        )
        assert first.btl_coin_awarded and second.btl_coin_awarded
        assert await _count(db_session, DriverRating) == 2

    @pytest.mark.asyncio
    async def test_review_of_unpublished_magazine_is_accepted(
        self, db_session, make_magazine, make_pickup, driver
    ):
        archived = await make_magazine(barcode="OLD-ED-1", is_published=False, status="archived")
        await make_pickup(driver, archived, PickupStatus.ACTIVE.value)

        result = await self.service.submit_review(db_session, _review(barcode="OLD-ED-1"))
        assert result.btl_coin_awarded is True
