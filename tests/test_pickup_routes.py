"""
Beyond Trips Backend — Magazine Pickup API Tests
================================================

What:  HTTP-level tests of /api/magazine-pickups/* and driver activation.

What we test:
    ✅ Identity headers: 401 without or with malformed identity, 403 wrong role
    ✅ Driver requests a pickup; unknown / unavailable magazines are refused
    ✅ Admin approve, reject, full custody chain and the driver notifications
    ✅ Disallowed status changes answer 409 (requested → active among them)
    ✅ Driver activation by barcode, including the repeat activation 409
    ✅ Visibility: drivers only ever see their own pickups
"""

import pytest

from beyondtrips.models.pickup import PickupStatus
from beyondtrips.models.user import UserRole

BARCODE = "TEST-MAG-BTL-2025"
PICKUPS_URL = "/api/magazine-pickups"
ACTIVATE_URL = "/api/driver/magazines/activate"


def _headers(user_id, role):
    return {"X-User-ID": str(user_id), "X-User-Role": role}


class TestAuthentication:

    @pytest.mark.asyncio
    async def test_missing_identity_401(self, test_client):
        response = await test_client.get(PICKUPS_URL)
        assert response.status_code == 401
        assert response.json()["message"] == "Unauthorized - Please log in"

    @pytest.mark.asyncio
    async def test_malformed_identity_401(self, test_client):
        response = await test_client.get(PICKUPS_URL, headers=_headers("not-a-uuid", "driver"))
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_role_401(self, test_client, driver):
        response = await test_client.get(PICKUPS_URL, headers=_headers(driver.id, "superuser"))
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_driver_cannot_update_pickup_403(self, test_client, driver_headers, approved_pickup):
        response = await test_client.patch(
            f"{PICKUPS_URL}/{approved_pickup.id}", json={"status": "picked-up"}, headers=driver_headers
        )
        assert response.status_code == 403
        assert response.json()["error"] == "forbidden"

    @pytest.mark.asyncio
    async def test_admin_cannot_activate_403(self, test_client, admin_headers):
        response = await test_client.post(ACTIVATE_URL, json={"barcode": BARCODE}, headers=admin_headers)
        assert response.status_code == 403
        assert response.json()["message"] == "Unauthorized - Driver access only"


class TestRequestPickup:

    @pytest.mark.asyncio
    async def test_driver_requests_pickup(self, test_client, driver, driver_headers, magazine):
        response = await test_client.post(
            PICKUPS_URL,
            json={"magazineId": str(magazine.id), "quantity": 25, "locationName": "Ikeja hub"},
            headers=driver_headers,
        )
        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "requested"
        assert body["driverId"] == str(driver.id)
        assert body["quantity"] == 25
        assert body["qrCode"] is None
        assert body["riderScans"] == 0

    @pytest.mark.asyncio
    async def test_unknown_magazine_404(self, test_client, driver_headers):
        response = await test_client.post(
            PICKUPS_URL,
            json={"magazineId": "00000000-0000-0000-0000-000000000000"},
            headers=driver_headers,
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_archived_magazine_400(self, test_client, driver_headers, make_magazine):
        archived = await make_magazine(barcode="ARCHIVED-1", status="archived")
        response = await test_client.post(
            PICKUPS_URL, json={"magazineId": str(archived.id)}, headers=driver_headers
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_invalid_quantity_400(self, test_client, driver_headers, magazine):
        response = await test_client.post(
            PICKUPS_URL, json={"magazineId": str(magazine.id), "quantity": 0}, headers=driver_headers
        )
        assert response.status_code == 400


class TestAdminUpdates:

    @pytest.mark.asyncio
    async def test_approve_generates_codes_and_notifies(
        self, test_client, make_pickup, driver, magazine, admin_user, admin_headers, driver_headers
    ):
        pickup = await make_pickup(driver, magazine)

        response = await test_client.patch(
            f"{PICKUPS_URL}/{pickup.id}", json={"status": "approved"}, headers=admin_headers
        )
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "approved"
        assert body["qrCode"].startswith("PICKUP-")
        assert len(body["verificationCode"]) == 6
        assert body["approvedBy"] == str(admin_user.id)
        assert body["returnDate"] is not None

        inbox = await test_client.get("/api/driver/notifications", headers=driver_headers)
        notifications = inbox.json()["notifications"]
        assert [n["title"] for n in notifications] == ["Magazine Pickup Approved"]
        assert body["verificationCode"] in notifications[0]["message"]
        assert notifications[0]["priority"] == "high"

    @pytest.mark.asyncio
    async def test_requested_to_active_409(self, test_client, make_pickup, driver, magazine, admin_headers):
        pickup = await make_pickup(driver, magazine)
        response = await test_client.patch(
            f"{PICKUPS_URL}/{pickup.id}",
            json={"status": "active", "activationBarcode": BARCODE},
            headers=admin_headers,
        )
        assert response.status_code == 409
        assert response.json()["error"] == "invalid_transition"
        assert response.json()["details"] == {"current": "requested", "target": "active"}

    @pytest.mark.asyncio
    async def test_reject_is_terminal(self, test_client, make_pickup, driver, magazine, admin_headers, driver_headers):
        pickup = await make_pickup(driver, magazine)
        url = f"{PICKUPS_URL}/{pickup.id}"

        rejected = await test_client.patch(
            url, json={"status": "rejected", "rejectionReason": "No stock at this hub"}, headers=admin_headers
        )
        assert rejected.status_code == 200
        assert rejected.json()["rejectionReason"] == "No stock at this hub"

        again = await test_client.patch(url, json={"status": "approved"}, headers=admin_headers)
        assert again.status_code == 409

        inbox = await test_client.get("/api/driver/notifications", headers=driver_headers)
        assert inbox.json()["notifications"][0]["message"] == "No stock at this hub"

    @pytest.mark.asyncio
    async def test_custody_chain(self, test_client, approved_pickup, admin_headers):
        url = f"{PICKUPS_URL}/{approved_pickup.id}"

        picked = await test_client.patch(url, json={"status": "picked-up"}, headers=admin_headers)
        assert picked.status_code == 200
        assert picked.json()["pickedUpAt"] is not None

        wrong = await test_client.patch(
            url, json={"status": "active", "activationBarcode": "OTHER"}, headers=admin_headers
        )
        assert wrong.status_code == 400

        active = await test_client.patch(
            url, json={"status": "active", "activationBarcode": BARCODE}, headers=admin_headers
        )
        assert active.status_code == 200
        assert active.json()["activationBarcode"] == BARCODE

        returned = await test_client.patch(url, json={"status": "returned"}, headers=admin_headers)
        assert returned.status_code == 200
        assert returned.json()["actualReturnDate"] is not None

    @pytest.mark.asyncio
    async def test_admin_notes_without_status(self, test_client, approved_pickup, admin_headers):
        response = await test_client.patch(
            f"{PICKUPS_URL}/{approved_pickup.id}", json={"adminNotes": "Call before 10am"}, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["adminNotes"] == "Call before 10am"
        assert response.json()["status"] == "approved"

    @pytest.mark.asyncio
    async def test_unknown_status_value_400(self, test_client, approved_pickup, admin_headers):
        response = await test_client.patch(
            f"{PICKUPS_URL}/{approved_pickup.id}", json={"status": "shipped"}, headers=admin_headers
        )
        assert response.status_code == 400


class TestVisibility:

    @pytest.mark.asyncio
    async def test_drivers_see_only_their_pickups(
        self, test_client, make_user, make_pickup, driver, magazine, driver_headers, admin_headers
    ):
        other = await make_user(first_name="Bola", last_name="Ade")
        mine = await make_pickup(driver, magazine)
        theirs = await make_pickup(other, magazine)

        own_list = await test_client.get(PICKUPS_URL, headers=driver_headers)
        assert [p["id"] for p in own_list.json()["pickups"]] == [str(mine.id)]
        assert own_list.json()["pagination"]["totalDocs"] == 1

        all_list = await test_client.get(PICKUPS_URL, headers=admin_headers)
        assert all_list.json()["pagination"]["totalDocs"] == 2

        hidden = await test_client.get(f"{PICKUPS_URL}/{theirs.id}", headers=driver_headers)
        assert hidden.status_code == 404

        admin_view = await test_client.get(f"{PICKUPS_URL}/{theirs.id}", headers=admin_headers)
        assert admin_view.status_code == 200
        assert "adminNotes" in admin_view.json()

        driver_view = await test_client.get(f"{PICKUPS_URL}/{mine.id}", headers=driver_headers)
        assert "adminNotes" not in driver_view.json()

    @pytest.mark.asyncio
    async def test_status_filter(self, test_client, make_pickup, driver, magazine, admin_headers):
        await make_pickup(driver, magazine)
        await make_pickup(driver, magazine, PickupStatus.APPROVED.value)

        response = await test_client.get(PICKUPS_URL, params={"status": "approved"}, headers=admin_headers)
        assert [p["status"] for p in response.json()["pickups"]] == ["approved"]

        bad = await test_client.get(PICKUPS_URL, params={"status": "flying"}, headers=admin_headers)
        assert bad.status_code == 400


class TestDriverActivation:

    @pytest.mark.asyncio
    async def test_activate_picked_up_copy(self, test_client, picked_up_pickup, driver_headers, magazine):
        response = await test_client.post(ACTIVATE_URL, json={"barcode": BARCODE}, headers=driver_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["pickup"]["id"] == str(picked_up_pickup.id)
        assert body["pickup"]["status"] == "active"
        assert body["pickup"]["activationBarcode"] == BARCODE
        assert body["magazine"]["id"] == str(magazine.id)

        again = await test_client.post(ACTIVATE_URL, json={"barcode": BARCODE}, headers=driver_headers)
        assert again.status_code == 409
        assert again.json()["message"] == "You have already activated this magazine edition"

    @pytest.mark.asyncio
    async def test_activation_makes_magazine_scannable(self, test_client, picked_up_pickup, driver_headers):
        before = await test_client.post("/api/public/rider/scan-magazine", json={"barcode": BARCODE})
        assert before.status_code == 400

        await test_client.post(ACTIVATE_URL, json={"barcode": BARCODE}, headers=driver_headers)

        after = await test_client.post("/api/public/rider/scan-magazine", json={"barcode": BARCODE})
        assert after.status_code == 200

    @pytest.mark.asyncio
    async def test_unknown_barcode_404(self, test_client, picked_up_pickup, driver_headers):
        response = await test_client.post(ACTIVATE_URL, json={"barcode": "NOPE"}, headers=driver_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_approved_only_copy_404(self, test_client, approved_pickup, driver_headers):
        response = await test_client.post(ACTIVATE_URL, json={"barcode": BARCODE}, headers=driver_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_blank_barcode_400(self, test_client, driver_headers):
        response = await test_client.post(ACTIVATE_URL, json={"barcode": "  "}, headers=driver_headers)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_other_drivers_pickup_id_404(
        self, test_client, make_user, make_pickup, magazine, driver_headers
    ):
        other = await make_user(first_name="Bola", last_name="Ade")
        theirs = await make_pickup(other, magazine, PickupStatus.PICKED_UP.value)
        response = await test_client.post(
            ACTIVATE_URL, json={"barcode": BARCODE, "pickupId": str(theirs.id)}, headers=driver_headers
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_advertiser_role_is_refused(self, test_client, make_user):
        advertiser = await make_user(role=UserRole.ADVERTISER)
        response = await test_client.get(PICKUPS_URL, headers=_headers(advertiser.id, "advertiser"))
        assert response.status_code == 403
