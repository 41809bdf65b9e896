"""
End-to-end tests for the HTTP API: auth, envelope, role gating and the
reservation -> deposit -> cleaning -> payout flow.
"""
import unittest

from tests._support import PASSWORD, ApiTestCase, day

from homestay.models import Role

API = "/api/v1"

# 1x1 transparent PNG
PNG_BYTES = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06\x00\x00\x00\x1f\x15\xc4\x89"
    b"\x00\x00\x00\rIDATx\x9cc\xf8\x0f\x00\x00\x01\x01\x00\x05\x18\xd8N\x00\x00\x00\x00IEND\xaeB`\x82"
)


class ApiEndToEndTests(ApiTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.admin = await self.make_user(Role.ADMIN, email="admin@homestay.com")
        self.agent = await self.make_user(Role.AGENT, email="agent@homestay.com")
        self.finance = await self.make_user(Role.FINANCE, email="finance@homestay.com")
        self.cleaner = await self.make_user(Role.CLEANER, email="cleaner@homestay.com")

    async def create_unit_and_guest(self):
        response = await self.client.post(
            f"{API}/units",
            json={"name": "Ocean View Villa", "code": "ovv001"},
            headers=self.auth_headers(self.admin),
        )
        self.assertEqual(response.status_code, 201, response.text)
        unit = response.json()["data"]

        response = await self.client.post(
            f"{API}/guests",
            json={"full_name": "Alice Johnson", "email": "alice@homestay.com"},
            headers=self.auth_headers(self.agent),
        )
        self.assertEqual(response.status_code, 201, response.text)
        return unit, response.json()["data"]

    async def test_health(self):
        response = await self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "healthy")

        response = await self.client.get("/health/detailed")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["database"], "connected")

    async def test_login_and_me(self):
        response = await self.client.post(
            f"{API}/auth/login", json={"email": "agent@homestay.com", "password": PASSWORD}
        )
        self.assertEqual(response.status_code, 200, response.text)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["data"]["user"]["role"], "AGENT")
        self.assertNotIn("password_hash", body["data"]["user"])

        token = body["data"]["access_token"]
        response = await self.client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["email"], "agent@homestay.com")

        response = await self.client.post(
            f"{API}/auth/refresh", json={"refresh_token": body["data"]["refresh_token"]}
        )
        self.assertEqual(response.status_code, 200)
        self.assertIn("access_token", response.json()["data"])

    async def test_error_envelopes(self):
        response = await self.client.post(
            f"{API}/auth/login", json={"email": "agent@homestay.com", "password": "wrong"}
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"success": False, "error": "Invalid credentials"})

        response = await self.client.get(f"{API}/reservations")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"], "Access token required")

        response = await self.client.get(
            f"{API}/reservations", headers={"Authorization": "Bearer not-a-token"}
        )
        self.assertEqual(response.status_code, 401)

        response = await self.client.post(
            f"{API}/guests", json={"email": "not-an-email"}, headers=self.auth_headers(self.agent)
        )
        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertFalse(body["success"])
        self.assertEqual(body["error"], "Validation error")
        self.assertTrue(body["details"])

        response = await self.client.get(
            f"{API}/units/00000000-0000-0000-0000-000000000000", headers=self.auth_headers(self.agent)
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"], "Unit not found")

    async def test_role_gating(self):
        cleaner = self.auth_headers(self.cleaner)
        self.assertEqual((await self.client.get(f"{API}/reservations", headers=cleaner)).status_code, 403)
        self.assertEqual((await self.client.get(f"{API}/finance/dashboard", headers=cleaner)).status_code, 403)
        self.assertEqual((await self.client.get(f"{API}/cleanings/my-tasks", headers=cleaner)).status_code, 200)

        agent = self.auth_headers(self.agent)
        response = await self.client.get(f"{API}/users", headers=agent)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json(), {"success": False, "error": "Insufficient permissions"})
        self.assertEqual((await self.client.get(f"{API}/deposits/ledger", headers=agent)).status_code, 403)

        finance = self.auth_headers(self.finance)
        self.assertEqual((await self.client.get(f"{API}/deposits/ledger", headers=finance)).status_code, 200)
        response = await self.client.post(
            f"{API}/units", json={"name": "X", "code": "X1"}, headers=finance
        )
        self.assertEqual(response.status_code, 403)

    async def test_unit_code_is_unique(self):
        await self.create_unit_and_guest()
        response = await self.client.post(
            f"{API}/units", json={"name": "Copy", "code": "OVV001"}, headers=self.auth_headers(self.admin)
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Unit code already exists")

    async def test_overlapping_booking_rejected(self):
        unit, guest = await self.create_unit_and_guest()
        agent = self.auth_headers(self.agent)
        payload = {
            "unit_id": unit["id"],
            "guest_id": guest["id"],
            "check_in": day(1).isoformat(),
            "check_out": day(4).isoformat(),
            "confirm": True,
        }
        response = await self.client.post(f"{API}/reservations", json=payload, headers=agent)
        self.assertEqual(response.status_code, 201, response.text)

        payload.update(check_in=day(3).isoformat(), check_out=day(6).isoformat())
        response = await self.client.post(f"{API}/reservations", json=payload, headers=agent)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Unit is not available for the selected dates")

        response = await self.client.get(
            f"{API}/units/{unit['id']}/availability",
            params={"check_in": day(4).isoformat(), "check_out": day(6).isoformat()},
            headers=agent,
        )
        self.assertTrue(response.json()["data"]["available"])

    async def test_reservation_deposit_cleaning_flow(self):
        unit, guest = await self.create_unit_and_guest()
        agent = self.auth_headers(self.agent)
        admin = self.auth_headers(self.admin)
        cleaner = self.auth_headers(self.cleaner)
        finance = self.auth_headers(self.finance)

        response = await self.client.post(
            f"{API}/reservations",
            json={
                "unit_id": unit["id"],
                "guest_id": guest["id"],
                "check_in": day(1).isoformat(),
                "check_out": day(3).isoformat(),
                "cleaning_fee_cents": 3000,
                "total_amount_cents": 40000,
                "deposit_required": True,
                "deposit_amount_cents": 20000,
                "confirm": True,
            },
            headers=agent,
        )
        self.assertEqual(response.status_code, 201, response.text)
        reservation = response.json()["data"]
        rid = reservation["id"]
        self.assertEqual(reservation["status"], "CONFIRMED")
        self.assertEqual(reservation["deposit_status"], "PENDING")

        # Deposit gate
        response = await self.client.post(f"{API}/reservations/{rid}/check-in", headers=agent)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Deposit must be held or paid before check-in")

        # Hold needs the override capability
        response = await self.client.post(f"{API}/deposits/reservations/{rid}/hold", headers=agent)
        self.assertEqual(response.status_code, 403)

        response = await self.client.post(
            f"{API}/deposits/reservations/{rid}/collect",
            json={"method": "card", "txn_id": "txn-42"},
            headers=agent,
        )
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["data"]["deposit_status"], "PAID")
        self.assertEqual(response.json()["data"]["deposit_events"][0]["type"], "collect")

        response = await self.client.post(f"{API}/reservations/{rid}/check-in", json={}, headers=agent)
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["data"]["status"], "CHECKED_IN")

        response = await self.client.post(
            f"{API}/reservations/{rid}/check-out",
            json={"actual_check_out": day(3, hour=10).isoformat()},
            headers=agent,
        )
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["data"]["status"], "CHECKED_OUT")

        response = await self.client.post(
            f"{API}/deposits/reservations/{rid}/refund",
            json={"amount_cents": 20000, "reason": "No damage"},
            headers=agent,
        )
        self.assertEqual(response.json()["data"]["deposit_status"], "REFUNDED")

        # Cleaning turnover
        response = await self.client.get(f"{API}/cleanings", params={"status": "PENDING"}, headers=admin)
        tasks = response.json()["data"]
        self.assertEqual(len(tasks), 1)
        task_id = tasks[0]["id"]

        response = await self.client.post(
            f"{API}/cleanings/{task_id}/assign", json={"user_id": str(self.cleaner.id)}, headers=admin
        )
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["data"]["status"], "ASSIGNED")

        response = await self.client.get(f"{API}/cleanings/my-tasks", headers=cleaner)
        self.assertEqual([t["id"] for t in response.json()["data"]], [task_id])

        response = await self.client.post(
            f"{API}/uploads/cleaning-photos",
            files=[("files", ("bedroom.png", PNG_BYTES, "image/png"))],
            headers=cleaner,
        )
        self.assertEqual(response.status_code, 200, response.text)
        photo_url = response.json()["data"]["urls"][0]
        self.assertTrue(photo_url.startswith("/api/v1/uploads/cleaning-photos/"))

        response = await self.client.get(photo_url, headers=cleaner)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content, PNG_BYTES)

        response = await self.client.post(f"{API}/cleanings/{task_id}/start", headers=cleaner)
        self.assertEqual(response.json()["data"]["status"], "IN_PROGRESS")
        response = await self.client.post(
            f"{API}/cleanings/{task_id}/complete",
            json={"notes": "Spotless", "photo_urls": [photo_url]},
            headers=cleaner,
        )
        self.assertEqual(response.status_code, 200, response.text)
        completed = response.json()["data"]
        self.assertEqual(completed["status"], "DONE")
        self.assertEqual([p["url"] for p in completed["photos"]], [photo_url])

        # Payout
        response = await self.client.get(f"{API}/finance/cleanings", headers=finance)
        body = response.json()
        self.assertEqual(body["summary"]["total_tasks"], 1)
        self.assertEqual(body["summary"]["total_cleaning_fees_cents"], 3000)
        self.assertEqual(body["data"][0]["guest_name"], "Alice Johnson")

        response = await self.client.post(
            f"{API}/finance/cleanings/approve", json={"task_ids": [task_id]}, headers=finance
        )
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["data"]["approved"], 1)

        response = await self.client.get(
            f"{API}/finance/cleanings", params={"approved": "false"}, headers=finance
        )
        self.assertEqual(response.json()["data"], [])

        response = await self.client.get(f"{API}/finance/cleanings/export", headers=finance)
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.headers["content-type"].startswith("text/csv"))

        response = await self.client.get(
            f"{API}/finance/reports/monthly", params={"year": day(3).year, "month": day(3).month}, headers=finance
        )
        report = response.json()["data"]
        self.assertEqual(report["reservation_count"], 1)
        self.assertEqual(report["total_revenue_cents"], 40000)
        self.assertEqual(report["total_cleaning_fees_cents"], 3000)

        # Completed stays are kept
        response = await self.client.delete(f"{API}/reservations/{rid}", headers=admin)
        self.assertEqual(response.status_code, 400)

    async def test_guest_with_reservations_cannot_be_deleted(self):
        unit, guest = await self.create_unit_and_guest()
        await self.client.post(
            f"{API}/reservations",
            json={
                "unit_id": unit["id"],
                "guest_id": guest["id"],
                "check_in": day(1).isoformat(),
                "check_out": day(2).isoformat(),
            },
            headers=self.auth_headers(self.agent),
        )
        response = await self.client.delete(f"{API}/guests/{guest['id']}", headers=self.auth_headers(self.admin))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Cannot delete guest with existing reservations")


if __name__ == "__main__":
    unittest.main()
