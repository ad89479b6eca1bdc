from datetime import timedelta

from django.contrib.auth import get_user_model

from billiards import services, tracking
from billiards.models import Table, TableActivityLog, TableSession

from .base import T0, BilliardsTestCase, frozen

User = get_user_model()


class ApiTestCase(BilliardsTestCase):
    def setUp(self):
        self.client.force_login(self.user)

    def post(self, url, data=None):
        return self.client.post(url, data or {}, content_type="application/json")

    def patch(self, url, data):
        return self.client.patch(url, data, content_type="application/json")


class AuthenticationTests(ApiTestCase):
    def test_anonymous_caller_is_unauthorized(self):
        self.client.logout()
        response = self.client.get("/api/sessions/")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"error": "Unauthorized"})

    def test_user_without_profile_is_rejected(self):
        stranger = User.objects.create_user(username="walk-in", password="password123")
        self.client.force_login(stranger)
        response = self.post("/api/sessions/", {"tableId": self.table.id})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "User profile not found")
        self.assertFalse(TableSession.objects.exists())


class SessionApiTests(ApiTestCase):
    def test_start_session(self):
        response = self.post("/api/sessions/", {"tableId": self.table.id})

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["status"], TableSession.Status.ACTIVE)
        self.assertEqual(body["table"]["id"], self.table.id)
        self.assertEqual(body["staff"]["id"], self.profile.id)
        self.assertIsNone(body["total_cost"])
        self.assertTableInvariant(self.table)

    def test_start_requires_table_id(self):
        response = self.post("/api/sessions/", {})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "Table ID is required"})

    def test_start_on_unavailable_table(self):
        Table.objects.filter(pk=self.table.pk).update(status=Table.Status.MAINTENANCE)
        response = self.post("/api/sessions/", {"tableId": self.table.id})
        self.assertEqual(response.status_code, 409)
        self.assertIn("not available", response.json()["error"])

    def test_start_with_unknown_staff(self):
        response = self.post("/api/sessions/", {"tableId": self.table.id, "staffId": 999999})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"error": "Staff member not found"})

    def test_end_session_returns_cost(self):
        with frozen(T0):
            session = services.start_session(self.table.id, actor=self.profile)
        with frozen(T0 + timedelta(hours=1, minutes=30)):
            response = self.post(f"/api/sessions/{session.id}/end/")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["status"], TableSession.Status.COMPLETED)
        self.assertEqual(body["total_cost"], "15.000000")
        self.assertEqual(body["total_cost_display"], "15.00")
        self.assertEqual(body["duration_display"], "01:30:00")
        self.assertEqual(body["table"]["status"], Table.Status.AVAILABLE)

    def test_end_other_company_session_is_forbidden(self):
        session = services.start_session(self.table.id, actor=self.profile)
        self.client.force_login(self.other_user)

        response = self.post(f"/api/sessions/{session.id}/end/")

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json(), {"error": "You don't have access to this session"})
        session.refresh_from_db()
        self.assertEqual(session.status, TableSession.Status.ACTIVE)

    def test_unknown_or_malformed_session_id(self):
        for session_id in ("00000000-0000-0000-0000-000000000000", "not-a-uuid"):
            with self.subTest(session_id=session_id):
                response = self.post(f"/api/sessions/{session_id}/end/")
                self.assertEqual(response.status_code, 404)
                self.assertEqual(response.json(), {"error": "Table session not found"})

    def test_end_completed_session_is_not_found(self):
        session = services.start_session(self.table.id, actor=self.profile)
        self.assertEqual(self.post(f"/api/sessions/{session.id}/end/").status_code, 200)

        response = self.post(f"/api/sessions/{session.id}/end/")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"error": "Active session not found"})
        self.assertEqual(TableActivityLog.objects.filter(table=self.table).count(), 2)

    def test_cancel_completed_session(self):
        session = services.start_session(self.table.id, actor=self.profile)
        services.end_session(session.id, actor=self.profile)

        response = self.post(f"/api/sessions/{session.id}/cancel/")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "Session is already completed"})

    def test_legacy_cancel_route(self):
        session = services.start_session(self.table.id, actor=self.profile)
        response = self.post(f"/api/table-sessions/{session.id}/cancel/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], TableSession.Status.CANCELLED)
        self.assertIsNone(response.json()["total_cost"])
        self.assertTableInvariant(self.table)

    def test_move_session(self):
        session = services.start_session(self.table.id, actor=self.profile)
        response = self.post(
            f"/api/table-sessions/{session.id}/move/", {"targetTableId": self.free_table.id}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["table"]["id"], self.free_table.id)
        self.assertTableInvariant(self.table)
        self.assertTableInvariant(self.free_table)

    def test_list_is_company_scoped(self):
        mine = services.start_session(self.table.id, actor=self.profile)
        services.start_session(self.other_table.id, actor=self.other_profile)

        response = self.client.get("/api/sessions/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual([row["id"] for row in response.json()], [str(mine.id)])

    def test_list_rejects_unknown_status(self):
        response = self.client.get("/api/sessions/", {"status": "PAUSED"})
        self.assertEqual(response.status_code, 400)

    def test_session_detail_includes_tracked_items(self):
        session = services.start_session(self.table.id, actor=self.profile)
        tracking.add_tracked_items(
            session.id, [{"itemId": self.item.id, "quantity": 2, "unitPrice": "2.50"}]
        )
        response = self.client.get(f"/api/sessions/{session.id}/")
        self.assertEqual(response.status_code, 200)
        rows = response.json()["tracked_items"]
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["item_name"], "Cola")
        self.assertEqual(rows[0]["subtotal"], "5.00")


class TrackedItemApiTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.session = services.start_session(self.table.id, actor=self.profile)
        self.url = f"/api/table-sessions/{self.session.id}/tracked-items/"

    def test_add_and_list(self):
        response = self.post(self.url, {"items": [{"itemId": self.item.id, "quantity": 3, "unitPrice": 2.5}]})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()[0]["quantity"], 3)

        response = self.client.get(self.url)
        self.assertEqual(len(response.json()), 1)

    def test_add_without_items(self):
        response = self.post(self.url, {})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "Items array is required and must not be empty"})

    def test_add_more_than_in_stock(self):
        response = self.post(self.url, {"items": [{"itemId": self.item.id, "quantity": 50, "unitPrice": 2.5}]})
        self.assertEqual(response.status_code, 409)

    def test_remove_tracked_item(self):
        rows = tracking.add_tracked_items(
            self.session.id, [{"itemId": self.item.id, "quantity": 2, "unitPrice": "2.50"}]
        )
        response = self.client.delete(f"{self.url}{rows[0].id}/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"success": True})
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity, 5)

    def test_remove_unknown_tracked_item(self):
        response = self.client.delete(f"{self.url}424242/")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"error": "Tracked item not found"})

    def test_clear_tracked_items(self):
        tracking.add_tracked_items(
            self.session.id, [{"itemId": self.item.id, "quantity": 4, "unitPrice": "2.50"}]
        )
        response = self.client.delete(self.url)
        self.assertEqual(response.status_code, 200)
        self.assertFalse(self.session.tracked_items.exists())
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity, 5)


class TableApiTests(ApiTestCase):
    def test_change_status(self):
        response = self.patch(
            f"/api/tables/{self.table.id}/status/", {"status": "MAINTENANCE", "notes": "Re-felting"}
        )
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["table"]["status"], Table.Status.MAINTENANCE)
        self.assertEqual(body["activityLog"]["new_status"], Table.Status.MAINTENANCE)
        self.assertEqual(body["activityLog"]["notes"], "Re-felting")

    def test_unchanged_status(self):
        response = self.patch(f"/api/tables/{self.table.id}/status/", {"status": "AVAILABLE"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["message"], "Status unchanged")
        self.assertFalse(TableActivityLog.objects.exists())

    def test_change_status_of_occupied_table(self):
        services.start_session(self.table.id, actor=self.profile)
        response = self.patch(f"/api/tables/{self.table.id}/status/", {"status": "RESERVED"})
        self.assertEqual(response.status_code, 409)
        self.assertTableInvariant(self.table)

    def test_change_status_of_other_company_table(self):
        response = self.patch(f"/api/tables/{self.other_table.id}/status/", {"status": "RESERVED"})
        self.assertEqual(response.status_code, 403)

    def test_activity_feed(self):
        session = services.start_session(self.table.id, actor=self.profile)
        services.end_session(session.id, actor=self.profile)

        response = self.client.get(f"/api/tables/{self.table.id}/activity/")

        self.assertEqual(response.status_code, 200)
        statuses = [row["new_status"] for row in response.json()]
        self.assertEqual(statuses, [Table.Status.AVAILABLE, Table.Status.OCCUPIED])
        self.assertEqual(response.json()[0]["changed_by"]["username"], "seller")
