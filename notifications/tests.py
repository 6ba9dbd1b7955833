from unittest.mock import patch

from django.test import TestCase
from rest_framework.test import APIClient

from account.models import User
from .models import Notification
from .services import NotificationService, NotificationTemplates


class NotificationsApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(
            email="seller@marketplace.com",
            password="Pass123!",
            role="SELLER",
        )
        self.other = User.objects.create_user(
            email="other@marketplace.com",
            password="Pass123!",
            role="CUSTOMER",
        )
        self.client.force_authenticate(self.user)

    def test_notification_read_endpoints(self):
        note1 = Notification.objects.create(
            user=self.user,
            type="payout_approved",
            title="Payout Approved",
            message="Approved",
            payload={"type": "payout_approved", "entity_id": "1", "entity_type": "payout"},
        )
        note2 = Notification.objects.create(
            user=self.user,
            type="new_sub_order",
            title="New Order",
            message="New order",
            payload={"type": "new_sub_order", "entity_id": "1", "entity_type": "sub_order"},
        )
        Notification.objects.create(
            user=self.other,
            type="order_shipped",
            title="Order Shipped",
            message="On the way",
            payload={},
        )

        list_resp = self.client.get("/api/notifications/")
        self.assertEqual(list_resp.status_code, 200, list_resp.data)
        self.assertEqual(list_resp.data["count"], 2)

        filtered = self.client.get("/api/notifications/?type=new_sub_order")
        self.assertEqual(filtered.data["count"], 1)

        read_one = self.client.patch(f"/api/notifications/{note1.id}/read/", {}, format="json")
        self.assertEqual(read_one.status_code, 200, read_one.data)
        note1.refresh_from_db()
        self.assertTrue(note1.is_read)

        read_all = self.client.post("/api/notifications/mark-all-read/", {}, format="json")
        self.assertEqual(read_all.status_code, 200, read_all.data)
        note2.refresh_from_db()
        self.assertTrue(note2.is_read)

    def test_cannot_read_someone_elses_notification(self):
        note = Notification.objects.create(
            user=self.other,
            type="order_shipped",
            title="Order Shipped",
            message="On the way",
            payload={},
        )
        resp = self.client.patch(f"/api/notifications/{note.id}/read/", {}, format="json")
        self.assertEqual(resp.status_code, 404)


class NotificationServiceTests(TestCase):
    def setUp(self):
        self.seller = User.objects.create_user(
            email="seller-notify@marketplace.com",
            password="Pass123!",
            role="SELLER",
        )

    def test_send_records_notification_from_template(self):
        NotificationService.send(self.seller, NotificationTemplates.earnings_available(self.seller, 12345, 2))

        note = Notification.objects.get(user=self.seller)
        self.assertEqual(note.type, "earnings_available")
        self.assertIn("123.45", note.message)
        self.assertEqual(note.payload["amount"], 12345)

    @patch("notifications.services.Notification.objects.create", side_effect=RuntimeError("db down"))
    def test_send_swallows_failures(self, _mock_create):
        result = NotificationService.send(self.seller, NotificationTemplates.earnings_available(self.seller, 100, 1))
        self.assertIsNone(result)
