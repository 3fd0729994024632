import uuid
from unittest.mock import patch

import requests
from django.test import TestCase
from rest_framework.test import APIClient

from account.models import User
from inventory.alerts import AlertItem
from inventory.conf import InventoryConfig

from .models import Notification
from .services import AlertNotificationOptions, LowStockNotifier, NotificationService, NotificationTemplates


def alert_item(sku, location, stock=1, threshold=5):
    return AlertItem(
        id=uuid.uuid4(),
        product_id=uuid.uuid4(),
        variant_id=None,
        sku=sku,
        stock=stock,
        threshold=threshold,
        location=location,
    )


class LowStockNotifierTests(TestCase):
    def setUp(self):
        self.config = InventoryConfig(
            alert_email_recipients=("ops@stock.test",),
            alert_webhook_url="https://hooks.example.com/default",
        )
        self.notifier = LowStockNotifier(self.config)
        self.items = {
            "Main WH": [alert_item("PAAAAAA", "Main WH"), alert_item("PBBBBBB", "Main WH", stock=0)],
            "Store 1": [alert_item("PCCCCCC", "Store 1", stock=3)],
        }
        self.reader = User.objects.create_user(email="reader@stock.test", password="Pass123!", permissions=["alerts:read"])
        User.objects.create_user(email="staff@stock.test", password="Pass123!")
        User.objects.create_user(
            email="gone@stock.test", password="Pass123!", role=User.Role.ADMIN, is_active=False
        )

    def test_template_summarises_locations(self):
        title, message, payload = NotificationTemplates.low_stock(self.items)

        self.assertEqual(title, "Low Stock Alert")
        self.assertIn("PBBBBBB (0/5)", message)
        self.assertEqual(payload["itemCount"], 3)
        self.assertEqual(payload["locations"][0], {"location": "Main WH", "count": 2, "skus": ["PAAAAAA", "PBBBBBB"]})

    def test_in_app_targets_active_users_with_alert_access(self):
        self.assertTrue(self.notifier.dispatch(self.items, AlertNotificationOptions()))

        notification = Notification.objects.get()
        self.assertEqual(notification.user, self.reader)
        self.assertEqual(notification.type, Notification.Type.LOW_STOCK_ALERT)
        self.assertEqual(notification.payload["itemCount"], 3)

    @patch("notifications.services.send_mail")
    def test_email_falls_back_to_configured_recipients(self, mock_send_mail):
        options = AlertNotificationOptions(notify_in_app=False, notify_email=True)

        self.assertTrue(self.notifier.dispatch(self.items, options))
        self.assertEqual(mock_send_mail.call_args.args[3], ["ops@stock.test"])

    @patch("notifications.services.send_mail", side_effect=ConnectionRefusedError("smtp down"))
    def test_email_failure_is_reported(self, _mock_send_mail):
        options = AlertNotificationOptions(notify_in_app=False, notify_email=True)
        self.assertFalse(self.notifier.dispatch(self.items, options))

    def test_email_without_recipients_fails(self):
        notifier = LowStockNotifier(InventoryConfig())
        options = AlertNotificationOptions(notify_in_app=False, notify_email=True)
        self.assertFalse(notifier.dispatch(self.items, options))

    @patch("notifications.services.requests.post")
    def test_webhook_posts_items_by_location(self, mock_post):
        mock_post.return_value.raise_for_status.return_value = None
        options = AlertNotificationOptions(notify_in_app=False, notify_webhook=True)

        self.assertTrue(self.notifier.dispatch(self.items, options))

        args, kwargs = mock_post.call_args
        self.assertEqual(args[0], "https://hooks.example.com/default")
        self.assertEqual(kwargs["timeout"], 10)
        self.assertEqual(kwargs["json"]["items"]["Store 1"][0]["sku"], "PCCCCCC")

    @patch("notifications.services.requests.post")
    def test_webhook_error_status_is_failure(self, mock_post):
        mock_post.return_value.raise_for_status.side_effect = requests.HTTPError("502 Bad Gateway")
        options = AlertNotificationOptions(notify_in_app=True, notify_webhook=True, webhook_url="https://x.test/h")

        self.assertFalse(self.notifier.dispatch(self.items, options))
        # other channels still run
        self.assertEqual(Notification.objects.count(), 1)


class NotificationsApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(email="user@stock.test", password="Pass123!")
        self.other = User.objects.create_user(email="other@stock.test", password="Pass123!")
        self.client.force_authenticate(self.user)

    def notify(self, user, title="Low Stock Alert"):
        return NotificationService.notify(
            user=user,
            notification_type=Notification.Type.LOW_STOCK_ALERT,
            title=title,
            message="2 item(s) at or below threshold",
            payload={"type": "low_stock_alert", "itemCount": 2},
        )

    def test_notification_read_endpoints(self):
        note1 = self.notify(self.user)
        note2 = self.notify(self.user)
        self.notify(self.other)

        list_resp = self.client.get("/notifications/")
        self.assertEqual(list_resp.status_code, 200, list_resp.data)
        self.assertEqual(list_resp.data["count"], 2)

        read_one = self.client.patch(f"/notifications/{note1.id}/read/", {}, format="json")
        self.assertEqual(read_one.status_code, 200, read_one.data)
        note1.refresh_from_db()
        self.assertTrue(note1.is_read)

        unread = self.client.get("/notifications/?unread=true")
        self.assertEqual([n["id"] for n in unread.data["results"]], [str(note2.id)])

        read_all = self.client.post("/notifications/mark-all-read/", {}, format="json")
        self.assertEqual(read_all.status_code, 200, read_all.data)
        self.assertEqual(read_all.data["updated"], 1)
        note2.refresh_from_db()
        self.assertTrue(note2.is_read)

    def test_cannot_read_someone_elses_notification(self):
        note = self.notify(self.other)
        resp = self.client.patch(f"/notifications/{note.id}/read/", {}, format="json")
        self.assertEqual(resp.status_code, 404, resp.data)
        note.refresh_from_db()
        self.assertFalse(note.is_read)
