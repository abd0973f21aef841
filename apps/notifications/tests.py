# apps/notifications/tests.py
from decimal import Decimal
from unittest.mock import patch

from channels.db import database_sync_to_async
from django.test import TestCase, TransactionTestCase
from rest_framework.test import APIClient

from apps.accounts.models import User, Role
from apps.catalog.models import Product
from apps.orders.models import Order
from apps.orders.services import OrderService
from apps.stores.models import Store
from apps.utils.testing import open_socket
from .models import Notification, NotificationKind
from .routing import websocket_urlpatterns
from .services import mark_all_read, notify_user, render_message, unread_count
from .tasks import notify_order_status_change


class NotificationServiceTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user("cliente@example.com", "x", role=Role.CUSTOMER)

    def test_render_message(self):
        title, body = render_message("Hola ${name}", "Tu pedido de ${store} ${missing}", {"store": "Farmacia"})
        self.assertEqual(title, "Hola ${name}")
        self.assertEqual(body, "Tu pedido de Farmacia ${missing}")

    @patch("apps.notifications.services.broadcast")
    def test_notify_user_creates_and_pushes(self, mock_broadcast):
        with self.captureOnCommitCallbacks(execute=True):
            notif = notify_user(self.user, NotificationKind.PROMO, title="2x1 hoy", data={"code": "2X1"})

        self.assertEqual(notif.body, "2x1 hoy")
        self.assertFalse(notif.is_read)
        group, event, payload = mock_broadcast.call_args[0]
        self.assertEqual(group, f"notifications_{self.user.pk}")
        self.assertEqual(event, "notification.created")
        self.assertEqual(payload["id"], str(notif.id))

    def test_notify_without_user(self):
        self.assertIsNone(notify_user(None, title="nadie"))
        self.assertFalse(Notification.objects.exists())

    def test_mark_all_read(self):
        for i in range(3):
            Notification.objects.create(user=self.user, title=f"n{i}")
        self.assertEqual(unread_count(self.user), 3)
        self.assertEqual(mark_all_read(self.user), 3)
        self.assertEqual(unread_count(self.user), 0)


class OrderNotificationTaskTests(TestCase):
    def setUp(self):
        self.customer = User.objects.create_user("cliente@example.com", "x", role=Role.CUSTOMER)
        self.merchant = User.objects.create_user("tienda@example.com", "x", role=Role.MERCHANT)
        self.store = Store.objects.create(owner=self.merchant, name="Droguería La 80", store_type="pharmacy")
        product = Product.objects.create(store=self.store, name="Vitamina C", price=Decimal("9000"), stock=3)
        self.order = OrderService.create_order(
            customer=self.customer,
            store=self.store,
            lines=[{"product": product, "quantity": 1}],
            payment_method=Order.PaymentMethod.CARD,
            delivery_address="Calle 80 # 30-10",
        )

    @patch("apps.notifications.services.broadcast")
    def test_task_creates_order_notification(self, mock_broadcast):
        notif_id = notify_order_status_change(str(self.order.id), "CONFIRMED")

        notif = Notification.objects.get(id=notif_id)
        self.assertEqual(notif.user, self.customer)
        self.assertEqual(notif.kind, NotificationKind.ORDER)
        self.assertEqual(notif.body, "Droguería La 80 confirmó tu pedido.")
        self.assertEqual(notif.data, {"order_id": str(self.order.id), "status": "CONFIRMED"})

    def test_task_ignores_statuses_without_message(self):
        self.assertIsNone(notify_order_status_change(str(self.order.id), "PENDING"))
        self.assertFalse(Notification.objects.exists())

    def test_task_ignores_pos_orders(self):
        Order.objects.filter(pk=self.order.pk).update(customer=None)
        self.assertIsNone(notify_order_status_change(str(self.order.id), "DELIVERED"))

    @patch("apps.notifications.services.broadcast")
    @patch("apps.orders.receivers.broadcast_order_change")
    def test_status_change_notifies_customer(self, mock_order_broadcast, mock_broadcast):
        with self.captureOnCommitCallbacks(execute=True):
            OrderService.update_status(self.order.id, Order.Status.CONFIRMED, actor=self.merchant)

        notif = Notification.objects.get(user=self.customer)
        self.assertEqual(notif.title, "Pedido confirmado")
        mock_order_broadcast.assert_called_once()


class NotificationApiTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user("cliente@example.com", "x", role=Role.CUSTOMER)
        self.other = User.objects.create_user("otro@example.com", "x", role=Role.CUSTOMER)
        self.client = APIClient()
        self.client.force_authenticate(self.user)

    def test_list_only_own_notifications(self):
        Notification.objects.create(user=self.user, title="Mía")
        Notification.objects.create(user=self.other, title="Ajena")

        response = self.client.get("/api/v1/notifications/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual([n["title"] for n in response.data], ["Mía"])
        self.assertEqual(response["X-Unread-Count"], "1")

    def test_mark_one_read(self):
        notif = Notification.objects.create(user=self.user, title="Hola")
        response = self.client.post(f"/api/v1/notifications/{notif.id}/read/")
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data["is_read"])
        self.assertIsNotNone(response.data["read_at"])

    def test_cannot_mark_someone_elses(self):
        notif = Notification.objects.create(user=self.other, title="Ajena")
        response = self.client.post(f"/api/v1/notifications/{notif.id}/read/")
        self.assertEqual(response.status_code, 404)

    def test_mark_all_read(self):
        Notification.objects.create(user=self.user, title="a")
        Notification.objects.create(user=self.user, title="b")
        response = self.client.post("/api/v1/notifications/read-all/")
        self.assertEqual(response.data, {"status": "all_read", "updated": 2})


class NotificationSocketTests(TransactionTestCase):

    def setUp(self):
        self.user = User.objects.create_user("cliente@example.com", "x", role=Role.CUSTOMER)

    async def test_anonymous_is_rejected(self):
        _, connected = await open_socket(websocket_urlpatterns, None, "/ws/notifications/")
        self.assertFalse(connected)

    async def test_new_notification_is_pushed(self):
        communicator, connected = await open_socket(websocket_urlpatterns, self.user, "/ws/notifications/")
        self.assertTrue(connected)

        notif = await database_sync_to_async(notify_user)(self.user, title="Bienvenido")
        message = await communicator.receive_json_from(timeout=3)
        self.assertEqual(message["type"], "notification.created")
        self.assertEqual(message["data"]["id"], str(notif.id))
        await communicator.disconnect()
