# apps/delivery/tests.py
from decimal import Decimal
from unittest.mock import patch

from channels.db import database_sync_to_async
from django.test import TestCase, TransactionTestCase
from rest_framework import status
from rest_framework.exceptions import PermissionDenied
from rest_framework.test import APIClient

from apps.accounts.models import User, Role
from apps.catalog.models import Product
from apps.orders.models import Order
from apps.orders.services import OrderService
from apps.stores.models import Store
from apps.utils.exceptions import BusinessLogicException
from apps.utils.testing import open_socket
from .models import Delivery, CourierLocation
from .routing import websocket_urlpatterns
from .services import DeliveryService


class DeliveryFixtureMixin:

    def make_fixtures(self):
        self.customer = User.objects.create_user("cliente@example.com", "x", role=Role.CUSTOMER)
        self.merchant = User.objects.create_user("tienda@example.com", "x", role=Role.MERCHANT)
        self.courier = User.objects.create_user("domi@example.com", "x", role=Role.COURIER)
        self.courier2 = User.objects.create_user("domi2@example.com", "x", role=Role.COURIER)

        self.store = Store.objects.create(owner=self.merchant, name="Panadería Central", store_type="bakery")
        self.bread = Product.objects.create(store=self.store, name="Pan", price=Decimal("14000"), stock=50)

    def make_order(self, status=Order.Status.READY, price=None):
        product = self.bread
        if price is not None:
            product = Product.objects.create(store=self.store, name="Torta", price=price, stock=5)
        order = OrderService.create_order(
            customer=self.customer,
            store=self.store,
            lines=[{"product": product, "quantity": 1}],
            payment_method=Order.PaymentMethod.CARD,
            delivery_address="Calle 45 # 13-20",
        )
        Order.objects.filter(pk=order.pk).update(status=status)
        order.refresh_from_db()
        return order


class AvailableOrdersTests(DeliveryFixtureMixin, TestCase):

    def setUp(self):
        self.make_fixtures()

    def test_lists_claimable_orders_newest_first(self):
        ready = self.make_order(Order.Status.READY)
        pending = self.make_order(Order.Status.PENDING)
        cash = self.make_order(Order.Status.PENDING_CASH)
        self.make_order(Order.Status.PREPARING)
        self.make_order(Order.Status.DELIVERED)

        ids = [o.id for o in DeliveryService.available_orders()]
        self.assertEqual(set(ids), {ready.id, pending.id, cash.id})

        newest = Order.objects.filter(id__in=ids).order_by("-created_at").first()
        self.assertEqual(ids[0], newest.id)

    def test_claimed_orders_disappear(self):
        order = self.make_order()
        DeliveryService.claim_order(order.id, self.courier)
        self.assertNotIn(order.id, [o.id for o in DeliveryService.available_orders()])

    def test_point_of_sale_orders_are_excluded(self):
        order = self.make_order()
        Order.objects.filter(pk=order.pk).update(is_pos=True)
        self.assertFalse(DeliveryService.available_orders().exists())


class ClaimAndStatusTests(DeliveryFixtureMixin, TestCase):

    def setUp(self):
        self.make_fixtures()
        self.order = self.make_order()

    def test_claim_assigns_courier_and_moves_order(self):
        delivery = DeliveryService.claim_order(self.order.id, self.courier)

        self.assertEqual(delivery.status, Delivery.Status.ASSIGNED)
        self.assertEqual(delivery.courier, self.courier)
        self.assertIsNotNone(delivery.assigned_at)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.EN_ROUTE)
        self.assertEqual(DeliveryService.current_delivery(self.courier), delivery)

    def test_claim_from_pending_skips_merchant_steps(self):
        order = self.make_order(Order.Status.PENDING)
        DeliveryService.claim_order(order.id, self.courier)
        order.refresh_from_db()
        self.assertEqual(order.status, Order.Status.EN_ROUTE)

    def test_double_claim_is_rejected(self):
        DeliveryService.claim_order(self.order.id, self.courier)

        with self.assertRaises(BusinessLogicException) as ctx:
            DeliveryService.claim_order(self.order.id, self.courier2)

        self.assertEqual(ctx.exception.code, "already_claimed")
        self.assertEqual(Delivery.objects.filter(order=self.order).count(), 1)

    def test_cannot_claim_cancelled_order(self):
        order = self.make_order(Order.Status.CANCELLED)
        with self.assertRaises(BusinessLogicException) as ctx:
            DeliveryService.claim_order(order.id, self.courier)
        self.assertEqual(ctx.exception.code, "order_unavailable")

    def test_claim_is_broadcast_after_commit(self):
        with patch("apps.delivery.services.broadcast_delivery_update") as mock_broadcast, \
                patch("apps.orders.receivers.broadcast_order_change"), \
                patch("apps.notifications.tasks.notify_order_status_change.delay"):
            with self.captureOnCommitCallbacks(execute=True):
                delivery = DeliveryService.claim_order(self.order.id, self.courier)

        mock_broadcast.assert_called_once_with(delivery, event="delivery.assigned")

    def test_full_delivery_flow(self):
        DeliveryService.claim_order(self.order.id, self.courier)

        delivery = DeliveryService.update_delivery_status(self.order.id, "PICKED_UP", courier=self.courier)
        self.assertIsNotNone(delivery.picked_up_at)

        delivery = DeliveryService.update_delivery_status(self.order.id, "DELIVERED", courier=self.courier)
        self.assertIsNotNone(delivery.delivered_at)

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.DELIVERED)
        self.assertIsNone(DeliveryService.current_delivery(self.courier))

    def test_invalid_status_value(self):
        DeliveryService.claim_order(self.order.id, self.courier)
        with self.assertRaises(BusinessLogicException) as ctx:
            DeliveryService.update_delivery_status(self.order.id, "FLYING", courier=self.courier)
        self.assertEqual(ctx.exception.code, "invalid_status")

    def test_other_courier_cannot_update(self):
        DeliveryService.claim_order(self.order.id, self.courier)
        with self.assertRaises(PermissionDenied):
            DeliveryService.update_delivery_status(self.order.id, "PICKED_UP", courier=self.courier2)

    def test_order_can_be_delivered_again_after_completion(self):
        DeliveryService.claim_order(self.order.id, self.courier)
        DeliveryService.update_delivery_status(self.order.id, "DELIVERED", courier=self.courier)

        # A completed delivery no longer counts as active
        Delivery.objects.create(order=self.order, courier=self.courier2, status=Delivery.Status.ASSIGNED)
        self.assertEqual(Delivery.objects.filter(order=self.order).count(), 2)


class LocationTests(DeliveryFixtureMixin, TestCase):

    def setUp(self):
        self.make_fixtures()

    @patch("apps.delivery.services.broadcast_courier_location")
    def test_location_is_upserted_and_published(self, mock_broadcast):
        DeliveryService.update_location(self.courier, 4.65, -74.05)
        location = DeliveryService.update_location(self.courier, "4.66", "-74.06")

        self.assertEqual(CourierLocation.objects.filter(courier=self.courier).count(), 1)
        self.assertAlmostEqual(location.lat, 4.66)
        self.assertEqual(mock_broadcast.call_count, 2)
        self.assertEqual(mock_broadcast.call_args[0][:3], (self.courier.pk, 4.66, -74.06))

    @patch("apps.delivery.services.broadcast_courier_location")
    def test_out_of_range_coordinates(self, mock_broadcast):
        for lat, lng in [(95, 0), (0, -200), ("north", 3)]:
            with self.assertRaises(BusinessLogicException) as ctx:
                DeliveryService.update_location(self.courier, lat, lng)
            self.assertEqual(ctx.exception.code, "invalid_coordinates")
        self.assertFalse(CourierLocation.objects.exists())
        mock_broadcast.assert_not_called()

    def test_tracking_permission(self):
        order = self.make_order()
        stranger = User.objects.create_user("otro@example.com", "x", role=Role.CUSTOMER)

        self.assertTrue(DeliveryService.can_track_courier(self.courier, self.courier.pk))
        self.assertFalse(DeliveryService.can_track_courier(self.customer, self.courier.pk))

        DeliveryService.claim_order(order.id, self.courier)
        self.assertTrue(DeliveryService.can_track_courier(self.customer, str(self.courier.pk)))
        self.assertFalse(DeliveryService.can_track_courier(stranger, self.courier.pk))


class CourierStatsTests(DeliveryFixtureMixin, TestCase):

    def setUp(self):
        self.make_fixtures()

    def deliver(self, order, courier=None):
        courier = courier or self.courier
        DeliveryService.claim_order(order.id, courier)
        DeliveryService.update_delivery_status(order.id, "DELIVERED", courier=courier)

    def test_commission_is_ten_percent_rounded(self):
        # totals: 14000 + 6000 fees = 20000, 14005 + 6000 = 20005
        self.deliver(self.make_order())
        self.deliver(self.make_order(price=Decimal("14005")))
        # Active deliveries do not count
        DeliveryService.claim_order(self.make_order().id, self.courier)

        stats = DeliveryService.courier_stats(self.courier)
        self.assertEqual(stats["total_deliveries"], 2)
        # 40005 * 0.10 = 4000.5 -> 4001
        self.assertEqual(stats["total_earnings"], Decimal("4001"))

    def test_no_deliveries(self):
        self.assertEqual(
            DeliveryService.courier_stats(self.courier),
            {"total_deliveries": 0, "total_earnings": Decimal("0")},
        )

    def test_history_is_limited(self):
        for _ in range(3):
            self.deliver(self.make_order())
        self.deliver(self.make_order(), courier=self.courier2)

        self.assertEqual(len(DeliveryService.delivery_history(self.courier)), 3)
        self.assertEqual(len(DeliveryService.delivery_history(self.courier, limit=2)), 2)


class CourierApiTests(DeliveryFixtureMixin, TestCase):

    def setUp(self):
        self.make_fixtures()
        self.client = APIClient()
        self.order = self.make_order()

    def test_customer_cannot_use_courier_api(self):
        self.client.force_authenticate(self.customer)
        response = self.client.get("/api/v1/delivery/courier/available-orders/")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_claim_and_deliver_over_api(self):
        self.client.force_authenticate(self.courier)

        response = self.client.get("/api/v1/delivery/courier/available-orders/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]["id"], str(self.order.id))

        response = self.client.post(f"/api/v1/delivery/courier/claim/{self.order.id}/")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["status"], "ASSIGNED")

        response = self.client.post(f"/api/v1/delivery/courier/claim/{self.order.id}/")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "already_claimed")

        response = self.client.get("/api/v1/delivery/courier/current/")
        self.assertEqual(response.data["delivery"]["order"]["id"], str(self.order.id))

        response = self.client.post(
            f"/api/v1/delivery/courier/status/{self.order.id}/", {"status": "DELIVERED"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.get("/api/v1/delivery/courier/stats/")
        self.assertEqual(response.data["total_deliveries"], 1)

        response = self.client.get("/api/v1/delivery/courier/history/")
        self.assertEqual(len(response.data), 1)

    @patch("apps.delivery.services.broadcast_courier_location")
    def test_customer_tracks_courier(self, mock_broadcast):
        DeliveryService.claim_order(self.order.id, self.courier)

        self.client.force_authenticate(self.courier)
        response = self.client.post("/api/v1/delivery/courier/location/", {"lat": 4.6, "lng": -74.1}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.client.force_authenticate(self.customer)
        response = self.client.get(f"/api/v1/delivery/tracking/{self.courier.pk}/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertAlmostEqual(response.data["location"]["lat"], 4.6)

        stranger = User.objects.create_user("otro@example.com", "x", role=Role.CUSTOMER)
        self.client.force_authenticate(stranger)
        response = self.client.get(f"/api/v1/delivery/tracking/{self.courier.pk}/")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_malformed_ids_are_not_found(self):
        self.client.force_authenticate(self.customer)
        response = self.client.get("/api/v1/delivery/tracking/abc/")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        self.client.force_authenticate(self.courier)
        for path in ("claim/abc/", "claim/----/", "status/abc/"):
            response = self.client.post(f"/api/v1/delivery/courier/{path}", {"status": "DELIVERED"}, format="json")
            self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND, path)

    def test_tracking_check_rejects_malformed_courier_id(self):
        self.assertFalse(DeliveryService.can_track_courier(self.customer, "abc"))
        self.assertFalse(DeliveryService.can_track_courier(self.customer, None))


class CourierSocketTests(DeliveryFixtureMixin, TransactionTestCase):

    def setUp(self):
        self.make_fixtures()
        self.order = self.make_order()
        self.stranger = User.objects.create_user("otro@example.com", "x", role=Role.CUSTOMER)
        Delivery.objects.create(
            order=self.order, courier=self.courier, status=Delivery.Status.ASSIGNED
        )
        self.tracking_path = f"/ws/tracking/courier/{self.courier.pk}/"

    async def test_tracking_access(self):
        for user, allowed in [
            (self.courier, True),
            (self.customer, True),
            (self.stranger, False),
            (self.courier2, False),
            (None, False),
        ]:
            communicator, connected = await open_socket(websocket_urlpatterns, user, self.tracking_path)
            self.assertEqual(connected, allowed, user)
            if connected:
                await communicator.disconnect()

    async def test_courier_pushes_location(self):
        communicator, connected = await open_socket(websocket_urlpatterns, self.courier, self.tracking_path)
        self.assertTrue(connected)

        await communicator.send_json_to({"type": "location_update", "lat": 4.6, "lng": -74.08})
        message = await communicator.receive_json_from(timeout=3)
        self.assertEqual(message["type"], "courier.location")
        self.assertEqual(message["data"]["lat"], 4.6)
        await communicator.disconnect()

        location = await database_sync_to_async(CourierLocation.objects.get)(courier=self.courier)
        self.assertAlmostEqual(location.lng, -74.08)

    async def test_bad_coordinates_are_reported(self):
        communicator, _ = await open_socket(websocket_urlpatterns, self.courier, self.tracking_path)

        await communicator.send_json_to({"type": "location_update", "lat": 95, "lng": 0})
        message = await communicator.receive_json_from(timeout=3)
        self.assertEqual(message, {"type": "error", "error": "Coordinates out of range.", "code": "invalid_coordinates"})
        await communicator.disconnect()

    async def test_watcher_cannot_move_the_marker(self):
        communicator, connected = await open_socket(websocket_urlpatterns, self.customer, self.tracking_path)
        self.assertTrue(connected)

        await communicator.send_json_to({"type": "location_update", "lat": 1.0, "lng": 1.0})
        self.assertTrue(await communicator.receive_nothing(timeout=0.5))
        await communicator.disconnect()

        exists = await database_sync_to_async(CourierLocation.objects.filter(courier=self.courier).exists)()
        self.assertFalse(exists)

    async def test_delivery_feed_is_for_couriers(self):
        communicator, connected = await open_socket(websocket_urlpatterns, self.courier2, "/ws/deliveries/feed/")
        self.assertTrue(connected)
        await communicator.disconnect()

        _, connected = await open_socket(websocket_urlpatterns, self.customer, "/ws/deliveries/feed/")
        self.assertFalse(connected)
