from decimal import Decimal
from datetime import datetime, timezone as dt_timezone

from channels.db import database_sync_to_async
from django.test import TestCase, TransactionTestCase
from rest_framework import status
from rest_framework.test import APIClient

from apps.accounts.models import User, Role
from apps.orders.models import Order
from apps.utils.realtime import broadcast, store_group
from apps.utils.testing import open_socket
from .models import Store
from .routing import websocket_urlpatterns
from .services import StoreService
from .store_types import STORE_TYPES, get_store_type_config, has_feature


class StoreTypeRegistryTests(TestCase):

    def test_every_vertical_is_registered(self):
        self.assertEqual(
            set(STORE_TYPES),
            {"restaurant", "pharmacy", "grocery", "clothing", "farm", "hotel", "stationery", "bakery", "general"},
        )

    def test_terminology_merges_defaults(self):
        cfg = get_store_type_config("restaurant")
        self.assertEqual(cfg["terminology"]["product"], "Plato")
        self.assertEqual(cfg["terminology"]["order"], "Comanda")

        cfg = get_store_type_config("pharmacy")
        self.assertEqual(cfg["terminology"]["product"], "Medicamento")
        self.assertEqual(cfg["terminology"]["order"], "Pedido")

    def test_unknown_type_falls_back_to_general(self):
        cfg = get_store_type_config("spaceport")
        self.assertEqual(cfg["key"], "general")
        self.assertEqual(cfg["label"], "Tienda General")

    def test_features(self):
        self.assertTrue(has_feature("hotel", "bookings"))
        self.assertFalse(has_feature("grocery", "bookings"))


class StoreModelTests(TestCase):

    def test_slug_is_unique(self):
        a = User.objects.create_user("a@example.com", "x", role=Role.MERCHANT)
        b = User.objects.create_user("b@example.com", "x", role=Role.MERCHANT)
        s1 = Store.objects.create(owner=a, name="La Esquina")
        s2 = Store.objects.create(owner=b, name="La Esquina")
        self.assertEqual(s1.slug, "la-esquina")
        self.assertEqual(s2.slug, "la-esquina-1")


class StoreServiceTests(TestCase):

    def setUp(self):
        self.owner = User.objects.create_user("owner@example.com", "x", role=Role.MERCHANT)
        self.store = Store.objects.create(owner=self.owner, name="Panadería Sol", store_type="bakery")

    def _order(self, total, status, when):
        order = Order.objects.create(store=self.store, total=Decimal(total), status=status)
        Order.objects.filter(pk=order.pk).update(created_at=when)
        return order

    def test_monthly_income_groups_delivered_orders(self):
        self._order("10000", Order.Status.DELIVERED, datetime(2024, 1, 10, 15, tzinfo=dt_timezone.utc))
        self._order("5000", Order.Status.DELIVERED, datetime(2024, 1, 20, 15, tzinfo=dt_timezone.utc))
        self._order("7000", Order.Status.DELIVERED, datetime(2024, 2, 5, 15, tzinfo=dt_timezone.utc))
        self._order("99999", Order.Status.CANCELLED, datetime(2024, 2, 6, 15, tzinfo=dt_timezone.utc))

        income = StoreService.monthly_income(self.store)
        self.assertEqual(
            income,
            [
                {"month": "2024-01", "total": Decimal("15000")},
                {"month": "2024-02", "total": Decimal("7000")},
            ],
        )

    def test_get_store_for_owner_without_store(self):
        from rest_framework.exceptions import NotFound
        other = User.objects.create_user("nostore@example.com", "x", role=Role.MERCHANT)
        with self.assertRaises(NotFound):
            StoreService.get_store_for_owner(other)


class StoreApiTests(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.merchant = User.objects.create_user("m@example.com", "x", role=Role.MERCHANT)

    def test_merchant_creates_store_once(self):
        self.client.force_authenticate(self.merchant)
        payload = {"name": "Farmacia Vida", "store_type": "pharmacy", "lat": 4.6, "lng": -74.08}
        response = self.client.post("/api/v1/stores/mine/", payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["type_config"]["key"], "pharmacy")

        response = self.client.post("/api/v1/stores/mine/", payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "store_exists")

    def test_customer_cannot_manage_store(self):
        customer = User.objects.create_user("c@example.com", "x", role=Role.CUSTOMER)
        self.client.force_authenticate(customer)
        response = self.client.get("/api/v1/stores/mine/")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_directory_is_public_and_filters_inactive(self):
        Store.objects.create(owner=self.merchant, name="Visible")
        hidden_owner = User.objects.create_user("h@example.com", "x", role=Role.MERCHANT)
        Store.objects.create(owner=hidden_owner, name="Hidden", is_active=False)

        response = self.client.get("/api/v1/stores/directory/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        names = [s["name"] for s in response.data]
        self.assertEqual(names, ["Visible"])

    def test_store_types_endpoint(self):
        response = self.client.get("/api/v1/stores/types/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), len(STORE_TYPES))


class StoreSocketTests(TransactionTestCase):

    def setUp(self):
        self.owner = User.objects.create_user("dueno@example.com", "x", role=Role.MERCHANT)
        self.rival = User.objects.create_user("rival@example.com", "x", role=Role.MERCHANT)
        self.customer = User.objects.create_user("cliente@example.com", "x", role=Role.CUSTOMER)
        self.store = Store.objects.create(owner=self.owner, name="Papelería Norte", store_type="stationery")
        self.path = f"/ws/stores/{self.store.id}/orders/"

    async def test_only_the_owner_connects(self):
        for user, allowed in [
            (self.owner, True),
            (self.rival, False),
            (self.customer, False),
            (None, False),
        ]:
            communicator, connected = await open_socket(websocket_urlpatterns, user, self.path)
            self.assertEqual(connected, allowed, user)
            if connected:
                await communicator.disconnect()

    async def test_owner_receives_store_events(self):
        communicator, _ = await open_socket(websocket_urlpatterns, self.owner, self.path)

        await database_sync_to_async(broadcast)(
            store_group(self.store.id), "order.created", {"order_id": "x"}
        )
        message = await communicator.receive_json_from(timeout=3)
        self.assertEqual(message, {"type": "order.created", "data": {"order_id": "x"}})
        await communicator.disconnect()
