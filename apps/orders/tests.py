# apps/orders/tests.py
from decimal import Decimal
from unittest.mock import patch

from channels.db import database_sync_to_async
from django.test import TestCase, SimpleTestCase, TransactionTestCase
from kombu.exceptions import OperationalError
from rest_framework import status
from rest_framework.exceptions import PermissionDenied
from rest_framework.test import APIClient

from apps.accounts.models import User, Role
from apps.catalog.models import Product
from apps.stores.models import Store
from apps.utils.exceptions import BusinessLogicException
from apps.utils.testing import open_socket
from .models import Order, OrderStatusHistory, CartItem
from .pricing import calculate_totals, group_items_by_store
from .routing import websocket_urlpatterns
from .services import CartService, CheckoutService, OrderService
from .state_machine import (
    STATUS_BADGES, available_transitions, can_cancel, can_transition, get_status_badge,
)

S = Order.Status


class StateMachineTests(SimpleTestCase):

    def test_legal_transitions(self):
        self.assertTrue(can_transition(S.PENDING, S.CONFIRMED))
        self.assertTrue(can_transition(S.PENDING_CASH, S.CANCELLED))
        self.assertTrue(can_transition(S.CONFIRMED, S.PREPARING))
        self.assertTrue(can_transition(S.PREPARING, S.READY))
        self.assertTrue(can_transition(S.READY, S.EN_ROUTE))
        self.assertTrue(can_transition(S.EN_ROUTE, S.DELIVERED))

    def test_illegal_transitions(self):
        self.assertFalse(can_transition(S.PENDING, S.READY))
        self.assertFalse(can_transition(S.READY, S.CANCELLED))
        self.assertFalse(can_transition(S.EN_ROUTE, S.CANCELLED))
        self.assertFalse(can_transition(S.DELIVERED, S.PENDING))
        self.assertFalse(can_transition("NOT_A_STATUS", S.CONFIRMED))

    def test_terminal_states_have_no_exits(self):
        self.assertEqual(available_transitions(S.DELIVERED), [])
        self.assertEqual(available_transitions(S.CANCELLED), [])
        self.assertEqual(available_transitions("bogus"), [])

    def test_can_cancel(self):
        for st in (S.PENDING, S.PENDING_CASH, S.CONFIRMED, S.PREPARING, S.READY):
            self.assertTrue(can_cancel(st), st)
        for st in (S.EN_ROUTE, S.DELIVERED, S.CANCELLED, "bogus"):
            self.assertFalse(can_cancel(st), st)

    def test_every_status_has_a_badge(self):
        for value in S.values:
            badge = get_status_badge(value)
            self.assertNotEqual(badge["color"], "gray", value)
            self.assertTrue(badge["label"])
        self.assertEqual(len(STATUS_BADGES), len(S.values))

    def test_specific_badges(self):
        self.assertEqual(get_status_badge("PENDING")["color"], "orange")
        self.assertEqual(get_status_badge("DELIVERED"), {"status": "DELIVERED", "label": "Entregado", "color": "green"})

    def test_unknown_status_gets_gray_badge(self):
        self.assertEqual(get_status_badge("LOST_IN_SPACE"), {"status": "LOST_IN_SPACE", "label": "LOST_IN_SPACE", "color": "gray"})
        self.assertEqual(get_status_badge(None)["label"], "Desconocido")
        self.assertEqual(get_status_badge("")["color"], "gray")


class PricingTests(SimpleTestCase):

    def test_totals_with_fees(self):
        totals = calculate_totals([
            {"price": "15000", "quantity": 2},
            {"price": Decimal("2500"), "quantity": "3"},
        ])
        self.assertEqual(totals["subtotal"], Decimal("37500"))
        self.assertEqual(totals["service_fee"], Decimal("2000"))
        self.assertEqual(totals["delivery_fee"], Decimal("4000"))
        self.assertEqual(totals["total"], Decimal("43500"))

    def test_totals_without_fees(self):
        totals = calculate_totals([{"price": 1000, "quantity": 1}], include_fees=False)
        self.assertEqual(totals["total"], Decimal("1000"))
        self.assertEqual(totals["service_fee"], Decimal("0"))

    def test_non_numeric_values_count_as_zero(self):
        totals = calculate_totals([
            {"price": "abc", "quantity": 2},
            {"price": 500, "quantity": None},
            {"price": 700, "quantity": 1},
        ], include_fees=False)
        self.assertEqual(totals["subtotal"], Decimal("700"))

    def test_empty_or_invalid_input(self):
        zero = {"subtotal": Decimal("0"), "service_fee": Decimal("0"), "delivery_fee": Decimal("0"), "total": Decimal("0")}
        self.assertEqual(calculate_totals([]), zero)
        self.assertEqual(calculate_totals(None), zero)
        self.assertEqual(calculate_totals("not a list"), zero)

    def test_group_items_by_store(self):
        groups = group_items_by_store([
            {"store_id": "a", "price": 100, "quantity": 2},
            {"store_id": "b", "price": 50, "quantity": 1},
            {"store_id": "a", "price": 10, "quantity": 3},
        ])
        self.assertEqual([g["store_id"] for g in groups], ["a", "b"])
        self.assertEqual(groups[0]["subtotal"], Decimal("230"))
        self.assertEqual(len(groups[0]["items"]), 2)
        self.assertEqual(groups[1]["subtotal"], Decimal("50"))


class OrderFixtureMixin:

    def make_fixtures(self):
        self.customer = User.objects.create_user("cliente@example.com", "x", role=Role.CUSTOMER)
        self.merchant = User.objects.create_user("tienda@example.com", "x", role=Role.MERCHANT)
        self.merchant2 = User.objects.create_user("tienda2@example.com", "x", role=Role.MERCHANT)
        self.courier = User.objects.create_user("domi@example.com", "x", role=Role.COURIER)

        self.store = Store.objects.create(owner=self.merchant, name="Restaurante Uno", store_type="restaurant")
        self.store2 = Store.objects.create(owner=self.merchant2, name="Farmacia Dos", store_type="pharmacy")

        self.burger = Product.objects.create(store=self.store, name="Hamburguesa", price=Decimal("18000"), stock=10)
        self.soda = Product.objects.create(store=self.store, name="Gaseosa", price=Decimal("3000"), stock=10)
        self.pills = Product.objects.create(store=self.store2, name="Acetaminofén", price=Decimal("5000"), stock=10)

    def make_order(self, status=S.PENDING):
        order = OrderService.create_order(
            customer=self.customer,
            store=self.store,
            lines=[{"product": self.burger, "quantity": 1}],
            payment_method=Order.PaymentMethod.CARD,
            delivery_address="Calle 10 # 5-20",
        )
        if status != order.status:
            Order.objects.filter(pk=order.pk).update(status=status)
            order.refresh_from_db()
        return order


class CreateOrderTests(OrderFixtureMixin, TestCase):

    def setUp(self):
        self.make_fixtures()

    def test_cash_orders_start_pending_cash(self):
        order = OrderService.create_order(
            customer=self.customer,
            store=self.store,
            lines=[{"product": self.burger, "quantity": 2}, {"product": self.soda, "quantity": 1}],
            payment_method=Order.PaymentMethod.CASH,
            delivery_address="Cra 7 # 12-34",
        )
        self.assertEqual(order.status, S.PENDING_CASH)
        self.assertEqual(order.subtotal, Decimal("39000"))
        self.assertEqual(order.total, Decimal("45000"))
        self.assertEqual(order.items.count(), 2)
        self.assertEqual(order.history.count(), 1)

    def test_card_orders_start_pending(self):
        self.assertEqual(self.make_order().status, S.PENDING)

    def test_rejects_product_from_other_store(self):
        with self.assertRaises(BusinessLogicException) as ctx:
            OrderService.create_order(
                customer=self.customer, store=self.store,
                lines=[{"product": self.pills, "quantity": 1}],
                delivery_address="Calle 1",
            )
        self.assertEqual(ctx.exception.code, "invalid_product")
        self.assertFalse(Order.objects.exists())

    def test_requires_address(self):
        with self.assertRaises(BusinessLogicException) as ctx:
            OrderService.create_order(
                customer=self.customer, store=self.store,
                lines=[{"product": self.burger, "quantity": 1}],
                delivery_address="   ",
            )
        self.assertEqual(ctx.exception.code, "address_required")


class UpdateStatusTests(OrderFixtureMixin, TestCase):

    def setUp(self):
        self.make_fixtures()
        self.order = self.make_order()

    def test_merchant_drives_fulfilment(self):
        for target in (S.CONFIRMED, S.PREPARING, S.READY):
            OrderService.update_status(self.order.id, target, actor=self.merchant)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, S.READY)

        history = list(self.order.history.values_list("from_status", "to_status"))
        self.assertEqual(history[-1], (S.PREPARING, S.READY))
        self.assertEqual(len(history), 4)

    def test_illegal_transition_leaves_state_unchanged(self):
        with self.assertRaises(BusinessLogicException) as ctx:
            OrderService.update_status(self.order.id, S.READY, actor=self.merchant)

        self.assertEqual(ctx.exception.code, "invalid_transition")
        self.assertEqual(ctx.exception.extra["allowed"], [S.CONFIRMED, S.CANCELLED])
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, S.PENDING)
        self.assertEqual(self.order.history.count(), 1)

    def test_other_merchant_is_rejected(self):
        with self.assertRaises(PermissionDenied):
            OrderService.update_status(self.order.id, S.CONFIRMED, actor=self.merchant2)

    def test_customer_cannot_confirm(self):
        with self.assertRaises(PermissionDenied):
            OrderService.update_status(self.order.id, S.CONFIRMED, actor=self.customer)

    def test_courier_without_delivery_is_rejected(self):
        Order.objects.filter(pk=self.order.pk).update(status=S.READY)
        with self.assertRaises(PermissionDenied):
            OrderService.update_status(self.order.id, S.EN_ROUTE, actor=self.courier)

    def test_force_skips_checks(self):
        OrderService.update_status(self.order.id, S.EN_ROUTE, actor=self.courier, force=True)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, S.EN_ROUTE)

    def test_unknown_status(self):
        with self.assertRaises(BusinessLogicException) as ctx:
            OrderService.update_status(self.order.id, "TELEPORTED", actor=self.merchant)
        self.assertEqual(ctx.exception.code, "invalid_status")

    def test_status_change_is_broadcast_and_notified(self):
        with patch("apps.orders.receivers.broadcast_order_change") as mock_broadcast, \
                patch("apps.notifications.tasks.notify_order_status_change.delay") as mock_notify:
            with self.captureOnCommitCallbacks(execute=True):
                OrderService.update_status(self.order.id, S.CONFIRMED, actor=self.merchant)

        mock_broadcast.assert_called_once()
        mock_notify.assert_called_once_with(str(self.order.id), S.CONFIRMED)

    def test_broker_outage_does_not_undo_status_change(self):
        with patch("apps.orders.receivers.broadcast_order_change"), \
                patch("apps.notifications.tasks.notify_order_status_change.delay",
                      side_effect=OperationalError("broker unreachable")):
            with self.assertLogs("apps.orders.receivers", level="ERROR"):
                with self.captureOnCommitCallbacks(execute=True):
                    OrderService.update_status(self.order.id, S.CONFIRMED, actor=self.merchant)

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, S.CONFIRMED)


class CancelOrderTests(OrderFixtureMixin, TestCase):

    def setUp(self):
        self.make_fixtures()

    def test_customer_cancels_pending_order(self):
        order = self.make_order()
        OrderService.cancel_order(order.id, "Cambié de opinión", actor=self.customer)
        order.refresh_from_db()
        self.assertEqual(order.status, S.CANCELLED)
        self.assertEqual(order.cancellation_reason, "Cambié de opinión")
        self.assertIsNotNone(order.cancelled_at)

    def test_customer_cancels_ready_order(self):
        order = self.make_order(status=S.READY)
        OrderService.cancel_order(order.id, "Ya no lo necesito", actor=self.customer)
        order.refresh_from_db()
        self.assertEqual(order.status, S.CANCELLED)
        self.assertTrue(order.history.filter(from_status=S.READY, to_status=S.CANCELLED).exists())

    def test_merchant_cancels_ready_order(self):
        order = self.make_order(status=S.READY)
        OrderService.cancel_order(order.id, "Sin domiciliarios", actor=self.merchant)
        order.refresh_from_db()
        self.assertEqual(order.status, S.CANCELLED)

    def test_other_merchant_cannot_cancel_ready_order(self):
        order = self.make_order(status=S.READY)
        with self.assertRaises(PermissionDenied):
            OrderService.cancel_order(order.id, "", actor=self.merchant2)
        order.refresh_from_db()
        self.assertEqual(order.status, S.READY)

    def test_cannot_cancel_en_route(self):
        order = self.make_order(status=S.EN_ROUTE)
        with self.assertRaises(BusinessLogicException) as ctx:
            OrderService.cancel_order(order.id, "Muy tarde", actor=self.customer)
        self.assertEqual(ctx.exception.code, "not_cancellable")

    def test_customer_cannot_cancel_someone_elses_order(self):
        order = self.make_order()
        stranger = User.objects.create_user("otro@example.com", "x", role=Role.CUSTOMER)
        with self.assertRaises(PermissionDenied):
            OrderService.cancel_order(order.id, "", actor=stranger)


class CartAndCheckoutTests(OrderFixtureMixin, TestCase):

    def setUp(self):
        self.make_fixtures()

    def test_cart_operations(self):
        CartService.add_item(self.customer, self.burger.id, 1)
        CartService.add_item(self.customer, self.burger.id, 2)
        self.assertEqual(CartService.item_count(self.customer), 3)
        self.assertTrue(CartService.is_single_store(self.customer))

        CartService.add_item(self.customer, self.pills.id, 1)
        self.assertFalse(CartService.is_single_store(self.customer))

        CartService.set_quantity(self.customer, self.burger.id, 0)
        self.assertEqual(CartService.item_count(self.customer), 1)

        CartService.remove_item(self.customer, self.pills.id)
        self.assertEqual(CartService.item_count(self.customer), 0)

    def test_inactive_product_cannot_be_added(self):
        self.soda.is_active = False
        self.soda.save()
        with self.assertRaises(BusinessLogicException):
            CartService.add_item(self.customer, self.soda.id, 1)

    def test_checkout_creates_one_order_per_store(self):
        CartService.add_item(self.customer, self.burger.id, 2)
        CartService.add_item(self.customer, self.pills.id, 1)

        orders = CheckoutService.checkout(self.customer, "Calle 50 # 10-10", payment_method="cash")

        self.assertEqual(len(orders), 2)
        by_store = {o.store_id: o for o in orders}
        self.assertEqual(by_store[self.store.id].subtotal, Decimal("36000"))
        self.assertEqual(by_store[self.store2.id].total, Decimal("11000"))
        self.assertTrue(all(o.status == S.PENDING_CASH for o in orders))
        self.assertEqual(CartService.item_count(self.customer), 0)

    def test_empty_cart(self):
        with self.assertRaises(BusinessLogicException) as ctx:
            CheckoutService.checkout(self.customer, "Calle 1")
        self.assertEqual(ctx.exception.code, "empty_cart")

    def test_partial_failure_keeps_earlier_orders_and_cart(self):
        CartService.add_item(self.customer, self.burger.id, 1)
        CartService.add_item(self.customer, self.pills.id, 1)

        real_create = OrderService.create_order
        calls = []

        def flaky(**kwargs):
            if calls:
                raise RuntimeError("database went away")
            calls.append(kwargs["store"].id)
            return real_create(**kwargs)

        with patch.object(OrderService, "create_order", side_effect=flaky):
            with self.assertRaises(BusinessLogicException) as ctx:
                CheckoutService.checkout(self.customer, "Calle 2")

        self.assertEqual(ctx.exception.code, "checkout_partial")
        created = ctx.exception.extra["created_orders"]
        self.assertEqual(len(created), 1)
        self.assertTrue(Order.objects.filter(id=created[0]).exists())
        self.assertEqual(Order.objects.count(), 1)
        # Cart survives a partial failure
        self.assertEqual(CartItem.objects.filter(cart__customer=self.customer).count(), 2)

    def test_first_group_failure_propagates_original_error(self):
        CartService.add_item(self.customer, self.burger.id, 1)
        self.burger.is_active = False
        self.burger.save()

        with self.assertRaises(BusinessLogicException) as ctx:
            CheckoutService.checkout(self.customer, "Calle 3")
        self.assertEqual(ctx.exception.code, "product_unavailable")
        self.assertFalse(Order.objects.exists())

    def test_preview(self):
        CartService.add_item(self.customer, self.burger.id, 1)
        CartService.add_item(self.customer, self.pills.id, 2)
        preview = CheckoutService.preview(self.customer)
        self.assertEqual(len(preview["orders"]), 2)
        # (18000 + 6000) + (10000 + 6000)
        self.assertEqual(preview["total"], Decimal("40000"))


class OrderApiTests(OrderFixtureMixin, TestCase):

    def setUp(self):
        self.make_fixtures()
        self.client = APIClient()

    def test_customer_checkout_flow(self):
        self.client.force_authenticate(self.customer)
        response = self.client.post(
            "/api/v1/orders/cart/add_item/", {"product_id": str(self.burger.id), "quantity": 2}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["item_count"], 2)

        response = self.client.post(
            "/api/v1/orders/checkout/",
            {"delivery_address": "Calle 80 # 20-15", "payment_method": "card"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        order = response.data["orders"][0]
        self.assertEqual(order["status"], S.PENDING)
        self.assertEqual(order["badge"]["label"], "Pendiente")
        self.assertTrue(order["can_cancel"])

        response = self.client.get("/api/v1/orders/my-orders/")
        self.assertEqual(len(response.data), 1)

    def test_merchant_sets_status(self):
        order = self.make_order()
        self.client.force_authenticate(self.merchant)

        url = f"/api/v1/orders/store-orders/{order.id}/set-status/"
        response = self.client.post(url, {"status": S.CONFIRMED}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], S.CONFIRMED)

        response = self.client.post(url, {"status": S.READY}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "invalid_transition")

    def test_merchant_cannot_see_other_store_orders(self):
        order = self.make_order()
        self.client.force_authenticate(self.merchant2)
        response = self.client.post(
            f"/api/v1/orders/store-orders/{order.id}/set-status/", {"status": S.CONFIRMED}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_customer_cancel_endpoint(self):
        order = self.make_order()
        self.client.force_authenticate(self.customer)
        response = self.client.post(f"/api/v1/orders/my-orders/{order.id}/cancel/", {"reason": "Error"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], S.CANCELLED)
        self.assertTrue(OrderStatusHistory.objects.filter(order=order, to_status=S.CANCELLED).exists())

    def test_status_badges_endpoint_is_public(self):
        response = self.client.get("/api/v1/orders/status-badges/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["EN_ROUTE"]["label"], "En camino")

    def test_malformed_order_id_is_not_found(self):
        self.client.force_authenticate(self.customer)
        response = self.client.post("/api/v1/orders/my-orders/abc/cancel/", {}, format="json")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class OrderSocketTests(OrderFixtureMixin, TransactionTestCase):

    def setUp(self):
        self.make_fixtures()
        self.order = self.make_order()
        self.path = f"/ws/orders/{self.order.id}/"

    async def test_access_rules(self):
        stranger = await database_sync_to_async(User.objects.create_user)(
            "otro@example.com", "x", role=Role.CUSTOMER
        )
        for user, allowed in [
            (self.customer, True),
            (self.merchant, True),
            (self.merchant2, False),
            (self.courier, False),
            (stranger, False),
            (None, False),
        ]:
            communicator, connected = await open_socket(websocket_urlpatterns, user, self.path)
            self.assertEqual(connected, allowed, user)
            if connected:
                await communicator.disconnect()

    async def test_assigned_courier_may_follow(self):
        from apps.delivery.models import Delivery
        await database_sync_to_async(Delivery.objects.create)(
            order=self.order, courier=self.courier, status=Delivery.Status.ASSIGNED
        )
        communicator, connected = await open_socket(websocket_urlpatterns, self.courier, self.path)
        self.assertTrue(connected)
        await communicator.disconnect()

    async def test_customer_receives_status_change(self):
        communicator, _ = await open_socket(websocket_urlpatterns, self.customer, self.path)

        with patch("apps.notifications.tasks.notify_order_status_change.delay"):
            await database_sync_to_async(OrderService.update_status)(
                self.order.id, S.CONFIRMED, actor=self.merchant
            )

        message = await communicator.receive_json_from(timeout=3)
        self.assertEqual(message["type"], "order.updated")
        self.assertEqual(message["data"]["status"], S.CONFIRMED)
        await communicator.disconnect()
