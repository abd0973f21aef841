import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Sum
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied

from apps.accounts.models import Role
from apps.utils.exceptions import BusinessLogicException
from .models import Order, OrderItem, OrderStatusHistory, Cart, CartItem
from .pricing import calculate_totals, group_items_by_store
from .signals import order_created, order_status_changed
from .state_machine import (
    available_transitions, can_cancel, can_transition,
    MERCHANT_TARGETS, COURIER_TARGETS, CUSTOMER_TARGETS,
)

logger = logging.getLogger(__name__)


class CartService:
    """
    Per-customer cart. Lines from several stores may coexist.
    """

    @staticmethod
    def get_cart(user) -> Cart:
        cart, _ = Cart.objects.get_or_create(customer=user)
        return cart

    @staticmethod
    def _get_product(product_id):
        from apps.catalog.models import Product
        try:
            return Product.objects.select_related("store").get(
                id=product_id, is_active=True, store__is_active=True
            )
        except Product.DoesNotExist:
            raise BusinessLogicException("Product is not available.", code="product_unavailable")

    @staticmethod
    @transaction.atomic
    def add_item(user, product_id, quantity=1) -> Cart:
        if quantity <= 0:
            raise BusinessLogicException("Quantity must be positive.", code="invalid_quantity")

        product = CartService._get_product(product_id)
        cart = CartService.get_cart(user)
        item, created = CartItem.objects.select_for_update().get_or_create(
            cart=cart, product=product, defaults={"quantity": quantity}
        )
        if not created:
            item.quantity += quantity
            item.save(update_fields=["quantity"])
        return cart

    @staticmethod
    def set_quantity(user, product_id, quantity) -> Cart:
        """
        Quantity <= 0 removes the line.
        """
        cart = CartService.get_cart(user)
        if quantity <= 0:
            cart.items.filter(product_id=product_id).delete()
            return cart

        updated = cart.items.filter(product_id=product_id).update(quantity=quantity)
        if not updated:
            CartService.add_item(user, product_id, quantity)
        return cart

    @staticmethod
    def remove_item(user, product_id) -> Cart:
        cart = CartService.get_cart(user)
        cart.items.filter(product_id=product_id).delete()
        return cart

    @staticmethod
    def clear(user):
        Cart.objects.filter(customer=user).update(updated_at=timezone.now())
        CartItem.objects.filter(cart__customer=user).delete()

    @staticmethod
    def item_count(user) -> int:
        return CartItem.objects.filter(cart__customer=user).aggregate(n=Sum("quantity"))["n"] or 0

    @staticmethod
    def is_single_store(user) -> bool:
        stores = (
            CartItem.objects.filter(cart__customer=user)
            .values_list("product__store_id", flat=True)
            .distinct()
        )
        return stores.count() <= 1


class OrderService:

    @staticmethod
    def initial_status(payment_method) -> str:
        if payment_method == Order.PaymentMethod.CASH:
            return Order.Status.PENDING_CASH
        return Order.Status.PENDING

    @staticmethod
    @transaction.atomic
    def create_order(customer, store, lines, payment_method=Order.PaymentMethod.CASH,
                     delivery_address="", delivery_lat=None, delivery_lng=None, notes=""):
        """
        Create one order and its items atomically.

        `lines`: [{"product": Product, "quantity": int}, ...], all from `store`.
        Prices are read from the product rows, never from the client.
        """
        if not lines:
            raise BusinessLogicException("Order must contain at least one product.", code="empty_order")
        if not (delivery_address or "").strip():
            raise BusinessLogicException("Delivery address is required.", code="address_required")
        if payment_method not in Order.PaymentMethod.values:
            raise BusinessLogicException("Unsupported payment method.", code="invalid_payment_method")

        priced = []
        for line in lines:
            product = line["product"]
            qty = int(line["quantity"])
            if product.store_id != store.id:
                raise BusinessLogicException(
                    f"{product.name} belongs to another store.", code="invalid_product"
                )
            if not product.is_active:
                raise BusinessLogicException(
                    f"{product.name} is currently unavailable.", code="product_unavailable"
                )
            if qty <= 0:
                raise BusinessLogicException("Quantity must be positive.", code="invalid_quantity")
            priced.append({"product": product, "price": product.price, "quantity": qty})

        totals = calculate_totals(priced)
        status = OrderService.initial_status(payment_method)

        order = Order.objects.create(
            customer=customer,
            store=store,
            status=status,
            payment_method=payment_method,
            delivery_address=delivery_address.strip(),
            delivery_lat=delivery_lat,
            delivery_lng=delivery_lng,
            notes=notes or "",
            **totals,
        )
        OrderItem.objects.bulk_create([
            OrderItem(
                order=order,
                product=line["product"],
                product_name=line["product"].name,
                unit_price=line["price"],
                quantity=line["quantity"],
            )
            for line in priced
        ])
        OrderStatusHistory.objects.create(
            order=order, to_status=status, changed_by=customer, note="Order created"
        )

        logger.info("Order created", extra={"order_id": order.id, "store_id": store.id})
        order_created.send(sender=Order, order=order)
        return order

    @staticmethod
    def _check_actor(order, new_status, actor):
        if actor is None or actor.is_staff:
            return

        if actor.role == Role.MERCHANT:
            allowed = order.store.owner_id == actor.pk and new_status in MERCHANT_TARGETS
        elif actor.role == Role.COURIER:
            from apps.delivery.models import Delivery
            allowed = new_status in COURIER_TARGETS and Delivery.objects.active().filter(
                order=order, courier=actor
            ).exists()
        elif actor.role == Role.CUSTOMER:
            allowed = order.customer_id == actor.pk and new_status in CUSTOMER_TARGETS
        else:
            allowed = False

        if not allowed:
            raise PermissionDenied("You cannot set this order to that status.")

    @staticmethod
    @transaction.atomic
    def update_status(order_id, new_status, actor=None, force=False, note=""):
        """
        Move an order to `new_status`.

        Illegal transitions and actors raise and leave the row unchanged.
        `force` skips both checks; used by delivery flows that jump states.
        """
        try:
            order = Order.objects.select_for_update().select_related("store").get(id=order_id)
        except Order.DoesNotExist:
            raise NotFound("Order not found.")

        if new_status not in Order.Status.values:
            raise BusinessLogicException(f"Unknown status: {new_status}", code="invalid_status")

        old_status = order.status
        if old_status == new_status:
            return order

        if not force:
            OrderService._check_actor(order, new_status, actor)
            # Cancelling follows can_cancel, which also covers READY
            if new_status == Order.Status.CANCELLED:
                allowed = can_cancel(old_status)
            else:
                allowed = can_transition(old_status, new_status)
            if not allowed:
                raise BusinessLogicException(
                    f"Cannot move order from {old_status} to {new_status}.",
                    code="invalid_transition",
                    extra={
                        "current_status": old_status,
                        "allowed": available_transitions(old_status),
                    },
                )

        order.status = new_status
        update_fields = ["status", "updated_at"]
        if new_status == Order.Status.CANCELLED:
            order.cancelled_at = timezone.now()
            order.cancellation_reason = note
            update_fields += ["cancelled_at", "cancellation_reason"]
        order.save(update_fields=update_fields)

        OrderStatusHistory.objects.create(
            order=order,
            from_status=old_status,
            to_status=new_status,
            changed_by=actor,
            note=note,
        )

        logger.info(
            "Order status %s -> %s", old_status, new_status,
            extra={"order_id": order.id, "user_id": getattr(actor, "pk", None)},
        )
        order_status_changed.send(
            sender=Order, order=order, old_status=old_status, new_status=new_status, actor=actor
        )
        return order

    @staticmethod
    def cancel_order(order_id, reason="", actor=None):
        try:
            order = Order.objects.get(id=order_id)
        except Order.DoesNotExist:
            raise NotFound("Order not found.")

        if not can_cancel(order.status):
            raise BusinessLogicException(
                "Order can no longer be cancelled.", code="not_cancellable",
                extra={"current_status": order.status},
            )
        return OrderService.update_status(
            order_id, Order.Status.CANCELLED, actor=actor, note=reason or "Cancelled"
        )


class CheckoutService:

    @staticmethod
    def checkout(customer, delivery_address, payment_method=Order.PaymentMethod.CASH,
                 delivery_lat=None, delivery_lng=None, notes=""):
        """
        Turn the customer's cart into one order per store.

        Orders are created one after another; each is atomic on its own but
        there is no transaction across stores. If a later store fails, the
        orders already created stay and their ids are reported in the error.
        The cart is cleared only when every order was created.
        """
        items = list(
            CartItem.objects.filter(cart__customer=customer)
            .select_related("product", "product__store")
        )
        if not items:
            raise BusinessLogicException("Cart is empty.", code="empty_cart")

        lines = [
            {
                "store_id": item.product.store_id,
                "store": item.product.store,
                "product": item.product,
                "price": item.product.price,
                "quantity": item.quantity,
            }
            for item in items
        ]

        created = []
        for group in group_items_by_store(lines):
            try:
                order = OrderService.create_order(
                    customer=customer,
                    store=group["items"][0]["store"],
                    lines=group["items"],
                    payment_method=payment_method,
                    delivery_address=delivery_address,
                    delivery_lat=delivery_lat,
                    delivery_lng=delivery_lng,
                    notes=notes,
                )
            except Exception as e:
                if not created:
                    raise
                logger.error(
                    "Checkout failed after %s orders: %s", len(created), e,
                    extra={"user_id": customer.pk},
                )
                raise BusinessLogicException(
                    "Some orders could not be created.",
                    code="checkout_partial",
                    extra={"created_orders": [str(o.id) for o in created]},
                ) from e
            created.append(order)

        CartService.clear(customer)
        return created

    @staticmethod
    def preview(customer) -> dict:
        """
        Per-store totals the client shows before placing the orders.
        """
        items = CartItem.objects.filter(cart__customer=customer).select_related("product")
        lines = [
            {"store_id": i.product.store_id, "price": i.product.price, "quantity": i.quantity}
            for i in items
        ]
        groups = []
        grand_total = Decimal("0")
        for group in group_items_by_store(lines):
            totals = calculate_totals(group["items"])
            grand_total += totals["total"]
            groups.append({"store_id": str(group["store_id"]), **totals})
        return {"orders": groups, "total": grand_total}
