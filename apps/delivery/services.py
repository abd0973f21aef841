import logging
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Exists, OuterRef, Sum
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied

from apps.orders.models import Order
from apps.orders.services import OrderService
from apps.utils.exceptions import BusinessLogicException
from apps.utils.validators import is_valid_uuid, validate_lat_lng
from .models import Delivery, CourierLocation
from .realtime import broadcast_delivery_update, broadcast_courier_location

logger = logging.getLogger(__name__)

AVAILABLE_ORDER_STATUSES = [
    Order.Status.READY,
    Order.Status.PENDING,
    Order.Status.PENDING_CASH,
]


class DeliveryService:

    @staticmethod
    def available_orders():
        """
        Orders a courier may claim: ready or still pending, with no
        active delivery. Newest first.
        """
        active = Delivery.objects.active().filter(order=OuterRef("pk"))
        return (
            Order.objects.filter(status__in=AVAILABLE_ORDER_STATUSES, is_pos=False)
            .filter(~Exists(active))
            .select_related("store")
            .order_by("-created_at")
        )

    @staticmethod
    def claim_order(order_id, courier) -> Delivery:
        """
        Assign the order to the courier and put it on the road.
        """
        try:
            with transaction.atomic():
                order = Order.objects.select_for_update().get(id=order_id)
                if Delivery.objects.active().filter(order=order).exists():
                    raise BusinessLogicException(
                        "This order already has a courier.", code="already_claimed"
                    )
                if order.status not in AVAILABLE_ORDER_STATUSES:
                    raise BusinessLogicException(
                        "This order is not available for delivery.", code="order_unavailable",
                        extra={"current_status": order.status},
                    )

                delivery = Delivery.objects.create(
                    order=order,
                    courier=courier,
                    status=Delivery.Status.ASSIGNED,
                    assigned_at=timezone.now(),
                )
                OrderService.update_status(
                    order.id, Order.Status.EN_ROUTE, actor=courier, force=True,
                    note="Claimed by courier",
                )
        except Order.DoesNotExist:
            raise NotFound("Order not found.")
        except IntegrityError:
            raise BusinessLogicException("This order already has a courier.", code="already_claimed")

        logger.info("Order claimed", extra={"order_id": order_id, "courier_id": courier.pk})
        transaction.on_commit(lambda: broadcast_delivery_update(delivery, event="delivery.assigned"))
        return delivery

    @staticmethod
    @transaction.atomic
    def update_delivery_status(order_id, new_status, courier=None) -> Delivery:
        """
        Move the active delivery of an order. DELIVERED also closes the order.
        """
        if new_status not in Delivery.Status.values:
            raise BusinessLogicException(
                f"Invalid status. Must be one of: {', '.join(Delivery.Status.values)}",
                code="invalid_status",
            )

        delivery = (
            Delivery.objects.select_for_update()
            .active()
            .filter(order_id=order_id)
            .first()
        )
        if delivery is None:
            raise NotFound("Delivery not found.")
        if courier is not None and delivery.courier_id != courier.pk:
            raise PermissionDenied("This delivery is assigned to another courier.")

        now = timezone.now()
        delivery.status = new_status
        if new_status == Delivery.Status.PICKED_UP:
            delivery.picked_up_at = now
        elif new_status == Delivery.Status.DELIVERED:
            delivery.delivered_at = now
        delivery.save()

        if new_status == Delivery.Status.DELIVERED:
            OrderService.update_status(
                order_id, Order.Status.DELIVERED, actor=courier, force=True,
                note="Delivered by courier",
            )

        logger.info(
            "Delivery status -> %s", new_status,
            extra={"order_id": order_id, "courier_id": delivery.courier_id},
        )
        transaction.on_commit(lambda: broadcast_delivery_update(delivery))
        return delivery

    @staticmethod
    def current_delivery(courier):
        return (
            Delivery.objects.active()
            .filter(courier=courier)
            .select_related("order", "order__store")
            .first()
        )

    @staticmethod
    def update_location(courier, lat, lng) -> CourierLocation:
        try:
            lat, lng = float(lat), float(lng)
            validate_lat_lng(lat, lng)
        except (TypeError, ValueError):
            raise BusinessLogicException("Coordinates out of range.", code="invalid_coordinates")

        location, _ = CourierLocation.objects.update_or_create(
            courier=courier, defaults={"lat": lat, "lng": lng}
        )
        broadcast_courier_location(courier.pk, lat, lng, location.updated_at)
        return location

    @staticmethod
    def courier_stats(courier) -> dict:
        """
        Delivered count and earnings: a flat commission on order totals.
        """
        delivered = Delivery.objects.filter(courier=courier, status=Delivery.Status.DELIVERED)
        order_total = delivered.aggregate(total=Sum("order__total"))["total"] or Decimal("0")
        earnings = (order_total * settings.COURIER_COMMISSION_RATE).quantize(
            Decimal("1"), rounding=ROUND_HALF_UP
        )
        return {
            "total_deliveries": delivered.count(),
            "total_earnings": earnings,
        }

    @staticmethod
    def delivery_history(courier, limit=None):
        limit = limit or settings.COURIER_HISTORY_LIMIT
        return (
            Delivery.objects.filter(courier=courier, status=Delivery.Status.DELIVERED)
            .select_related("order", "order__store")
            .order_by("-delivered_at")[:limit]
        )

    @staticmethod
    def can_track_courier(user, courier_id) -> bool:
        """
        The courier themself, or a customer with an active delivery by them.
        """
        if not is_valid_uuid(courier_id):
            return False
        if str(user.pk) == str(courier_id):
            return True
        return Delivery.objects.active().filter(
            courier_id=courier_id, order__customer=user
        ).exists()
