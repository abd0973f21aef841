import logging

from celery import shared_task

from .models import NotificationKind
from .services import ORDER_STATUS_MESSAGES, notify_user, render_message

logger = logging.getLogger(__name__)


@shared_task
def notify_order_status_change(order_id: str, new_status: str):
    """
    Tell the customer their order moved. Statuses without a message are ignored.
    """
    from apps.orders.models import Order

    template = ORDER_STATUS_MESSAGES.get(new_status)
    if template is None:
        return None

    try:
        order = Order.objects.select_related("customer", "store").get(id=order_id)
    except Order.DoesNotExist:
        logger.warning("Order vanished before notification", extra={"order_id": order_id})
        return None

    if order.customer is None:
        return None

    title, body = render_message(*template, {"store": order.store.name})
    notification = notify_user(
        order.customer,
        kind=NotificationKind.ORDER,
        title=title,
        body=body,
        data={"order_id": str(order.id), "status": new_status},
    )
    logger.info("Order notification sent", extra={"order_id": order_id, "user_id": order.customer_id})
    return str(notification.id)
