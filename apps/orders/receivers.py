import logging

from django.db import transaction
from django.dispatch import receiver

from .realtime import broadcast_order_change
from .signals import order_created, order_status_changed

logger = logging.getLogger(__name__)


def enqueue_status_notification(order_id, new_status):
    """
    Queue the customer notification. Broker failures are logged, never raised:
    the status change is already committed.
    """
    from apps.notifications.tasks import notify_order_status_change
    try:
        notify_order_status_change.delay(str(order_id), new_status)
    except Exception:
        logger.exception("Could not enqueue order notification", extra={"order_id": order_id})


@receiver(order_created)
def push_new_order(sender, order, **kwargs):
    transaction.on_commit(lambda: broadcast_order_change(order, event="order.created"))


@receiver(order_status_changed)
def push_status_change(sender, order, old_status, new_status, **kwargs):
    transaction.on_commit(lambda: broadcast_order_change(order))

    if order.customer_id:
        transaction.on_commit(lambda: enqueue_status_notification(order.id, new_status))
