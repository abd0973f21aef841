from apps.utils.realtime import (
    broadcast, order_group, store_group, DELIVERIES_FEED_GROUP,
)
from .state_machine import get_status_badge


def order_payload(order) -> dict:
    return {
        "order_id": str(order.id),
        "store_id": str(order.store_id),
        "status": order.status,
        "badge": get_status_badge(order.status),
        "total": str(order.total),
        "updated_at": order.updated_at.isoformat() if order.updated_at else None,
    }


def broadcast_order_change(order, event="order.updated"):
    """
    Push an order row change to every interested dashboard:
    the order's own feed, its store and the courier delivery feed.
    """
    payload = order_payload(order)
    broadcast(order_group(order.id), event, payload)
    broadcast(store_group(order.store_id), event, payload)
    broadcast(DELIVERIES_FEED_GROUP, event, payload)
