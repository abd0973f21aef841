from apps.utils.realtime import (
    broadcast, courier_group, order_group, DELIVERIES_FEED_GROUP,
)


def delivery_payload(delivery) -> dict:
    return {
        "delivery_id": str(delivery.id),
        "order_id": str(delivery.order_id),
        "courier_id": str(delivery.courier_id) if delivery.courier_id else None,
        "status": delivery.status,
        "assigned_at": delivery.assigned_at.isoformat() if delivery.assigned_at else None,
        "picked_up_at": delivery.picked_up_at.isoformat() if delivery.picked_up_at else None,
        "delivered_at": delivery.delivered_at.isoformat() if delivery.delivered_at else None,
    }


def broadcast_delivery_update(delivery, event="delivery.updated"):
    payload = delivery_payload(delivery)
    broadcast(order_group(delivery.order_id), event, payload)
    broadcast(DELIVERIES_FEED_GROUP, event, payload)


def broadcast_courier_location(courier_id, lat, lng, updated_at=None):
    broadcast(courier_group(courier_id), "courier.location", {
        "courier_id": str(courier_id),
        "lat": lat,
        "lng": lng,
        "updated_at": updated_at.isoformat() if updated_at else None,
    })
