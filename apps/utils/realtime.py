import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

logger = logging.getLogger(__name__)

DELIVERIES_FEED_GROUP = "deliveries_feed"


def courier_group(courier_id) -> str:
    return f"courier_{courier_id}"


def order_group(order_id) -> str:
    return f"order_{order_id}"


def store_group(store_id) -> str:
    return f"store_{store_id}"


def user_group(user_id) -> str:
    return f"notifications_{user_id}"


def broadcast(group_name: str, event: str, payload: dict):
    """
    Fire-and-forget push to a Channels group.
    Consumers receive it through their `realtime_event` handler.
    Transport errors are logged, never raised.
    """
    channel_layer = get_channel_layer()
    if not channel_layer:
        return

    try:
        async_to_sync(channel_layer.group_send)(
            group_name,
            {
                "type": "realtime.event",
                "event": event,
                "payload": payload,
            }
        )
    except Exception as e:
        logger.error("Failed to broadcast %s to %s: %s", event, group_name, e)
