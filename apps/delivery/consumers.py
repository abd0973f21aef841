import json
import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer

from apps.accounts.models import Role
from apps.utils.exceptions import BusinessLogicException
from apps.utils.realtime import courier_group, DELIVERIES_FEED_GROUP
from .services import DeliveryService

logger = logging.getLogger(__name__)


class CourierTrackingConsumer(AsyncWebsocketConsumer):
    """
    Live location of one courier.
    Subscribers: the courier, or a customer whose order they carry.
    The courier may also push `location_update` messages here.
    """
    async def connect(self):
        self.courier_id = self.scope["url_route"]["kwargs"]["courier_id"]
        self.user = self.scope["user"]

        if self.user.is_anonymous:
            await self.close()
            return

        if not await self.can_track(self.user, self.courier_id):
            logger.warning(
                "Unauthorized tracking socket", extra={"user_id": self.user.pk, "courier_id": self.courier_id}
            )
            await self.close()
            return

        self.group_name = courier_group(self.courier_id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()

    async def disconnect(self, close_code):
        if hasattr(self, "group_name"):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    @database_sync_to_async
    def can_track(self, user, courier_id):
        return DeliveryService.can_track_courier(user, courier_id)

    @database_sync_to_async
    def save_location(self, lat, lng):
        DeliveryService.update_location(self.user, lat, lng)

    async def receive(self, text_data):
        try:
            data = json.loads(text_data)
        except ValueError:
            return

        if data.get("type") != "location_update":
            return
        # Only the courier may move their own marker
        if str(self.user.pk) != str(self.courier_id):
            return

        try:
            await self.save_location(data.get("lat"), data.get("lng"))
        except BusinessLogicException as e:
            await self.send(text_data=json.dumps({"type": "error", "error": e.message, "code": e.code}))

    async def realtime_event(self, event):
        await self.send(text_data=json.dumps({
            "type": event["event"],
            "data": event["payload"],
        }))


class DeliveryFeedConsumer(AsyncWebsocketConsumer):
    """
    Order and delivery changes for courier dashboards.
    """
    async def connect(self):
        user = self.scope["user"]
        if not user.is_authenticated or user.role != Role.COURIER:
            await self.close()
            return

        self.group_name = DELIVERIES_FEED_GROUP
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()

    async def disconnect(self, close_code):
        if hasattr(self, "group_name"):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def realtime_event(self, event):
        await self.send(text_data=json.dumps({
            "type": event["event"],
            "data": event["payload"],
        }))
