import json

from django.core.exceptions import ValidationError
from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer

from apps.utils.realtime import order_group
from .models import Order


class OrderStatusConsumer(AsyncWebsocketConsumer):
    """
    Live status of one order, for its customer, its store owner
    or the courier delivering it.
    """
    async def connect(self):
        self.order_id = self.scope["url_route"]["kwargs"]["order_id"]
        self.user = self.scope["user"]

        if self.user.is_anonymous or not await self.can_access_order(self.user, self.order_id):
            await self.close()
            return

        self.group_name = order_group(self.order_id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()

    async def disconnect(self, close_code):
        if hasattr(self, "group_name"):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    @database_sync_to_async
    def can_access_order(self, user, order_id):
        try:
            order = Order.objects.select_related("store").get(id=order_id)
        except (Order.DoesNotExist, ValueError, ValidationError):
            return False
        if order.customer_id == user.pk or order.store.owner_id == user.pk:
            return True
        return order.deliveries.filter(courier=user).exists()

    async def realtime_event(self, event):
        await self.send(text_data=json.dumps({
            "type": event["event"],
            "data": event["payload"],
        }))
