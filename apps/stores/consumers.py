import json

from django.core.exceptions import ValidationError
from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer

from apps.utils.realtime import store_group
from .models import Store


class StoreOrdersConsumer(AsyncWebsocketConsumer):
    """
    Live order changes for a store dashboard. Owner only.
    """
    async def connect(self):
        self.store_id = self.scope["url_route"]["kwargs"]["store_id"]
        user = self.scope["user"]

        if not user.is_authenticated or not await self.owns_store(user, self.store_id):
            await self.close()
            return

        self.group_name = store_group(self.store_id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()

    async def disconnect(self, close_code):
        if hasattr(self, "group_name"):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    @database_sync_to_async
    def owns_store(self, user, store_id):
        try:
            return Store.objects.filter(id=store_id, owner=user).exists()
        except ValidationError:
            return False

    async def realtime_event(self, event):
        await self.send(text_data=json.dumps({
            "type": event["event"],
            "data": event["payload"],
        }))
