import json

from channels.generic.websocket import AsyncWebsocketConsumer

from apps.utils.realtime import user_group


class NotificationConsumer(AsyncWebsocketConsumer):
    """
    Live inbox inserts for the connected user.
    """
    async def connect(self):
        user = self.scope["user"]
        if not user.is_authenticated:
            await self.close()
            return

        self.group_name = user_group(user.pk)
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
