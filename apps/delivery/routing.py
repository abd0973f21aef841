from django.urls import re_path

from apps.utils.validators import UUID_PATTERN
from . import consumers

websocket_urlpatterns = [
    re_path(rf"ws/tracking/courier/(?P<courier_id>{UUID_PATTERN})/$", consumers.CourierTrackingConsumer.as_asgi()),
    re_path(r'ws/deliveries/feed/$', consumers.DeliveryFeedConsumer.as_asgi()),
]
