from django.urls import re_path

from apps.utils.validators import UUID_PATTERN
from . import consumers

websocket_urlpatterns = [
    re_path(rf"ws/orders/(?P<order_id>{UUID_PATTERN})/$", consumers.OrderStatusConsumer.as_asgi()),
]
