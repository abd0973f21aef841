from django.urls import re_path

from apps.utils.validators import UUID_PATTERN
from .consumers import StoreOrdersConsumer

websocket_urlpatterns = [
    re_path(rf"ws/stores/(?P<store_id>{UUID_PATTERN})/orders/$", StoreOrdersConsumer.as_asgi()),
]
