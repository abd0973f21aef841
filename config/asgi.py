# config/asgi.py
import os
import django

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')
django.setup()

from django.core.asgi import get_asgi_application
from channels.routing import ProtocolTypeRouter, URLRouter
from channels.security.websocket import AllowedHostsOriginValidator

from apps.accounts.middleware import TicketAuthMiddleware

from apps.delivery import routing as delivery_routing
from apps.notifications import routing as notifications_routing
from apps.orders import routing as orders_routing
from apps.stores import routing as stores_routing

websocket_urlpatterns = (
    delivery_routing.websocket_urlpatterns
    + orders_routing.websocket_urlpatterns
    + stores_routing.websocket_urlpatterns
    + notifications_routing.websocket_urlpatterns
)

application = ProtocolTypeRouter({
    "http": get_asgi_application(),
    "websocket": AllowedHostsOriginValidator(
        TicketAuthMiddleware(
            URLRouter(
                websocket_urlpatterns
            )
        )
    ),
})
