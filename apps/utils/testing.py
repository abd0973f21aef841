from channels.db import database_sync_to_async
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator

from apps.accounts.middleware import TicketAuthMiddleware
from apps.accounts.services import issue_ws_ticket


async def open_socket(websocket_urlpatterns, user, path):
    """
    Connect through the ticket middleware, as a browser would.
    `user=None` connects without a ticket.
    """
    application = TicketAuthMiddleware(URLRouter(websocket_urlpatterns))
    if user is not None:
        ticket = await database_sync_to_async(issue_ws_ticket)(user)
        path = f"{path}?ticket={ticket}"
    communicator = WebsocketCommunicator(application, path)
    connected, _ = await communicator.connect()
    return communicator, connected
