from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from django.contrib.auth.models import AnonymousUser
from django.contrib.auth import get_user_model

from .services import consume_ws_ticket


@database_sync_to_async
def get_user_from_id(user_id):
    User = get_user_model()
    try:
        return User.objects.get(id=user_id, is_active=True)
    except User.DoesNotExist:
        return AnonymousUser()


@database_sync_to_async
def _consume(ticket):
    return consume_ws_ticket(ticket)


class TicketAuthMiddleware:
    """
    Channels middleware: authenticates a websocket via a one-time ticket
    passed as `?ticket=...`.
    """
    def __init__(self, inner):
        self.inner = inner

    async def __call__(self, scope, receive, send):
        query_string = scope.get("query_string", b"").decode("utf-8")
        params = parse_qs(query_string)
        ticket = params.get("ticket", [None])[0]

        user_id = await _consume(ticket) if ticket else None
        scope["user"] = await get_user_from_id(user_id) if user_id else AnonymousUser()

        return await self.inner(scope, receive, send)
