import logging
import secrets

from django.conf import settings
from django.core.cache import cache

from .models import Role

logger = logging.getLogger(__name__)

DASHBOARD_PATHS = {
    Role.MERCHANT: "/store/dashboard",
    Role.CUSTOMER: "/customer/dashboard",
    Role.COURIER: "/courier/dashboard",
}

LOGIN_PATHS = {
    Role.MERCHANT: "/store/login",
    Role.CUSTOMER: "/customer/login",
    Role.COURIER: "/courier/login",
}

GUEST_REDIRECT = LOGIN_PATHS[Role.CUSTOMER]

WS_TICKET_PREFIX = "ws_ticket:"


def login_path_for(role) -> str:
    return LOGIN_PATHS.get(role, GUEST_REDIRECT)


def dashboard_path_for(user) -> str:
    """
    Post-login redirect target.
    Anonymous users and users without a known role go to the customer login.
    """
    if user is None or not getattr(user, "is_authenticated", False):
        return GUEST_REDIRECT
    return DASHBOARD_PATHS.get(getattr(user, "role", None), GUEST_REDIRECT)


def issue_ws_ticket(user) -> str:
    """
    One-time ticket so websocket URLs never carry the JWT.
    """
    ticket = secrets.token_urlsafe(24)
    cache.set(f"{WS_TICKET_PREFIX}{ticket}", str(user.pk), timeout=settings.WS_TICKET_TTL)
    logger.debug("Issued websocket ticket", extra={"user_id": user.pk})
    return ticket


def consume_ws_ticket(ticket: str):
    """
    Returns the user id bound to the ticket and invalidates it, or None.
    """
    if not ticket:
        return None
    cache_key = f"{WS_TICKET_PREFIX}{ticket}"
    user_id = cache.get(cache_key)
    if user_id:
        cache.delete(cache_key)
    return user_id
