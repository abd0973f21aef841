# apps/notifications/services.py
import logging
from string import Template

from django.db import transaction
from django.utils import timezone

from apps.utils.realtime import broadcast, user_group
from .models import Notification, NotificationKind

logger = logging.getLogger(__name__)

# ${var} placeholders, keyed by order status
ORDER_STATUS_MESSAGES = {
    "CONFIRMED": ("Pedido confirmado", "${store} confirmó tu pedido."),
    "PREPARING": ("Pedido en preparación", "${store} está preparando tu pedido."),
    "READY": ("Pedido listo", "Tu pedido de ${store} está listo para recogida."),
    "EN_ROUTE": ("Pedido en camino", "Un domiciliario lleva tu pedido de ${store}."),
    "DELIVERED": ("Pedido entregado", "Tu pedido de ${store} fue entregado. ¡Buen provecho!"),
    "CANCELLED": ("Pedido cancelado", "Tu pedido de ${store} fue cancelado."),
}


def render_message(title_template: str, body_template: str, context: dict | None) -> tuple[str, str]:
    context = context or {}
    return (
        Template(title_template).safe_substitute(**context),
        Template(body_template).safe_substitute(**context),
    )


def serialize_notification(notification: Notification) -> dict:
    return {
        "id": str(notification.id),
        "kind": notification.kind,
        "title": notification.title,
        "body": notification.body,
        "data": notification.data,
        "is_read": notification.is_read,
        "created_at": notification.created_at.isoformat(),
    }


def notify_user(user, kind=NotificationKind.INFO, title="", body="", data=None) -> Notification | None:
    """
    Main entry point for other apps.

    Creates the inbox row and pushes it to the user's live feed
    once the surrounding transaction commits.
    """
    if not user:
        return None

    notification = Notification.objects.create(
        user=user,
        kind=kind,
        title=title,
        body=body or title,
        data=data or {},
    )
    payload = serialize_notification(notification)
    transaction.on_commit(
        lambda: broadcast(user_group(user.pk), "notification.created", payload)
    )
    return notification


def mark_read(user, notification_id) -> Notification:
    notification = Notification.objects.get(id=notification_id, user=user)
    notification.mark_read()
    return notification


def mark_all_read(user) -> int:
    return Notification.objects.filter(user=user, is_read=False).update(
        is_read=True, read_at=timezone.now(), updated_at=timezone.now()
    )


def unread_count(user) -> int:
    return Notification.objects.filter(user=user, is_read=False).count()
