"""
Order status transitions and their display badges.

    PENDING / PENDING_CASH -> CONFIRMED | CANCELLED
    CONFIRMED              -> PREPARING | CANCELLED
    PREPARING              -> READY     | CANCELLED
    READY                  -> EN_ROUTE
    EN_ROUTE               -> DELIVERED
    DELIVERED, CANCELLED   terminal
"""
from .models.order import Order

S = Order.Status

TRANSITIONS = {
    S.PENDING: [S.CONFIRMED, S.CANCELLED],
    S.PENDING_CASH: [S.CONFIRMED, S.CANCELLED],
    S.CONFIRMED: [S.PREPARING, S.CANCELLED],
    S.PREPARING: [S.READY, S.CANCELLED],
    S.READY: [S.EN_ROUTE],
    S.EN_ROUTE: [S.DELIVERED],
    S.DELIVERED: [],
    S.CANCELLED: [],
}

NON_CANCELLABLE = {S.EN_ROUTE, S.DELIVERED, S.CANCELLED}
TERMINAL = {S.DELIVERED, S.CANCELLED}

# Which role may request which target status
MERCHANT_TARGETS = {S.CONFIRMED, S.PREPARING, S.READY, S.CANCELLED}
COURIER_TARGETS = {S.EN_ROUTE, S.DELIVERED}
CUSTOMER_TARGETS = {S.CANCELLED}


def available_transitions(current) -> list:
    return list(TRANSITIONS.get(current, []))


def can_transition(current, new) -> bool:
    return new in TRANSITIONS.get(current, [])


def can_cancel(status) -> bool:
    return status in TRANSITIONS and status not in NON_CANCELLABLE


def is_terminal(status) -> bool:
    return status in TERMINAL


STATUS_BADGES = {
    S.PENDING: {"label": "Pendiente", "color": "orange"},
    S.PENDING_CASH: {"label": "Pago en efectivo", "color": "amber"},
    S.CONFIRMED: {"label": "Confirmado", "color": "blue"},
    S.PREPARING: {"label": "En preparación", "color": "yellow"},
    S.READY: {"label": "Listo", "color": "purple"},
    S.EN_ROUTE: {"label": "En camino", "color": "indigo"},
    S.DELIVERED: {"label": "Entregado", "color": "green"},
    S.CANCELLED: {"label": "Cancelado", "color": "red"},
}

UNKNOWN_LABEL = "Desconocido"


def get_status_badge(status) -> dict:
    """
    Label and colour for a status; unknown values get a gray badge
    carrying the raw value.
    """
    badge = STATUS_BADGES.get(status)
    if badge is None:
        return {"status": status, "label": status or UNKNOWN_LABEL, "color": "gray"}
    return {"status": str(status), **badge}
