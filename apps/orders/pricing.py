from collections import OrderedDict
from decimal import Decimal

from django.conf import settings

from apps.utils.utils import to_decimal

ZERO = Decimal("0")


def _get(item, key):
    if isinstance(item, dict):
        return item.get(key)
    return getattr(item, key, None)


def line_total(item) -> Decimal:
    return to_decimal(_get(item, "price")) * to_decimal(_get(item, "quantity"))


def calculate_totals(items, include_fees=True) -> dict:
    """
    subtotal = sum(price * quantity); non-numeric values count as 0.
    Fees are flat configured amounts added once per order.
    Empty or invalid input yields all zeros.
    """
    if not items or not isinstance(items, (list, tuple)):
        return {"subtotal": ZERO, "service_fee": ZERO, "delivery_fee": ZERO, "total": ZERO}

    subtotal = sum((line_total(item) for item in items), ZERO)
    service_fee = settings.SERVICE_FEE if include_fees else ZERO
    delivery_fee = settings.DELIVERY_BASE_FEE if include_fees else ZERO
    return {
        "subtotal": subtotal,
        "service_fee": service_fee,
        "delivery_fee": delivery_fee,
        "total": subtotal + service_fee + delivery_fee,
    }


def group_items_by_store(items) -> list:
    """
    Split cart lines into per-store groups, keeping first-seen store order.
    Each group: {"store_id", "items", "subtotal"}.
    """
    groups = OrderedDict()
    for item in items or []:
        store_id = _get(item, "store_id")
        group = groups.setdefault(store_id, {"store_id": store_id, "items": [], "subtotal": ZERO})
        group["items"].append(item)
        group["subtotal"] += line_total(item)
    return list(groups.values())
