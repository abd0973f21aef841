import logging
from decimal import Decimal

from django.db.models import Count, Sum
from django.db.models.functions import TruncMonth
from rest_framework.exceptions import NotFound

from .models import Store

logger = logging.getLogger(__name__)


class StoreService:

    @staticmethod
    def get_store_for_owner(user) -> Store:
        try:
            return Store.objects.get(owner=user)
        except Store.DoesNotExist:
            raise NotFound("This account has no store.")

    @staticmethod
    def monthly_income(store: Store) -> list:
        """
        Delivered-order revenue grouped by calendar month, oldest first.
        """
        from apps.orders.models import Order

        rows = (
            Order.objects.filter(store=store, status=Order.Status.DELIVERED)
            .annotate(month=TruncMonth("created_at"))
            .values("month")
            .annotate(total=Sum("total"))
            .order_by("month")
        )
        return [
            {"month": row["month"].strftime("%Y-%m"), "total": row["total"] or Decimal("0")}
            for row in rows
        ]

    @staticmethod
    def stats(store: Store) -> dict:
        from apps.orders.models import Order

        by_status = dict(
            Order.objects.filter(store=store)
            .values_list("status")
            .annotate(n=Count("id"))
        )
        revenue = (
            Order.objects.filter(store=store, status=Order.Status.DELIVERED)
            .aggregate(total=Sum("total"))["total"]
            or Decimal("0")
        )
        return {
            "orders_by_status": {status: by_status.get(status, 0) for status in Order.Status.values},
            "revenue": revenue,
            "product_count": store.products.filter(is_active=True).count(),
        }
