import uuid
from django.db import models
from django.conf import settings
from .order import Order

__all__ = ["OrderStatusHistory"]


class OrderStatusHistory(models.Model):
    """
    Append-only log of status changes.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(Order, related_name="history", on_delete=models.CASCADE)

    from_status = models.CharField(max_length=20, blank=True)
    to_status = models.CharField(max_length=20)
    note = models.TextField(blank=True)
    timestamp = models.DateTimeField(auto_now_add=True)

    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
    )

    class Meta:
        ordering = ["timestamp"]
        verbose_name_plural = "Order status history"

    def __str__(self):
        return f"{self.order_id}: {self.from_status or '-'} -> {self.to_status}"
