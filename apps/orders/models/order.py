from django.conf import settings
from django.db import models

from apps.utils.models import TimestampedModel

__all__ = ["Order"]


class Order(TimestampedModel):
    """
    One customer order against one store.
    Rows are never deleted; cancellation is a status.
    """
    class Status(models.TextChoices):
        PENDING = "PENDING", "Pendiente"
        PENDING_CASH = "PENDING_CASH", "Pendiente de pago en efectivo"
        CONFIRMED = "CONFIRMED", "Confirmado"
        PREPARING = "PREPARING", "En preparación"
        READY = "READY", "Listo para recogida"
        EN_ROUTE = "EN_ROUTE", "En camino"
        DELIVERED = "DELIVERED", "Entregado"
        CANCELLED = "CANCELLED", "Cancelado"

    class PaymentMethod(models.TextChoices):
        CASH = "cash", "Efectivo"
        CARD = "card", "Tarjeta"
        TRANSFER = "transfer", "Transferencia"

    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="orders",
    )
    store = models.ForeignKey(
        "stores.Store",
        on_delete=models.PROTECT,
        related_name="orders",
    )

    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True
    )
    payment_method = models.CharField(
        max_length=20, choices=PaymentMethod.choices, default=PaymentMethod.CASH
    )

    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    service_fee = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    delivery_fee = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    total = models.DecimalField(max_digits=12, decimal_places=2, default=0)

    delivery_address = models.TextField(blank=True)
    delivery_lat = models.FloatField(null=True, blank=True)
    delivery_lng = models.FloatField(null=True, blank=True)
    notes = models.TextField(blank=True)

    # In-store sales carry no customer; buyer details live here
    is_pos = models.BooleanField(default=False)
    guest_info = models.JSONField(default=dict, blank=True)

    cancellation_reason = models.TextField(blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["store", "status"], name="order_store_status_idx"),
            models.Index(fields=["customer", "created_at"], name="order_customer_created_idx"),
        ]

    def __str__(self):
        return f"{self.id} [{self.status}]"

    @property
    def can_cancel(self):
        from apps.orders.state_machine import can_cancel
        return can_cancel(self.status)
