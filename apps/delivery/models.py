from django.conf import settings
from django.db import models
from django.db.models import Q

from apps.utils.models import TimestampedModel


class DeliveryQuerySet(models.QuerySet):
    def active(self):
        return self.exclude(status=Delivery.Status.DELIVERED)


class Delivery(TimestampedModel):
    """
    Links an order to the courier carrying it.
    At most one non-delivered delivery exists per order.
    """
    class Status(models.TextChoices):
        SEARCHING = "SEARCHING", "Buscando"
        ASSIGNED = "ASSIGNED", "Asignado"
        PICKED_UP = "PICKED_UP", "Recogido"
        EN_ROUTE = "EN_ROUTE", "En camino"
        DELIVERED = "DELIVERED", "Entregado"

    order = models.ForeignKey("orders.Order", on_delete=models.PROTECT, related_name="deliveries")
    courier = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="deliveries",
    )

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.SEARCHING,
        db_index=True,
    )

    # Timestamps for SLA tracking
    assigned_at = models.DateTimeField(null=True, blank=True)
    picked_up_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)

    objects = DeliveryQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "Deliveries"
        constraints = [
            models.UniqueConstraint(
                fields=["order"],
                condition=~Q(status="DELIVERED"),
                name="uniq_active_delivery_per_order",
            )
        ]

    def __str__(self):
        return f"Delivery {self.id} | {self.status}"


class CourierLocation(models.Model):
    """
    Last known position of a courier, upserted on every ping.
    """
    courier = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="location",
    )
    lat = models.FloatField()
    lng = models.FloatField()
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.courier_id} @ ({self.lat}, {self.lng})"
