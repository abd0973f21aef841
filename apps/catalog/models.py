# apps/catalog/models.py
from django.core.validators import MinValueValidator
from django.db import models

from apps.utils.models import TimestampedModel


class Product(TimestampedModel):
    """
    Merchant-owned catalog entry.

    NOTE:
    - `category` is free text; CSV imports default it to "General".
    - `discount` is a percentage (0-100) shown on the storefront.
    """
    store = models.ForeignKey(
        "stores.Store",
        on_delete=models.CASCADE,
        related_name="products",
    )
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=100, default="General", db_index=True)

    price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=0,
        validators=[MinValueValidator(0)],
    )
    stock = models.PositiveIntegerField(default=0)
    discount = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=0,
        help_text="Percentage off the list price",
    )

    image_url = models.URLField(blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["store", "is_active"], name="product_store_active_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.store_id})"

    @property
    def in_stock(self):
        return self.stock > 0
