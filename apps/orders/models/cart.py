import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models

__all__ = ["Cart", "CartItem"]


class Cart(models.Model):
    """
    Per-customer cart. Lines may come from several stores;
    checkout splits them into one order per store.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    customer = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        related_name="cart",
        on_delete=models.CASCADE,
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Cart for {self.customer_id}"

    @property
    def subtotal(self) -> Decimal:
        return sum((item.line_total for item in self.items.select_related("product")), Decimal("0"))


class CartItem(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    cart = models.ForeignKey(
        Cart,
        related_name="items",
        on_delete=models.CASCADE,
    )
    product = models.ForeignKey(
        "catalog.Product",
        related_name="cart_items",
        on_delete=models.CASCADE,
    )
    quantity = models.PositiveIntegerField(default=1)
    added_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ("cart", "product")
        ordering = ["added_at"]

    def __str__(self):
        return f"{self.cart_id} -> {self.product_id} x {self.quantity}"

    @property
    def line_total(self) -> Decimal:
        return self.product.price * self.quantity
