from django.conf import settings
from django.db import models
from django.utils.text import slugify

from apps.utils.models import TimestampedModel
from .store_types import STORE_TYPE_CHOICES, DEFAULT_STORE_TYPE, get_store_type_config


class Store(TimestampedModel):
    """
    Tenant business unit. One store per merchant account.
    """
    owner = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="store",
    )
    name = models.CharField(max_length=255)
    slug = models.SlugField(unique=True, blank=True, db_index=True)
    store_type = models.CharField(
        max_length=30,
        choices=STORE_TYPE_CHOICES,
        default=DEFAULT_STORE_TYPE,
        db_index=True,
    )

    description = models.TextField(blank=True)
    address = models.CharField(max_length=255, blank=True)
    phone = models.CharField(max_length=20, blank=True)
    image_url = models.URLField(blank=True)
    lat = models.FloatField(null=True, blank=True)
    lng = models.FloatField(null=True, blank=True)

    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["store_type", "is_active"], name="store_type_active_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.store_type})"

    @property
    def type_config(self):
        return get_store_type_config(self.store_type)

    def save(self, *args, **kwargs):
        if not self.slug:
            base = slugify(self.name) or "store"
            slug = base
            i = 1
            while Store.objects.filter(slug=slug).exclude(pk=self.pk).exists():
                slug = f"{base}-{i}"
                i += 1
            self.slug = slug
        super().save(*args, **kwargs)
