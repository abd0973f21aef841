# apps/notifications/models.py
from django.conf import settings
from django.db import models
from django.utils import timezone

from apps.utils.models import TimestampedModel


class NotificationKind(models.TextChoices):
    ORDER = "order", "Order"
    PROMO = "promo", "Promo"
    INFO = "info", "Info"


class Notification(TimestampedModel):
    """
    Single notification instance (inbox row).
    Pushed live to the user's socket when created.
    """
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
    )
    kind = models.CharField(
        max_length=20,
        choices=NotificationKind.choices,
        default=NotificationKind.INFO,
    )

    title = models.CharField(max_length=255, blank=True)
    body = models.TextField()
    data = models.JSONField(default=dict, blank=True)

    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user", "is_read", "created_at"], name="notif_user_read_created_idx"),
        ]

    def mark_read(self):
        if not self.is_read:
            self.is_read = True
            self.read_at = timezone.now()
            self.save(update_fields=["is_read", "read_at", "updated_at"])

    def __str__(self):
        return f"{self.user_id} [{self.kind}] {self.title}"
