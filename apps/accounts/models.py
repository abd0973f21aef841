import uuid
from django.db import models
from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.utils import timezone
from .managers import UserManager


class Role(models.TextChoices):
    MERCHANT = "MERCHANT", "Merchant"
    CUSTOMER = "CUSTOMER", "Customer"
    COURIER = "COURIER", "Courier"


class User(AbstractBaseUser, PermissionsMixin):
    """
    Core identity model. Email is the login identifier.
    `role` only drives permission gating and the post-login redirect.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(unique=True, db_index=True)
    full_name = models.CharField(max_length=255, blank=True)
    phone = models.CharField(max_length=20, blank=True)
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.CUSTOMER, db_index=True)

    is_staff = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    date_joined = models.DateTimeField(default=timezone.now)

    objects = UserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    class Meta:
        verbose_name = 'User'
        verbose_name_plural = 'Users'

    def __str__(self):
        return f"{self.email} [{self.role}]"

    @property
    def is_merchant(self):
        return self.role == Role.MERCHANT

    @property
    def is_customer(self):
        return self.role == Role.CUSTOMER

    @property
    def is_courier(self):
        return self.role == Role.COURIER
