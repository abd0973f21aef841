from django.contrib import admin
from .models import Store


@admin.register(Store)
class StoreAdmin(admin.ModelAdmin):
    list_display = ("name", "store_type", "owner", "is_active", "created_at")
    list_filter = ("store_type", "is_active")
    search_fields = ("name", "slug", "owner__email")
    readonly_fields = ("id", "slug", "created_at", "updated_at")
