from django.contrib import admin
from .models import Delivery, CourierLocation


@admin.register(Delivery)
class DeliveryAdmin(admin.ModelAdmin):
    list_display = ("id", "order", "courier", "status", "assigned_at", "picked_up_at", "delivered_at")
    list_filter = ("status", "created_at")
    search_fields = ("id", "order__id", "courier__email")
    readonly_fields = ("id", "order", "created_at", "updated_at", "assigned_at", "picked_up_at", "delivered_at")

    def has_add_permission(self, request):
        return False


@admin.register(CourierLocation)
class CourierLocationAdmin(admin.ModelAdmin):
    list_display = ("courier", "lat", "lng", "updated_at")
    search_fields = ("courier__email",)
