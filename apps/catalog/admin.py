# apps/catalog/admin.py
from django.contrib import admin
from .models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("name", "store", "category", "price", "stock", "discount", "is_active")
    list_filter = ("is_active", "category", "store__store_type")
    search_fields = ("name", "description", "store__name")
    list_editable = ("stock", "is_active")
    readonly_fields = ("id", "created_at", "updated_at")
