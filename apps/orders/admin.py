from django.contrib import admin
from .models import Order, OrderItem, OrderStatusHistory, Cart, CartItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ('product', 'product_name', 'unit_price', 'quantity')

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class OrderStatusHistoryInline(admin.TabularInline):
    model = OrderStatusHistory
    extra = 0
    readonly_fields = ('timestamp', 'from_status', 'to_status', 'note', 'changed_by')

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ('id', 'store', 'customer', 'status', 'payment_method', 'total', 'is_pos', 'created_at')
    list_filter = ('status', 'payment_method', 'is_pos', 'created_at')
    search_fields = ('id', 'customer__email', 'store__name')
    readonly_fields = ('id', 'created_at', 'updated_at', 'subtotal', 'service_fee', 'delivery_fee', 'total')
    inlines = [OrderItemInline, OrderStatusHistoryInline]

    def has_delete_permission(self, request, obj=None):
        return False


class CartItemInline(admin.TabularInline):
    model = CartItem
    extra = 0


@admin.register(Cart)
class CartAdmin(admin.ModelAdmin):
    list_display = ('customer', 'updated_at')
    search_fields = ('customer__email',)
    inlines = [CartItemInline]
