from rest_framework import serializers

from .models import Order, OrderItem, OrderStatusHistory, Cart, CartItem
from .state_machine import available_transitions, can_cancel, get_status_badge


class CartItemSerializer(serializers.ModelSerializer):
    product_id = serializers.UUIDField(source="product.id", read_only=True)
    product_name = serializers.CharField(source="product.name", read_only=True)
    store_id = serializers.UUIDField(source="product.store_id", read_only=True)
    price = serializers.DecimalField(source="product.price", max_digits=12, decimal_places=2, read_only=True)
    line_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = CartItem
        fields = ["id", "product_id", "product_name", "store_id", "price", "quantity", "line_total"]


class CartSerializer(serializers.ModelSerializer):
    items = serializers.SerializerMethodField()
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = Cart
        fields = ["id", "items", "subtotal", "updated_at"]

    def get_items(self, obj):
        qs = obj.items.select_related("product")
        return CartItemSerializer(qs, many=True).data


class CartItemWriteSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(default=1)


class CheckoutSerializer(serializers.Serializer):
    delivery_address = serializers.CharField(max_length=500)
    payment_method = serializers.ChoiceField(choices=Order.PaymentMethod.choices, default=Order.PaymentMethod.CASH)
    delivery_lat = serializers.FloatField(required=False, allow_null=True, min_value=-90, max_value=90)
    delivery_lng = serializers.FloatField(required=False, allow_null=True, min_value=-180, max_value=180)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = ["product", "product_name", "quantity", "unit_price", "line_total"]


class OrderStatusHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderStatusHistory
        fields = ["from_status", "to_status", "note", "timestamp", "changed_by"]


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    store_name = serializers.CharField(source="store.name", read_only=True)
    badge = serializers.SerializerMethodField()
    available_transitions = serializers.SerializerMethodField()
    can_cancel = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            "id", "store", "store_name", "customer", "status", "badge",
            "available_transitions", "can_cancel", "payment_method",
            "subtotal", "service_fee", "delivery_fee", "total",
            "delivery_address", "delivery_lat", "delivery_lng", "notes",
            "is_pos", "guest_info", "cancellation_reason", "cancelled_at",
            "created_at", "updated_at", "items",
        ]

    def get_badge(self, obj):
        return get_status_badge(obj.status)

    def get_available_transitions(self, obj):
        return available_transitions(obj.status)

    def get_can_cancel(self, obj):
        return can_cancel(obj.status)


class OrderDetailSerializer(OrderSerializer):
    history = OrderStatusHistorySerializer(many=True, read_only=True)

    class Meta(OrderSerializer.Meta):
        fields = OrderSerializer.Meta.fields + ["history"]


class StatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Order.Status.choices)
    note = serializers.CharField(required=False, allow_blank=True, default="")


class CancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")
