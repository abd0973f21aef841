from rest_framework import serializers

from apps.orders.models import Order
from apps.orders.state_machine import get_status_badge
from .models import Delivery, CourierLocation


class AvailableOrderSerializer(serializers.ModelSerializer):
    store_name = serializers.CharField(source="store.name", read_only=True)
    store_address = serializers.CharField(source="store.address", read_only=True)
    store_lat = serializers.FloatField(source="store.lat", read_only=True)
    store_lng = serializers.FloatField(source="store.lng", read_only=True)
    badge = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            "id", "status", "badge", "total", "delivery_address", "delivery_lat", "delivery_lng",
            "store_name", "store_address", "store_lat", "store_lng", "created_at",
        ]

    def get_badge(self, obj):
        return get_status_badge(obj.status)


class DeliverySerializer(serializers.ModelSerializer):
    order = AvailableOrderSerializer(read_only=True)
    courier_name = serializers.CharField(source="courier.full_name", read_only=True)

    class Meta:
        model = Delivery
        fields = [
            "id", "status", "courier", "courier_name", "order",
            "assigned_at", "picked_up_at", "delivered_at",
        ]


class DeliveryStatusSerializer(serializers.Serializer):
    status = serializers.CharField(max_length=20)


class LocationSerializer(serializers.Serializer):
    lat = serializers.FloatField()
    lng = serializers.FloatField()


class CourierLocationSerializer(serializers.ModelSerializer):
    class Meta:
        model = CourierLocation
        fields = ["courier", "lat", "lng", "updated_at"]
