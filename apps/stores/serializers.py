from rest_framework import serializers

from .models import Store


class StoreSerializer(serializers.ModelSerializer):
    type_config = serializers.DictField(read_only=True)

    class Meta:
        model = Store
        fields = [
            "id", "name", "slug", "store_type", "type_config", "description",
            "address", "phone", "image_url", "lat", "lng", "is_active", "created_at",
        ]
        read_only_fields = ["id", "slug", "created_at"]


class StoreCreateSerializer(serializers.ModelSerializer):
    class Meta:
        model = Store
        fields = ["name", "store_type", "description", "address", "phone", "image_url", "lat", "lng"]

    def validate(self, attrs):
        lat, lng = attrs.get("lat"), attrs.get("lng")
        if (lat is None) != (lng is None):
            raise serializers.ValidationError("lat and lng must be provided together.")
        if lat is not None and not (-90 <= lat <= 90 and -180 <= lng <= 180):
            raise serializers.ValidationError("Coordinates out of range.")
        return attrs
