# apps/catalog/serializers.py
from rest_framework import serializers
from .models import Product


class ProductSerializer(serializers.ModelSerializer):
    store_name = serializers.CharField(source="store.name", read_only=True)

    class Meta:
        model = Product
        fields = [
            "id",
            "store",
            "store_name",
            "name",
            "description",
            "category",
            "price",
            "stock",
            "discount",
            "image_url",
            "is_active",
            "created_at",
        ]
        read_only_fields = ["id", "store", "created_at"]

    def validate_discount(self, value):
        if value < 0 or value > 100:
            raise serializers.ValidationError("Discount must be between 0 and 100.")
        return value


class ProductImportSerializer(serializers.Serializer):
    file = serializers.FileField()

    def validate_file(self, value):
        if not value.name.lower().endswith(".csv"):
            raise serializers.ValidationError("Upload a .csv file.")
        return value


class POSLineSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)


class POSCheckoutSerializer(serializers.Serializer):
    items = POSLineSerializer(many=True, allow_empty=False)
    payment_method = serializers.CharField(max_length=20, default="cash")
    guest_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    guest_phone = serializers.CharField(max_length=20, required=False, allow_blank=True)
