from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers

from apps.utils.validators import is_valid_phone
from .models import Role
from .services import dashboard_path_for

User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    dashboard_path = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ["id", "email", "full_name", "phone", "role", "dashboard_path", "date_joined"]
        read_only_fields = ["id", "email", "role", "date_joined"]

    def get_dashboard_path(self, obj):
        return dashboard_path_for(obj)


class RegisterSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, min_length=6)
    role = serializers.ChoiceField(choices=Role.choices, default=Role.CUSTOMER)

    class Meta:
        model = User
        fields = ["email", "password", "full_name", "phone", "role"]

    def validate_phone(self, value):
        if value and not is_valid_phone(value):
            raise serializers.ValidationError("Invalid phone number format.")
        return value

    def validate_password(self, value):
        validate_password(value)
        return value

    def create(self, validated_data):
        password = validated_data.pop("password")
        return User.objects.create_user(password=password, **validated_data)
