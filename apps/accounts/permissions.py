from rest_framework.permissions import BasePermission
from .models import Role


class IsCustomer(BasePermission):
    def has_permission(self, request, view):
        return (
            request.user.is_authenticated and
            request.user.role == Role.CUSTOMER
        )


class IsMerchant(BasePermission):
    def has_permission(self, request, view):
        return (
            request.user.is_authenticated and
            request.user.role == Role.MERCHANT
        )


class IsCourier(BasePermission):
    def has_permission(self, request, view):
        return (
            request.user.is_authenticated and
            request.user.role == Role.COURIER
        )
