import logging

from django.http import HttpResponse
from rest_framework import viewsets, filters, status
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from apps.accounts.permissions import IsMerchant
from apps.stores.services import StoreService
from apps.utils.validators import UUID_PATTERN
from .models import Product
from .serializers import (
    ProductSerializer, ProductImportSerializer, POSCheckoutSerializer,
)
from .services import CSV_TEMPLATE, import_products, point_of_sale_checkout

logger = logging.getLogger(__name__)


class ProductViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Public product list across active stores.
    """
    serializer_class = ProductSerializer
    permission_classes = [AllowAny]
    lookup_value_regex = UUID_PATTERN
    filter_backends = [filters.SearchFilter, filters.OrderingFilter]
    search_fields = ["name", "description", "category"]
    ordering_fields = ["price", "created_at", "name"]

    def get_queryset(self):
        qs = Product.objects.filter(is_active=True, store__is_active=True).select_related("store")
        store_slug = self.request.query_params.get("store")
        if store_slug:
            qs = qs.filter(store__slug=store_slug)
        category = self.request.query_params.get("category")
        if category:
            qs = qs.filter(category=category)
        return qs


class MerchantProductViewSet(viewsets.ModelViewSet):
    """
    Catalog management for the merchant's own store.
    """
    serializer_class = ProductSerializer
    permission_classes = [IsAuthenticated, IsMerchant]
    lookup_value_regex = UUID_PATTERN

    def get_store(self):
        return StoreService.get_store_for_owner(self.request.user)

    def get_queryset(self):
        return Product.objects.filter(store=self.get_store()).select_related("store")

    def perform_create(self, serializer):
        serializer.save(store=self.get_store())

    @action(detail=False, methods=["post"], url_path="import")
    def import_csv(self, request):
        serializer = ProductImportSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        text = serializer.validated_data["file"].read().decode("utf-8-sig")
        result = import_products(self.get_store(), text)
        return Response(
            {"created": result.created, "skipped_lines": result.skipped_lines},
            status=status.HTTP_201_CREATED,
        )

    @action(detail=False, methods=["get"], url_path="import-template")
    def import_template(self, request):
        response = HttpResponse(CSV_TEMPLATE, content_type="text/csv; charset=utf-8")
        response["Content-Disposition"] = 'attachment; filename="plantilla_inventario.csv"'
        return response

    @action(detail=False, methods=["post"], url_path="pos-checkout")
    def pos_checkout(self, request):
        serializer = POSCheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        guest_info = {
            k: data[k] for k in ("guest_name", "guest_phone") if data.get(k)
        }
        order = point_of_sale_checkout(
            self.get_store(),
            [dict(line) for line in data["items"]],
            guest_info=guest_info,
            payment_method=data["payment_method"],
        )
        return Response(
            {"order_id": str(order.id), "status": order.status, "total": str(order.total)},
            status=status.HTTP_201_CREATED,
        )
