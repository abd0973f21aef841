import logging

from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.accounts.permissions import IsCustomer, IsMerchant
from apps.stores.services import StoreService
from apps.utils.validators import UUID_PATTERN
from .filters import OrderFilter
from .models import Order
from .serializers import (
    CartSerializer, CartItemWriteSerializer, CheckoutSerializer,
    OrderSerializer, OrderDetailSerializer, StatusUpdateSerializer, CancelSerializer,
)
from .services import CartService, CheckoutService, OrderService
from .state_machine import STATUS_BADGES

logger = logging.getLogger(__name__)


class CartViewSet(viewsets.ViewSet):
    permission_classes = [IsAuthenticated, IsCustomer]

    def _render(self, request, cart=None):
        cart = cart or CartService.get_cart(request.user)
        data = CartSerializer(cart).data
        data["item_count"] = CartService.item_count(request.user)
        data["single_store"] = CartService.is_single_store(request.user)
        return Response(data)

    def list(self, request):
        return self._render(request)

    @action(detail=False, methods=["post"])
    def add_item(self, request):
        serializer = CartItemWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        cart = CartService.add_item(
            request.user,
            serializer.validated_data["product_id"],
            serializer.validated_data["quantity"],
        )
        return self._render(request, cart)

    @action(detail=False, methods=["post"])
    def set_quantity(self, request):
        serializer = CartItemWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        cart = CartService.set_quantity(
            request.user,
            serializer.validated_data["product_id"],
            serializer.validated_data["quantity"],
        )
        return self._render(request, cart)

    @action(detail=False, methods=["post"])
    def remove_item(self, request):
        serializer = CartItemWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        cart = CartService.remove_item(request.user, serializer.validated_data["product_id"])
        return self._render(request, cart)

    @action(detail=False, methods=["post"])
    def clear(self, request):
        CartService.clear(request.user)
        return self._render(request)


class CheckoutView(APIView):
    """
    GET: per-store totals preview. POST: place one order per store.
    """
    permission_classes = [IsAuthenticated, IsCustomer]

    def get(self, request):
        return Response(CheckoutService.preview(request.user))

    def post(self, request):
        serializer = CheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        orders = CheckoutService.checkout(request.user, **serializer.validated_data)
        return Response(
            {"orders": OrderSerializer(orders, many=True).data},
            status=status.HTTP_201_CREATED,
        )


class OrderViewSet(viewsets.ReadOnlyModelViewSet):
    """
    The customer's own orders.
    """
    permission_classes = [IsAuthenticated, IsCustomer]
    lookup_value_regex = UUID_PATTERN
    filterset_class = OrderFilter

    def get_queryset(self):
        return (
            Order.objects.filter(customer=self.request.user)
            .select_related("store")
            .prefetch_related("items")
        )

    def get_serializer_class(self):
        if self.action == "retrieve":
            return OrderDetailSerializer
        return OrderSerializer

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        order = self.get_object()
        serializer = CancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = OrderService.cancel_order(order.id, serializer.validated_data["reason"], actor=request.user)
        return Response(OrderSerializer(order).data)


class StoreOrderViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Orders received by the merchant's store.
    """
    permission_classes = [IsAuthenticated, IsMerchant]
    lookup_value_regex = UUID_PATTERN
    filterset_class = OrderFilter

    def get_queryset(self):
        store = StoreService.get_store_for_owner(self.request.user)
        return (
            Order.objects.filter(store=store)
            .select_related("store", "customer")
            .prefetch_related("items")
        )

    def get_serializer_class(self):
        if self.action == "retrieve":
            return OrderDetailSerializer
        return OrderSerializer

    @action(detail=True, methods=["post"], url_path="set-status")
    def set_status(self, request, pk=None):
        order = self.get_object()
        serializer = StatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = OrderService.update_status(
            order.id,
            serializer.validated_data["status"],
            actor=request.user,
            note=serializer.validated_data["note"],
        )
        return Response(OrderSerializer(order).data)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        order = self.get_object()
        serializer = CancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = OrderService.cancel_order(order.id, serializer.validated_data["reason"], actor=request.user)
        return Response(OrderSerializer(order).data)


class StatusBadgesView(APIView):
    permission_classes = [AllowAny]

    def get(self, request):
        return Response({str(k): v for k, v in STATUS_BADGES.items()})
