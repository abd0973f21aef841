# apps/delivery/views.py
import logging

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from apps.accounts.permissions import IsCourier
from apps.utils.validators import UUID_PATTERN
from .models import CourierLocation
from .serializers import (
    AvailableOrderSerializer, DeliverySerializer, DeliveryStatusSerializer,
    LocationSerializer, CourierLocationSerializer,
)
from .services import DeliveryService

logger = logging.getLogger(__name__)


class CourierViewSet(viewsets.ViewSet):
    """
    Courier API: find work, claim it, report progress and position.
    """
    permission_classes = [IsAuthenticated, IsCourier]

    @action(detail=False, methods=["get"], url_path="available-orders")
    def available_orders(self, request):
        qs = DeliveryService.available_orders()
        return Response(AvailableOrderSerializer(qs, many=True).data)

    @action(detail=False, methods=["post"], url_path=rf"claim/(?P<order_id>{UUID_PATTERN})")
    def claim(self, request, order_id=None):
        delivery = DeliveryService.claim_order(order_id, request.user)
        return Response(DeliverySerializer(delivery).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=["post"], url_path=rf"status/(?P<order_id>{UUID_PATTERN})")
    def set_status(self, request, order_id=None):
        serializer = DeliveryStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        delivery = DeliveryService.update_delivery_status(
            order_id, serializer.validated_data["status"], courier=request.user
        )
        return Response(DeliverySerializer(delivery).data)

    @action(detail=False, methods=["get"])
    def current(self, request):
        delivery = DeliveryService.current_delivery(request.user)
        if delivery is None:
            return Response({"delivery": None})
        return Response({"delivery": DeliverySerializer(delivery).data})

    @action(detail=False, methods=["post"])
    def location(self, request):
        serializer = LocationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        location = DeliveryService.update_location(
            request.user,
            serializer.validated_data["lat"],
            serializer.validated_data["lng"],
        )
        return Response(CourierLocationSerializer(location).data)

    @action(detail=False, methods=["get"])
    def stats(self, request):
        return Response(DeliveryService.courier_stats(request.user))

    @action(detail=False, methods=["get"])
    def history(self, request):
        qs = DeliveryService.delivery_history(request.user)
        return Response(DeliverySerializer(qs, many=True).data)


class TrackingViewSet(viewsets.ViewSet):
    """
    Last known courier position for a customer following an order.
    """
    permission_classes = [IsAuthenticated]
    lookup_value_regex = UUID_PATTERN

    def retrieve(self, request, pk=None):
        if not DeliveryService.can_track_courier(request.user, pk):
            return Response({"error": "Not allowed", "code": "forbidden"}, status=status.HTTP_403_FORBIDDEN)
        location = CourierLocation.objects.filter(courier_id=pk).first()
        if location is None:
            return Response({"location": None})
        return Response({"location": CourierLocationSerializer(location).data})
