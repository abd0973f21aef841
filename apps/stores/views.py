import logging

from rest_framework import generics, status, viewsets
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.accounts.permissions import IsMerchant
from apps.utils.exceptions import BusinessLogicException
from .models import Store
from .serializers import StoreSerializer, StoreCreateSerializer
from .services import StoreService
from .store_types import STORE_TYPES, get_store_type_config

logger = logging.getLogger(__name__)


class StoreViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Public storefront directory.
    """
    serializer_class = StoreSerializer
    permission_classes = [AllowAny]
    lookup_field = "slug"
    filterset_fields = ["store_type"]

    def get_queryset(self):
        return Store.objects.filter(is_active=True)


class StoreTypesView(APIView):
    permission_classes = [AllowAny]

    def get(self, request):
        return Response([get_store_type_config(key) for key in STORE_TYPES])


class MyStoreView(generics.RetrieveUpdateAPIView):
    """
    GET/PATCH the merchant's own store; POST creates it once.
    """
    serializer_class = StoreSerializer
    permission_classes = [IsAuthenticated, IsMerchant]

    def get_object(self):
        return StoreService.get_store_for_owner(self.request.user)

    def post(self, request):
        if Store.objects.filter(owner=request.user).exists():
            raise BusinessLogicException("This account already has a store.", code="store_exists")
        serializer = StoreCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        store = serializer.save(owner=request.user)
        logger.info("Store created", extra={"store_id": store.id, "user_id": request.user.pk})
        return Response(StoreSerializer(store).data, status=status.HTTP_201_CREATED)


class MyStoreStatsView(APIView):
    permission_classes = [IsAuthenticated, IsMerchant]

    def get(self, request):
        store = StoreService.get_store_for_owner(request.user)
        return Response({
            **StoreService.stats(store),
            "monthly_income": StoreService.monthly_income(store),
        })
