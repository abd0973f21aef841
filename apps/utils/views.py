from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import AllowAny
from django.conf import settings


class ServerInfoView(APIView):
    permission_classes = [AllowAny]

    def get(self, request):
        return Response({
            "app_name": settings.PROJECT_NAME,
            "version": "1.0.0",
            "debug": settings.DEBUG,
        })


class GlobalConfigView(APIView):
    """
    Fees and currency the storefront needs before checkout.
    """
    permission_classes = [AllowAny]

    def get(self, request):
        return Response({
            "currency": settings.CURRENCY,
            "service_fee": settings.SERVICE_FEE,
            "delivery_base_fee": settings.DELIVERY_BASE_FEE,
        })
