from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import ProductViewSet, MerchantProductViewSet

router = DefaultRouter()
router.register(r'products', ProductViewSet, basename='product')
router.register(r'my-products', MerchantProductViewSet, basename='my-product')

urlpatterns = [
    path('', include(router.urls)),
]
