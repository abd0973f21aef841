from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import CartViewSet, CheckoutView, OrderViewSet, StoreOrderViewSet, StatusBadgesView

router = DefaultRouter()
router.register(r'cart', CartViewSet, basename='cart')
router.register(r'my-orders', OrderViewSet, basename='orders')
router.register(r'store-orders', StoreOrderViewSet, basename='store-orders')

urlpatterns = [
    path('checkout/', CheckoutView.as_view(), name='checkout'),
    path('status-badges/', StatusBadgesView.as_view(), name='status-badges'),
    path('', include(router.urls)),
]
