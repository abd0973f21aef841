from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import CourierViewSet, TrackingViewSet

router = DefaultRouter()
router.register(r'courier', CourierViewSet, basename='courier')
router.register(r'tracking', TrackingViewSet, basename='tracking')

urlpatterns = [
    path('', include(router.urls)),
]
