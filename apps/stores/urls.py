from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import StoreViewSet, StoreTypesView, MyStoreView, MyStoreStatsView

router = DefaultRouter()
router.register(r'directory', StoreViewSet, basename='store')

urlpatterns = [
    path('types/', StoreTypesView.as_view(), name='store-types'),
    path('mine/', MyStoreView.as_view(), name='my-store'),
    path('mine/stats/', MyStoreStatsView.as_view(), name='my-store-stats'),
    path('', include(router.urls)),
]
