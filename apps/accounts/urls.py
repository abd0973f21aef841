from django.urls import path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from .views import RegisterView, MeView, RoleRedirectView, WebSocketTicketView

urlpatterns = [
    path("register/", RegisterView.as_view(), name="account-register"),
    path("token/", TokenObtainPairView.as_view(), name="token-obtain"),
    path("token/refresh/", TokenRefreshView.as_view(), name="token-refresh"),
    path("me/", MeView.as_view(), name="account-me"),
    path("redirect/", RoleRedirectView.as_view(), name="account-redirect"),
    path("ws-ticket/", WebSocketTicketView.as_view(), name="account-ws-ticket"),
]
