import logging

from rest_framework import generics, status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import RegisterSerializer, UserSerializer
from .services import dashboard_path_for, issue_ws_ticket

logger = logging.getLogger(__name__)


class RegisterView(generics.CreateAPIView):
    """
    POST /api/v1/accounts/register/
    body: { "email", "password", "full_name", "phone", "role" }
    """
    serializer_class = RegisterSerializer
    permission_classes = [AllowAny]
    authentication_classes = []

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        logger.info("User registered", extra={"user_id": user.pk})
        return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)


class MeView(generics.RetrieveUpdateAPIView):
    serializer_class = UserSerializer
    permission_classes = [IsAuthenticated]

    def get_object(self):
        return self.request.user


class RoleRedirectView(APIView):
    """
    Where the client should land for the current user (guest included).
    """
    permission_classes = [AllowAny]

    def get(self, request):
        user = request.user
        return Response({
            "role": getattr(user, "role", None) if user.is_authenticated else None,
            "redirect_to": dashboard_path_for(user),
        })


class WebSocketTicketView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        return Response({"ticket": issue_ws_ticket(request.user)}, status=status.HTTP_201_CREATED)
