# apps/notifications/views.py
from rest_framework import generics, status, views, permissions
from rest_framework.response import Response

from .models import Notification
from .serializers import NotificationSerializer
from .services import mark_all_read, mark_read, unread_count


class NotificationListView(generics.ListAPIView):
    """
    GET /api/v1/notifications/
    """
    serializer_class = NotificationSerializer
    permission_classes = [permissions.IsAuthenticated]
    filterset_fields = ["kind", "is_read"]

    def get_queryset(self):
        return Notification.objects.filter(user=self.request.user).order_by("-created_at")

    def list(self, request, *args, **kwargs):
        response = super().list(request, *args, **kwargs)
        response["X-Unread-Count"] = str(unread_count(request.user))
        return response


class NotificationMarkReadView(views.APIView):
    """
    POST /api/v1/notifications/<id>/read/
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, pk):
        try:
            notification = mark_read(request.user, pk)
        except Notification.DoesNotExist:
            return Response({"detail": "Not found."}, status=status.HTTP_404_NOT_FOUND)
        return Response(NotificationSerializer(notification).data)


class NotificationMarkAllReadView(views.APIView):
    """
    POST /api/v1/notifications/read-all/
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        updated = mark_all_read(request.user)
        return Response({"status": "all_read", "updated": updated})
