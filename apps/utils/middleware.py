import logging
import time

from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger(__name__)


class RequestLogMiddleware(MiddlewareMixin):
    """
    One log line per API request: method, path, status, duration.
    """
    def process_request(self, request):
        request._started_at = time.monotonic()

    def process_response(self, request, response):
        started = getattr(request, "_started_at", None)
        if started is not None and request.path.startswith("/api/"):
            user = getattr(request, "user", None)
            logger.info(
                "%s %s -> %s (%.1fms)",
                request.method,
                request.path,
                response.status_code,
                (time.monotonic() - started) * 1000,
                extra={"user_id": getattr(user, "pk", None)},
            )
        return response


class GlobalExceptionMiddleware(MiddlewareMixin):
    """
    Last line of defense for non-DRF views.
    """
    def process_exception(self, request, exception):
        logger.exception("Unhandled Middleware Exception: %s", exception)
        if request.path.startswith('/api/'):
            return JsonResponse(
                {"error": "Internal System Error"},
                status=500
            )
        return None
