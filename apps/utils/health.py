import logging

from django.http import JsonResponse
from django.db import connection
from django.core.cache import cache

logger = logging.getLogger(__name__)


def health_check(request):
    status = {"db": "unknown", "cache": "unknown"}
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
        status["db"] = "ok"

        cache.set("health:ping", "pong", timeout=5)
        status["cache"] = "ok" if cache.get("health:ping") == "pong" else "degraded"

        return JsonResponse({"status": "ok", "components": status}, status=200)
    except Exception as e:
        logger.warning("Health check failed: %s", e)
        return JsonResponse(
            {"status": "error", "detail": str(e), "components": status},
            status=503
        )
