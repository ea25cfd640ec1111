import logging

from django.db import DatabaseError, connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def healthz(request):
    return JsonResponse({"status": "ok"})


def readyz(request):
    """Ready when the durable store (event log + threat intel) is reachable."""
    try:
        connection.ensure_connection()
    except DatabaseError as e:
        logger.warning("Database not ready: %s", e)
        return JsonResponse({"status": "unavailable"}, status=503)
    return JsonResponse({"status": "ready"})
