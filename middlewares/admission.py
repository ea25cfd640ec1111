import logging
import math

from django.conf import settings
from django.http import JsonResponse

from decision_engine.context import build_request_context, trusted_networks
from decision_engine.services import build_pipeline

logger = logging.getLogger(__name__)


class AdmissionControlMiddleware:
    """
    Runs the admission pipeline before any view.
    Blocked  -> 403, rate limited -> 429 + Retry-After.
    Allowed  -> request.admission = SecurityDecision, continue.
    Response body never carries the score or the signal breakdown.
    """

    def __init__(self, get_response, pipeline=None):
        self.get_response = get_response
        self.exempt_paths = tuple(getattr(settings, "ADMISSION_EXEMPT_PATHS", ()))
        self.proxy_headers = tuple(getattr(settings, "TRUSTED_PROXY_HEADERS", ()))
        self.trusted_proxies = trusted_networks(getattr(settings, "TRUSTED_PROXIES", ()))
        self.country_headers = tuple(getattr(settings, "COUNTRY_HEADERS", ()))
        self.body_preview_bytes = getattr(settings, "BODY_PREVIEW_BYTES", 2048)

        self.pipeline = pipeline or build_pipeline()
        if getattr(settings, "ADMISSION_BACKGROUND_TASKS", True):
            self.pipeline.start()

    def __call__(self, request):
        path = request.path

        # contoh: skip static dan health checks
        if path.startswith(self.exempt_paths):
            return self.get_response(request)

        try:
            ctx = build_request_context(
                request,
                proxy_headers=self.proxy_headers,
                trusted_proxies=self.trusted_proxies,
                country_headers=self.country_headers,
                body_preview_bytes=self.body_preview_bytes,
            )
            decision = self.pipeline.engine.decide(ctx)
        except Exception:
            # fallback: jangan blok request
            logger.exception("Admission check failed for %s, allowing request", path)
            return self.get_response(request)

        if not decision.allowed:
            if decision.rate_limited:
                response = JsonResponse({"error": "Too Many Requests"}, status=429)
                response["Retry-After"] = str(max(1, math.ceil(decision.retry_after or 1)))
                return response
            return JsonResponse({"error": "Access denied"}, status=403)

        request.admission = decision
        return self.get_response(request)
