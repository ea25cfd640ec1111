from django.conf import settings


class SecurityHeadersMiddleware:
    """Adds OWASP response headers to every response, blocked ones included.

    Headers already set by a view are left alone.
    """

    def __init__(self, get_response):
        self.get_response = get_response
        self.headers = dict(getattr(settings, "SECURITY_RESPONSE_HEADERS", {}))

    def __call__(self, request):
        response = self.get_response(request)
        for name, value in self.headers.items():
            if name not in response:
                response[name] = value
        return response
