"""
Security headers middleware.

Every response is JSON produced for the mobile client, so the headers
lock down framing, sniffing and caching. HSTS is only sent in production
so local HTTP development keeps working.
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.config import get_settings

SECURITY_HEADERS: dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "0",
    "Referrer-Policy": "no-referrer",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
}

HSTS_VALUE = "max-age=63072000; includeSubDomains"

# Responses on these paths carry per-user data or fresh drafts
NO_STORE_PREFIXES = ("/api/", "/health", "/generateListing")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds SECURITY_HEADERS (plus HSTS in production) to every response."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)

        for name, value in SECURITY_HEADERS.items():
            response.headers[name] = value

        if get_settings().is_production:
            response.headers["Strict-Transport-Security"] = HSTS_VALUE

        if request.url.path.startswith(NO_STORE_PREFIXES):
            response.headers["Cache-Control"] = "no-store"

        return response
