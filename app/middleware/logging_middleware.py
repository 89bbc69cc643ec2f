"""
Request/response logging middleware.

Emits one line per request with timing and status. Binds a short
``request_id`` into structlog's contextvars so every log line written
while the request is handled carries it; the authenticated user is
bound later by the auth dependency.
"""

import logging
import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("snapmarket.api")

_QUIET_PATHS = frozenset({"/health"})


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs every HTTP request and response.

    Adds ``X-Request-ID`` and ``X-Response-Time`` to the response. An
    incoming ``X-Request-ID`` is reused so traces line up with the caller.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start_time = time.monotonic()
        try:
            response = await call_next(request)
            duration_ms = round((time.monotonic() - start_time) * 1000, 1)

            if request.url.path not in _QUIET_PATHS:
                user_id = getattr(request.state, "user_id", None) or "anonymous"
                logger.info(
                    f"{request.method} {request.url.path} "
                    f"→ {response.status_code} "
                    f"({duration_ms}ms) "
                    f"[user={user_id}]"
                )

            response.headers["X-Response-Time"] = f"{duration_ms}ms"
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            structlog.contextvars.clear_contextvars()
