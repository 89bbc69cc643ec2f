"""
Global exception handlers for the FastAPI application.

Catches:
1. SnapMarketError subclasses, mapped to HTTP status codes.
2. Unhandled Exception, returned as 500 Internal Server Error with a
   unique ``error_id`` for support correlation.

HTTPException is NOT handled here. FastAPI's built-in handler deals
with those, and Sentry's ``before_send`` filter drops 4xx events.
"""

import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.exceptions import (
    AuthRequiredError,
    ForbiddenError,
    InferenceError,
    InvalidAIResponseError,
    ListingAlreadySoldError,
    ListingNotFoundError,
    ListingValidationError,
    NotificationNotFoundError,
    PermissionDeniedError,
    PurchaseFailedError,
    SnapMarketError,
    StorageError,
    UnsupportedMediaError,
)

logger = logging.getLogger(__name__)

_STATUS_CODES: tuple[tuple[type[SnapMarketError], int], ...] = (
    (AuthRequiredError, 401),
    (PermissionDeniedError, 403),
    (ForbiddenError, 403),
    (ListingNotFoundError, 404),
    (NotificationNotFoundError, 404),
    (ListingAlreadySoldError, 409),
    (UnsupportedMediaError, 415),
    (ListingValidationError, 422),
    (InvalidAIResponseError, 422),
    (StorageError, 502),
    (PurchaseFailedError, 502),
    (InferenceError, 502),
)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register global exception handlers on the FastAPI app.

    Called from ``create_app()`` after all middleware and routers
    are registered.
    """

    @app.exception_handler(SnapMarketError)
    async def handle_snapmarket_error(request: Request, exc: SnapMarketError) -> JSONResponse:
        """Map SnapMarketError subclasses to HTTP status codes."""
        status_code = _get_status_code(exc)
        log = logger.error if status_code >= 500 else logger.warning
        log(
            f"{type(exc).__name__}: {exc.message}",
            exc_info=exc if status_code >= 500 else None,
            extra={"error_type": type(exc).__name__, "path": request.url.path},
        )
        headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
        return JSONResponse(
            status_code=status_code,
            content={"detail": exc.message, "error_type": type(exc).__name__},
            headers=headers,
        )

    @app.exception_handler(Exception)
    async def handle_unhandled_exception(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions: log, return 500 with error_id."""
        error_id = uuid.uuid4().hex[:8]
        logger.exception(
            f"Unhandled exception (error_id={error_id})",
            extra={"error_id": error_id, "path": request.url.path},
        )
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error",
                "error_id": error_id,
            },
        )


def _get_status_code(exc: SnapMarketError) -> int:
    """Map exception type to HTTP status code."""
    for error_type, status_code in _STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    # Base SnapMarketError fallback
    return 500
