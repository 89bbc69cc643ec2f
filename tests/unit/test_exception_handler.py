"""Tests for app.middleware.exception_handler — global exception handlers."""

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

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
    UnparseableResponseError,
    UnsupportedMediaError,
    UploadError,
    UrlResolutionError,
)
from app.middleware.exception_handler import register_exception_handlers


def _make_app_with_handler(exc_to_raise: Exception) -> FastAPI:
    """Create a minimal FastAPI app that raises the given exception."""
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/test")
    async def test_route():
        raise exc_to_raise

    return app


def _get(exc: Exception):
    client = TestClient(_make_app_with_handler(exc), raise_server_exceptions=False)
    return client.get("/test")


class TestSnapMarketErrorMapping:
    """Verify SnapMarketError subclasses map to correct HTTP status codes."""

    @pytest.mark.parametrize(
        ("exc", "status_code"),
        [
            (AuthRequiredError(), 401),
            (PermissionDeniedError("grant access"), 403),
            (ForbiddenError("not yours"), 403),
            (ListingNotFoundError("gone"), 404),
            (NotificationNotFoundError("gone"), 404),
            (ListingAlreadySoldError("abc"), 409),
            (UnsupportedMediaError("pdf"), 415),
            (ListingValidationError("price"), 422),
            (InvalidAIResponseError("bad"), 422),
            (UploadError("offline"), 502),
            (UrlResolutionError("no url"), 502),
            (PurchaseFailedError("db"), 502),
            (InferenceError("gemini down"), 502),
            (UnparseableResponseError("No JSON found"), 502),
            (SnapMarketError("generic"), 500),
        ],
    )
    def test_status_code(self, exc, status_code):
        resp = _get(exc)
        assert resp.status_code == status_code
        assert resp.json()["error_type"] == type(exc).__name__

    def test_detail_is_message(self):
        resp = _get(ListingAlreadySoldError("abc"))
        assert resp.json()["detail"] == "Listing abc has already been sold"

    def test_auth_required_sets_challenge_header(self):
        resp = _get(AuthRequiredError())
        assert resp.headers["WWW-Authenticate"] == "Bearer"
        assert resp.json()["detail"] == "Please log in to continue."


class TestUnhandledExceptions:

    def test_unhandled_exception_returns_500_with_error_id(self):
        resp = _get(RuntimeError("kaboom"))
        assert resp.status_code == 500
        body = resp.json()
        assert body["detail"] == "Internal server error"
        assert len(body["error_id"]) == 8
        assert "kaboom" not in resp.text

    def test_http_exception_passes_through(self):
        resp = _get(HTTPException(status_code=429, detail="slow down"))
        assert resp.status_code == 429
        assert resp.json()["detail"] == "slow down"
