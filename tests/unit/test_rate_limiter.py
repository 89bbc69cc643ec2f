"""
Tests for the Redis-backed daily AI draft quota.

Verifies:
1. Quota checking and counter increment logic
2. 429 response with correct headers when exhausted
3. Redis key pattern and TTL
4. Unlimited bypass (-1)
5. Graceful handling of Redis connection errors (fail-open)
6. Integration with the drafts endpoint
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError

from app.config import get_settings
from app.core.interfaces import IInferenceGateway, IObjectStorage
from app.main import create_app
from app.middleware.rate_limiter import (
    RateLimitInfo,
    add_rate_limit_headers,
    consume_draft_quota,
    get_redis,
    quota_key,
    reset_timestamp,
    seconds_until_reset,
)
from app.services.draft_service import DraftAssembler

# ─── Helper: Create mock Redis pipeline ───────────────────


def _mock_redis(current_count=None, new_count=None):
    """Create a mock Redis client with pipeline support."""
    mock = AsyncMock()
    mock.get = AsyncMock(return_value=str(current_count) if current_count is not None else None)

    mock_pipe = AsyncMock()
    mock_pipe.incr = MagicMock(return_value=mock_pipe)
    mock_pipe.expire = MagicMock(return_value=mock_pipe)
    mock_pipe.execute = AsyncMock(
        return_value=[new_count if new_count is not None else (current_count or 0) + 1, True]
    )
    mock.pipeline = MagicMock(return_value=mock_pipe)

    return mock


# ─── Redis Key Pattern Tests ─────────────────────────────


class TestQuotaKey:

    def test_key_pattern(self):
        now = datetime(2026, 3, 14, 15, 9, tzinfo=UTC)
        assert quota_key("user-123", now) == "ratelimit:drafts:user-123:2026-03-14"

    def test_key_defaults_to_today(self):
        today = datetime.now(UTC).strftime("%Y-%m-%d")
        assert quota_key("user-123").endswith(today)

    def test_reset_is_next_utc_midnight(self):
        now = datetime(2026, 3, 14, 23, 0, tzinfo=UTC)
        assert reset_timestamp(now) == int(datetime(2026, 3, 15, tzinfo=UTC).timestamp())
        assert seconds_until_reset(now) == 3600

    def test_seconds_until_reset_is_at_least_one(self):
        now = datetime(2026, 3, 14, 23, 59, 59, 999999, tzinfo=UTC)
        assert seconds_until_reset(now) == 1


# ─── Core Quota Tests ────────────────────────────────────


class TestConsumeDraftQuota:

    async def test_first_draft_of_the_day(self):
        mock_redis = _mock_redis(current_count=None, new_count=1)

        info = await consume_draft_quota("user-1", 50, mock_redis)

        assert info.limit == 50
        assert info.remaining == 49
        assert info.current_count == 1

    async def test_increments_and_sets_ttl(self):
        mock_redis = _mock_redis(current_count=10, new_count=11)

        info = await consume_draft_quota("user-1", 50, mock_redis)

        assert info.remaining == 39
        pipe = mock_redis.pipeline.return_value
        pipe.incr.assert_called_once_with(quota_key("user-1"))
        pipe.expire.assert_called_once()

    async def test_last_draft_of_the_day(self):
        mock_redis = _mock_redis(current_count=49, new_count=50)

        info = await consume_draft_quota("user-1", 50, mock_redis)

        assert info.remaining == 0

    async def test_exhausted_quota_raises_429(self):
        mock_redis = _mock_redis(current_count=50)

        with pytest.raises(HTTPException) as exc_info:
            await consume_draft_quota("user-1", 50, mock_redis)

        exc = exc_info.value
        assert exc.status_code == 429
        assert exc.detail["error"] == "Daily AI draft limit reached"
        assert exc.detail["used"] == 50
        assert exc.headers["X-RateLimit-Limit"] == "50"
        assert exc.headers["X-RateLimit-Remaining"] == "0"
        assert "Retry-After" in exc.headers
        mock_redis.pipeline.assert_not_called()

    async def test_unlimited_skips_redis(self):
        mock_redis = _mock_redis()

        info = await consume_draft_quota("user-1", -1, mock_redis)

        assert info.limit == -1
        assert info.remaining == -1
        mock_redis.get.assert_not_called()


# ─── Redis Fail-Open Tests ───────────────────────────────


class TestRedisFailOpen:

    @pytest.mark.parametrize(
        "error",
        [
            RedisConnectionError("Redis unavailable"),
            TimeoutError("Redis timeout"),
            OSError("Connection refused"),
        ],
    )
    async def test_errors_allow_the_draft(self, error):
        mock_redis = AsyncMock()
        mock_redis.get = AsyncMock(side_effect=error)

        info = await consume_draft_quota("user-1", 50, mock_redis)

        assert info.limit == 50
        assert info.remaining == -1  # Unknown
        assert info.current_count == -1


# ─── Rate Limit Headers Tests ────────────────────────────


class TestRateLimitHeaders:

    def test_add_headers_to_response(self):
        mock_response = MagicMock()
        mock_response.headers = {}

        info = RateLimitInfo(limit=50, remaining=30, reset_timestamp=1700000000, current_count=20)
        add_rate_limit_headers(mock_response, info)

        assert mock_response.headers == {
            "X-RateLimit-Limit": "50",
            "X-RateLimit-Remaining": "30",
            "X-RateLimit-Reset": "1700000000",
        }

    def test_unlimited_headers(self):
        mock_response = MagicMock()
        mock_response.headers = {}

        info = RateLimitInfo(limit=-1, remaining=-1, reset_timestamp=1700000000, current_count=0)
        add_rate_limit_headers(mock_response, info)

        assert mock_response.headers["X-RateLimit-Limit"] == "unlimited"
        assert mock_response.headers["X-RateLimit-Remaining"] == "unlimited"

    def test_unknown_remaining_is_omitted(self):
        mock_response = MagicMock()
        mock_response.headers = {}

        info = RateLimitInfo(limit=50, remaining=-1, reset_timestamp=1700000000, current_count=-1)
        add_rate_limit_headers(mock_response, info)

        assert "X-RateLimit-Remaining" not in mock_response.headers


# ─── Endpoint Integration Tests ──────────────────────────


SUGGESTION = {
    "title": "Wooden Chess Set",
    "description": "Hand carved, all pieces present",
    "price": 45,
    "category": "Collectibles",
    "condition": "Used",
    "defaulted_fields": [],
}


@pytest.fixture
def quota_client(settings, token_factory):
    """App with a fake assembler; ``quota_client(redis_mock)`` returns (client, headers)."""
    app = create_app()
    storage = AsyncMock(spec=IObjectStorage)
    storage.upload_image.return_value = "https://storage.test/x.jpg"
    gateway = AsyncMock(spec=IInferenceGateway)
    gateway.generate.return_value = dict(SUGGESTION)

    from app.api.v1.drafts import get_draft_assembler

    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_draft_assembler] = lambda: DraftAssembler(storage, gateway)

    def _build(redis_mock):
        async def mock_get_redis():
            return redis_mock

        app.dependency_overrides[get_redis] = mock_get_redis
        headers = {"Authorization": f"Bearer {token_factory('user-1', 'u1@example.com')}"}
        return TestClient(app), headers

    yield _build
    app.dependency_overrides.clear()


def _post_draft(client, headers):
    return client.post(
        "/api/v1/drafts",
        files={"image": ("chess.jpg", b"\xff\xd8\xff\xe0jpeg", "image/jpeg")},
        headers=headers,
    )


class TestEndpointIntegration:

    def test_draft_returns_rate_headers(self, quota_client):
        client, headers = quota_client(_mock_redis(current_count=0, new_count=1))

        resp = _post_draft(client, headers)

        assert resp.status_code == 200
        assert resp.headers["X-RateLimit-Limit"] == "50"
        assert resp.headers["X-RateLimit-Remaining"] == "49"
        assert "X-RateLimit-Reset" in resp.headers

    def test_draft_429_when_exhausted(self, quota_client):
        client, headers = quota_client(_mock_redis(current_count=50))

        resp = _post_draft(client, headers)

        assert resp.status_code == 429
        assert resp.json()["detail"]["error"] == "Daily AI draft limit reached"
        assert resp.headers["X-RateLimit-Remaining"] == "0"

    def test_anonymous_draft_is_401_before_quota(self, quota_client):
        redis_mock = _mock_redis(current_count=0)
        client, _ = quota_client(redis_mock)

        resp = _post_draft(client, {})

        assert resp.status_code == 401
        redis_mock.get.assert_not_called()

    def test_browsing_is_not_rate_limited(self, quota_client, monkeypatch):
        client, _ = quota_client(_mock_redis())

        from app.api.v1 import listings

        class _EmptyRepo:
            def __init__(self, session):
                pass

            async def list_available(self, **kwargs):
                return []

            async def count_available(self, **kwargs):
                return 0

        monkeypatch.setattr(listings, "ListingRepository", _EmptyRepo)

        from app.db.database import get_db

        async def mock_get_db():
            yield AsyncMock()

        client.app.dependency_overrides[get_db] = mock_get_db
        resp = client.get("/api/v1/listings")

        assert resp.status_code == 200
        assert "X-RateLimit-Limit" not in resp.headers
