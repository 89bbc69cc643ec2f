"""
Redis-backed daily quota on AI draft generation.

Every draft costs one upload plus one call to the vision model, so each
identity gets ``DAILY_DRAFT_LIMIT`` drafts per UTC day (-1 = unlimited).

Uses Redis INCR with a TTL ending at midnight UTC and returns
X-RateLimit-* headers for the client. If Redis is unreachable the
request is allowed (fail-open).
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from fastapi import Depends, HTTPException, status
from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.config import Settings, get_settings
from app.core.session import Identity
from app.middleware.auth_middleware import get_current_identity

logger = logging.getLogger(__name__)


@dataclass
class RateLimitInfo:
    """Quota state returned to the endpoint for header injection."""

    limit: int  # Total allowed per day (-1 = unlimited)
    remaining: int  # Remaining for today (-1 = unlimited or unknown)
    reset_timestamp: int  # Unix timestamp when the daily window resets
    current_count: int  # Usage today (-1 = unknown)


# ─── Redis Connection Management ─────────────────────────────


_redis_client: Redis | None = None


async def get_redis() -> Redis:
    """Shared async Redis client, created lazily from settings."""
    global _redis_client
    if _redis_client is None:
        _redis_client = Redis.from_url(get_settings().redis_url, decode_responses=True)
    return _redis_client


async def close_redis() -> None:
    """Close the Redis connection on application shutdown."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


# ─── Quota Window ────────────────────────────────────────────


def quota_key(user_id: str, now: datetime | None = None) -> str:
    """``ratelimit:drafts:{user_id}:{YYYY-MM-DD}``, one counter per UTC day."""
    day = (now or datetime.now(UTC)).strftime("%Y-%m-%d")
    return f"ratelimit:drafts:{user_id}:{day}"


def _next_midnight(now: datetime) -> datetime:
    return (now + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)


def reset_timestamp(now: datetime | None = None) -> int:
    return int(_next_midnight(now or datetime.now(UTC)).timestamp())


def seconds_until_reset(now: datetime | None = None) -> int:
    now = now or datetime.now(UTC)
    return max(1, int((_next_midnight(now) - now).total_seconds()))


def _quota_exhausted(daily_limit: int, used: int, reset_ts: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail={
            "error": "Daily AI draft limit reached",
            "limit": daily_limit,
            "used": used,
            "reset": reset_ts,
        },
        headers={
            "X-RateLimit-Limit": str(daily_limit),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(reset_ts),
            "Retry-After": str(seconds_until_reset()),
        },
    )


# ─── Core Quota Logic ────────────────────────────────────────


async def consume_draft_quota(
    user_id: str,
    daily_limit: int,
    redis: Redis,
) -> RateLimitInfo:
    """
    Count one draft against today's quota.

    Raises:
        HTTPException 429 when the quota is already used up.
    """
    reset_ts = reset_timestamp()
    if daily_limit == -1:
        return RateLimitInfo(limit=-1, remaining=-1, reset_timestamp=reset_ts, current_count=0)

    key = quota_key(user_id)
    try:
        used = int(await redis.get(key) or 0)
        if used < daily_limit:
            pipe = redis.pipeline()
            pipe.incr(key)
            pipe.expire(key, seconds_until_reset())
            used = (await pipe.execute())[0]
            return RateLimitInfo(
                limit=daily_limit,
                remaining=max(0, daily_limit - used),
                reset_timestamp=reset_ts,
                current_count=used,
            )
    except (ConnectionError, TimeoutError, RedisError, OSError) as e:
        # Fail open: an unreachable quota store never blocks sellers
        logger.error(f"Redis unavailable for draft quota: {e}")
        return RateLimitInfo(limit=daily_limit, remaining=-1, reset_timestamp=reset_ts, current_count=-1)

    logger.warning(f"Draft quota exhausted for {user_id}: {used}/{daily_limit}")
    raise _quota_exhausted(daily_limit, used, reset_ts)


# ─── FastAPI Dependency ──────────────────────────────────────


async def check_draft_quota(
    identity: Identity = Depends(get_current_identity),
    redis: Redis = Depends(get_redis),
    settings: Settings = Depends(get_settings),
) -> RateLimitInfo:
    """FastAPI dependency: consume one AI draft from the caller's daily quota."""
    return await consume_draft_quota(identity.user_id, settings.daily_draft_limit, redis)


def add_rate_limit_headers(response, rate_info: RateLimitInfo) -> None:
    """Add X-RateLimit-* headers to a response."""
    if rate_info.limit == -1:
        response.headers["X-RateLimit-Limit"] = "unlimited"
        response.headers["X-RateLimit-Remaining"] = "unlimited"
    else:
        response.headers["X-RateLimit-Limit"] = str(rate_info.limit)
        if rate_info.remaining >= 0:
            response.headers["X-RateLimit-Remaining"] = str(rate_info.remaining)

    response.headers["X-RateLimit-Reset"] = str(rate_info.reset_timestamp)
