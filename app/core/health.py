"""
Health check with dependency probes.

The database answers ``SELECT 1`` and Redis (the draft quota store) answers
``PING``; storage and the vision model are only checked for configuration.
The endpoint always answers 200; the body says ``"healthy"`` or
``"degraded"`` and carries per-component detail.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable
from datetime import UTC, datetime

from redis.asyncio import Redis
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings

logger = logging.getLogger(__name__)


async def _timed_probe(name: str, probe: Awaitable) -> dict:
    started = time.monotonic()
    try:
        await probe
    except Exception as e:
        logger.warning(f"{name} health check failed: {e}")
        return {"status": "down", "error": str(e)}
    return {"status": "up", "latency_ms": round((time.monotonic() - started) * 1000, 1)}


async def check_database(session: AsyncSession) -> dict:
    return await _timed_probe("Database", session.execute(text("SELECT 1")))


async def check_redis(redis: Redis) -> dict:
    return await _timed_probe("Redis", redis.ping())


def check_integrations(settings: Settings) -> dict[str, dict]:
    """Configuration status of storage and inference; makes no network calls."""
    remote = bool(settings.inference_function_url)
    return {
        "storage": {
            "status": "up" if settings.storage_url else "unconfigured",
            "bucket": settings.storage_bucket,
        },
        "inference": {
            "status": "up" if settings.gemini_configured or remote else "unconfigured",
            "mode": "remote" if remote else "local",
        },
    }


async def get_health_status(
    app_name: str,
    app_version: str,
    app_env: str,
    db_session: AsyncSession | None = None,
    redis_client: Redis | None = None,
    settings: Settings | None = None,
) -> dict:
    """
    Build the health response.

    Probes run concurrently. Only a ``"down"`` component degrades the
    overall status; unconfigured integrations do not.
    """
    probes = {}
    if db_session is not None:
        probes["database"] = check_database(db_session)
    if redis_client is not None:
        probes["redis"] = check_redis(redis_client)

    results = await asyncio.gather(*probes.values())
    components: dict[str, dict] = dict(zip(probes, results))
    if settings is not None:
        components |= check_integrations(settings)

    degraded = any(c["status"] == "down" for c in components.values())
    return {
        "status": "degraded" if degraded else "healthy",
        "app": app_name,
        "version": app_version,
        "environment": app_env,
        "timestamp": datetime.now(UTC).isoformat(),
        "components": components,
    }
