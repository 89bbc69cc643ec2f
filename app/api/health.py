"""
Operational endpoints.

Provides:
- GET /health — liveness plus database, Redis and integration status
"""

from fastapi import APIRouter, Depends
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from app import __version__
from app.config import Settings, get_settings
from app.core.health import get_health_status
from app.db.database import get_db
from app.middleware.rate_limiter import get_redis

router = APIRouter(tags=["System"])


@router.get("/health", summary="Service health")
async def health(
    db: AsyncSession = Depends(get_db),
    redis: Redis = Depends(get_redis),
    settings: Settings = Depends(get_settings),
):
    """Always 200; ``status`` is ``degraded`` when a probe is down."""
    return await get_health_status(
        app_name=settings.app_name,
        app_version=__version__,
        app_env=settings.app_env.value,
        db_session=db,
        redis_client=redis,
        settings=settings,
    )
