"""
Async SQLAlchemy engine, session factory and the request-scoped session dependency.
"""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.config import Settings, get_settings
from app.db.query_logger import attach_query_logger


def engine_options(settings: Settings) -> dict[str, Any]:
    """Keyword arguments for ``create_async_engine``; pool sizing only applies to Postgres."""
    if settings.database_url.startswith("sqlite"):
        return {}
    # total connections = workers x (pool_size + max_overflow)
    return {
        "pool_size": settings.database_pool_size,
        "max_overflow": settings.database_max_overflow,
        "pool_recycle": settings.database_pool_recycle,
        "pool_pre_ping": settings.database_pool_pre_ping,
        "pool_timeout": settings.database_pool_timeout,
        "echo": settings.is_development and settings.app_debug,
    }


def create_engine(settings: Settings | None = None) -> AsyncEngine:
    settings = settings or get_settings()
    return create_async_engine(settings.database_url, **engine_options(settings))


engine = create_engine()
attach_query_logger(engine)

async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    One session and one transaction per request.

    Commits when the endpoint returns; any exception raised by the endpoint
    rolls the whole request back.

        @router.get("/listings")
        async def browse(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with async_session_factory() as session, session.begin():
        yield session
