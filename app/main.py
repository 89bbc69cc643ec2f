"""
SnapMarket FastAPI application entry point.

    gunicorn app.main:app -c gunicorn.conf.py
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from app import __version__
from app.config import Settings, get_settings
from app.core.logging_config import setup_logging
from app.core.sentry_config import init_sentry
from app.middleware.logging_middleware import LoggingMiddleware
from app.middleware.rate_limiter import close_redis
from app.middleware.security_headers import SecurityHeadersMiddleware

logger = logging.getLogger(__name__)

# Expo dev servers (native bundler and web)
DEV_ORIGINS = ["http://localhost:8081", "http://localhost:19006"]

OPENAPI_TAGS = [
    {"name": "Inference", "description": "The generateListing function: product photo in, listing fields out."},
    {"name": "Drafts", "description": "Upload a photo and receive an AI-assisted listing draft."},
    {"name": "Listings", "description": "Publish, browse, delete and buy marketplace listings."},
    {"name": "Purchases", "description": "The caller's purchase history."},
    {"name": "Notifications", "description": "Per-user notifications and read state."},
    {"name": "System", "description": "Health checks."},
]

API_DESCRIPTION = (
    "SnapMarket is a photo-first marketplace: sellers snap a picture, "
    "a vision model drafts the listing, buyers browse and buy.\n\n"
    "**Authentication:** Bearer JWT issued by the identity provider. "
    "Browsing and `/generateListing` are open; everything else requires a token.\n\n"
    "**Rate Limits:** AI drafts are limited per user per day "
    "(`X-RateLimit-*` response headers)."
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info(f"{settings.app_name} {__version__} starting in {settings.app_env.value}")
    if not settings.gemini_configured and not settings.inference_function_url:
        logger.warning("No GEMINI_API_KEY or INFERENCE_FUNCTION_URL; AI drafts will fail")
    if not settings.storage_url:
        logger.warning("No STORAGE_URL; image uploads will fail")
    yield
    await close_redis()
    logger.info(f"{settings.app_name} stopped")


def cors_origins(settings: Settings) -> list[str]:
    """Allowed browser origins: Expo dev servers locally, CORS_ALLOWED_ORIGINS elsewhere."""
    if settings.is_development:
        return list(DEV_ORIGINS)
    return [o.strip() for o in settings.cors_allowed_origins.split(",") if o.strip()]


def _install_middleware(app: FastAPI, settings: Settings) -> None:
    # Added innermost first; CORS ends up outermost
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(GZipMiddleware, minimum_size=settings.gzip_minimum_size)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins(settings),
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=[
            "X-Request-ID",
            "X-Response-Time",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
        ],
    )


def create_app() -> FastAPI:
    """Build the ASGI application: observability first, then middleware, routes, handlers."""
    settings = get_settings()

    setup_logging(
        app_env=settings.app_env,
        log_level=settings.log_level,
        log_format=settings.log_format,
    )
    # Before FastAPI() so the ASGI integration hooks in
    init_sentry(
        dsn=settings.sentry_dsn,
        app_env=settings.app_env,
        app_version=__version__,
        traces_sample_rate=settings.sentry_traces_sample_rate,
        profiles_sample_rate=settings.sentry_profiles_sample_rate,
    )

    show_docs = settings.is_development
    app = FastAPI(
        title=settings.app_name,
        description=API_DESCRIPTION,
        version=__version__,
        lifespan=lifespan,
        openapi_tags=OPENAPI_TAGS,
        docs_url="/docs" if show_docs else None,
        redoc_url="/redoc" if show_docs else None,
        redirect_slashes=False,
    )
    _install_middleware(app, settings)

    # Deferred: importing the routers creates the database engine
    from app.api import health
    from app.api.v1 import drafts, inference, listings, notifications, purchases
    from app.middleware.exception_handler import register_exception_handlers

    app.include_router(health.router)
    app.include_router(inference.router)
    for module in (drafts, listings, purchases, notifications):
        app.include_router(module.router, prefix="/api/v1")

    register_exception_handlers(app)
    return app


app = create_app()
