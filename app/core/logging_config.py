"""
Structured logging configuration for SnapMarket.

structlog wraps stdlib logging so that every ``logging.getLogger(__name__)``
call in the app renders through the same pipeline:

- development: colored console lines
- staging / production: one JSON object per line

Request-scoped values (``request_id``, ``user_id``) bound through
``structlog.contextvars`` are merged into every event.
"""

import logging
import sys

import structlog
from structlog.types import Processor

from app.config import AppEnv

# Third-party loggers that are too chatty at INFO
NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "httpcore")


def _pre_chain() -> list[Processor]:
    """Processors every event passes through before rendering."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderers(app_env: AppEnv, log_format: str) -> list[Processor]:
    """
    Final processors for the root handler.

    ``log_format`` of ``"json"`` or ``"console"`` wins; ``"auto"`` picks
    console only in development.
    """
    if log_format == "json":
        use_json = True
    elif log_format == "console":
        use_json = False
    else:
        use_json = app_env != AppEnv.DEVELOPMENT

    if use_json:
        # Tracebacks become a string field instead of breaking the JSON line
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=True)]


def setup_logging(
    app_env: AppEnv,
    log_level: str = "INFO",
    log_format: str = "auto",
) -> None:
    """
    Route stdlib and structlog loggers through one structured handler on stdout.

    Args:
        app_env: Current environment (development, staging, production).
        log_level: Root logger level name; unknown names fall back to INFO.
        log_format: ``"json"``, ``"console"``, or ``"auto"``.
    """
    pre_chain = _pre_chain()

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *_renderers(app_env, log_format),
        ],
        foreign_pre_chain=pre_chain,
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers[:] = [handler]
    level = logging.getLevelName(log_level.upper())
    root.setLevel(level if isinstance(level, int) else logging.INFO)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_user(user_id: str) -> None:
    """Attach the authenticated identity to every log line of this request."""
    structlog.contextvars.bind_contextvars(user_id=user_id)