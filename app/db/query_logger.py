"""
Slow query detection via SQLAlchemy engine events.

Cursor execution is timed on the sync engine underlying the async engine;
statements slower than ``QUERY_SLOW_THRESHOLD_MS`` are logged as warnings.
"""

import logging
import time

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine

from app.config import get_settings

logger = logging.getLogger(__name__)

MAX_STATEMENT_PREVIEW = 500

_START_KEY = "query_start_time"


class SlowQueryLogger:
    """
    Pair of ``before_cursor_execute`` / ``after_cursor_execute`` listeners.

    Start times are kept as a stack in ``conn.info`` so statements issued
    while another is in flight on the same connection are timed separately.
    """

    def __init__(self, threshold_ms: int | None = None):
        self._threshold_ms = threshold_ms

    @property
    def threshold_ms(self) -> int:
        if self._threshold_ms is not None:
            return self._threshold_ms
        return get_settings().query_slow_threshold_ms

    def before(self, conn, cursor, statement, parameters, context, executemany) -> None:
        conn.info.setdefault(_START_KEY, []).append(time.perf_counter())

    def after(self, conn, cursor, statement, parameters, context, executemany) -> None:
        started = conn.info.get(_START_KEY)
        if not started:
            return
        elapsed_ms = (time.perf_counter() - started.pop()) * 1000.0
        limit = self.threshold_ms
        if elapsed_ms < limit:
            return
        logger.warning(
            "slow_query_detected",
            extra={
                "duration_ms": round(elapsed_ms, 2),
                "threshold_ms": limit,
                "statement": statement[:MAX_STATEMENT_PREVIEW],
            },
        )


def attach_query_logger(engine: AsyncEngine, threshold_ms: int | None = None) -> SlowQueryLogger:
    """Register slow-query listeners on ``engine``; ``threshold_ms`` overrides settings."""
    hooks = SlowQueryLogger(threshold_ms)
    event.listen(engine.sync_engine, "before_cursor_execute", hooks.before)
    event.listen(engine.sync_engine, "after_cursor_execute", hooks.after)
    return hooks
