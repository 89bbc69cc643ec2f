"""
Sentry error tracking for SnapMarket.

Disabled entirely when ``dsn`` is empty. Events for expected outcomes
(4xx responses, auth and ownership refusals, already-sold listings) never
leave the process; SnapMarketError events carry the error class as an
``error_type`` tag.
"""

import logging

import sentry_sdk
from fastapi import HTTPException
from sentry_sdk.integrations import Integration
from sentry_sdk.integrations.asyncio import AsyncioIntegration
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from app.config import AppEnv
from app.core.exceptions import (
    AuthRequiredError,
    ForbiddenError,
    ListingAlreadySoldError,
    ListingNotFoundError,
    ListingValidationError,
    NotificationNotFoundError,
    SnapMarketError,
)

_EXPECTED_ERRORS = (
    AuthRequiredError,
    ForbiddenError,
    ListingAlreadySoldError,
    ListingNotFoundError,
    ListingValidationError,
    NotificationNotFoundError,
)


def _integrations() -> list[Integration]:
    return [
        FastApiIntegration(transaction_style="endpoint"),
        StarletteIntegration(transaction_style="endpoint"),
        AsyncioIntegration(),
        # Breadcrumbs from INFO, events from ERROR
        LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
    ]


def init_sentry(
    dsn: str,
    app_env: AppEnv,
    app_version: str,
    traces_sample_rate: float = 0.1,
    profiles_sample_rate: float = 0.1,
) -> bool:
    """
    Initialize the Sentry SDK.

    Returns:
        True if Sentry was initialized, False if disabled (empty DSN).
    """
    if not dsn:
        return False

    sentry_sdk.init(
        dsn=dsn,
        environment=app_env.value,
        release=f"snapmarket@{app_version}",
        traces_sample_rate=traces_sample_rate,
        profiles_sample_rate=profiles_sample_rate,
        integrations=_integrations(),
        before_send=_filter_events,
        send_default_pii=False,
    )
    return True


def _is_noise(exc: BaseException) -> bool:
    if isinstance(exc, HTTPException):
        return exc.status_code < 500
    return isinstance(exc, _EXPECTED_ERRORS)


def _filter_events(event: dict, hint: dict) -> dict | None:
    """``before_send`` hook: drop expected outcomes, tag SnapMarketError."""
    exc_info = hint.get("exc_info")
    if not exc_info:
        return event

    exc = exc_info[1]
    if _is_noise(exc):
        return None

    if isinstance(exc, SnapMarketError):
        event.setdefault("tags", {})["error_type"] = type(exc).__name__
        if exc.details:
            event["extra"] = {**event.get("extra", {}), **exc.details}
    return event
