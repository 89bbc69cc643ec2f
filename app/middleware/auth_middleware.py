"""
Identity-provider authentication dependencies.

Provides:
- get_session_context: builds the per-request SessionContext from the
  optional bearer token. Never fails; an invalid token yields an
  anonymous context.
- get_current_identity: requires an authenticated identity (401 otherwise).

Usage in endpoints:
    @router.get("/mine")
    async def my_listings(identity: Identity = Depends(get_current_identity)):
        ...

    @router.post("/{listing_id}/buy")
    async def buy(ctx: SessionContext = Depends(get_session_context)):
        await PurchaseService(db).buy(listing_id, ctx)
"""

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.config import Settings, get_settings
from app.core.logging_config import bind_user
from app.core.session import Identity, SessionContext

# Extracts the Bearer token if present; missing tokens are not an error here
_bearer_scheme = HTTPBearer(auto_error=False)


async def get_session_context(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> SessionContext:
    """
    FastAPI dependency: the caller's session context.

    The identity is also stored on ``request.state.user_id`` so the
    logging middleware and the draft quota can attribute the request.
    """
    token = credentials.credentials if credentials else None
    ctx = SessionContext.from_token(token, settings)

    if ctx.identity is not None:
        request.state.user_id = ctx.identity.user_id
        bind_user(ctx.identity.user_id)
    return ctx


async def get_current_identity(
    ctx: SessionContext = Depends(get_session_context),
) -> Identity:
    """
    FastAPI dependency: the authenticated identity.

    Raises:
        AuthRequiredError (401) if there is no valid token.
    """
    return ctx.require()
