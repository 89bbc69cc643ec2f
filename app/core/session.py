"""
Per-request session context.

Identity is issued by an external identity provider as a signed JWT.
SnapMarket never logs users in; it only verifies the token and carries
the resulting identity to the components that need it. Components
receive the context explicitly instead of reading a global "current user".
"""

import logging
from dataclasses import dataclass

from jose import JWTError, jwt

from app.config import Settings
from app.core.exceptions import AuthRequiredError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """An authenticated user as described by the identity provider."""

    user_id: str
    email: str = ""

    @property
    def contact(self) -> str:
        """How other users see this identity (e.g. in notifications)."""
        return self.email or self.user_id


def decode_identity_token(token: str, settings: Settings) -> Identity:
    """
    Verify a bearer token and extract the identity it carries.

    Raises:
        AuthRequiredError: token is malformed, expired, badly signed,
            or lacks a subject.
    """
    options = {}
    kwargs = {}
    if settings.auth_jwt_audience:
        kwargs["audience"] = settings.auth_jwt_audience
    else:
        options["verify_aud"] = False

    try:
        payload = jwt.decode(
            token,
            settings.auth_jwt_secret,
            algorithms=[settings.auth_jwt_algorithm],
            options=options,
            **kwargs,
        )
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        raise AuthRequiredError("Invalid or expired token") from e

    subject = payload.get("sub")
    if not subject:
        raise AuthRequiredError("Invalid token: missing subject")

    return Identity(user_id=str(subject), email=payload.get("email") or "")


class SessionContext:
    """
    Identity of the caller for the lifetime of one request.

    ``refresh()`` re-verifies the bearer token (the equivalent of the
    mobile client re-fetching the user whenever a screen gains focus);
    ``require()`` is the gate every identity-bound operation goes through.
    """

    def __init__(
        self,
        settings: Settings,
        token: str | None = None,
        identity: Identity | None = None,
    ):
        self._settings = settings
        self._token = token
        self._identity = identity

    @classmethod
    def anonymous(cls, settings: Settings) -> "SessionContext":
        return cls(settings=settings)

    @classmethod
    def from_token(cls, token: str | None, settings: Settings) -> "SessionContext":
        """Build a context from a raw bearer token; invalid tokens yield anonymous."""
        ctx = cls(settings=settings, token=token)
        ctx.refresh()
        return ctx

    @property
    def identity(self) -> Identity | None:
        return self._identity

    @property
    def is_authenticated(self) -> bool:
        return self._identity is not None

    def refresh(self) -> Identity | None:
        """Re-verify the token. An expired or invalid token clears the identity."""
        if not self._token:
            return self._identity

        try:
            self._identity = decode_identity_token(self._token, self._settings)
        except AuthRequiredError:
            self._identity = None
        return self._identity

    def require(self) -> Identity:
        """Return the identity or raise AuthRequiredError."""
        if self._identity is None:
            raise AuthRequiredError()
        return self._identity
