"""Authentication strategies.

A bearer token resolves to an :class:`Identity` (user id plus optional
organization id).  Which strategy runs is decided once from settings:

• :class:`JWTAuthStrategy` – validates HS256 tokens issued by the app's
  auth service.  ``sub`` carries the user id, ``org_id`` the organization.
• :class:`DevAuthStrategy` – ``AUTH_DISABLED=1`` bypass for local work.

Both raise :class:`mailrules.errors.AuthenticationError`; the HTTP layer maps
it to **401** before any vault access happens.
"""

from __future__ import annotations

from abc import ABC
from abc import abstractmethod
from dataclasses import dataclass
from typing import Any

from jose import JWTError
from jose import jwt

from mailrules.errors import AuthenticationError

MISSING_HEADER = "Missing authorization header"
UNAUTHORIZED = "Unauthorized"


@dataclass(frozen=True)
class Identity:
    user_id: str
    organization_id: str | None = None


# ---------------------------------------------------------------------------
# Strategy base-class
# ---------------------------------------------------------------------------


class AuthStrategy(ABC):
    """Pluggable authentication backend (strategy pattern)."""

    @abstractmethod
    def authenticate(self, authorization: str | None) -> Identity:  # noqa: D401 – abstract
        """Return the caller identity for an ``Authorization`` header value or raise."""


# ---------------------------------------------------------------------------
# Development-mode bypass
# ---------------------------------------------------------------------------


class DevAuthStrategy(AuthStrategy):
    """Bypass all checks – every request acts as the same dev user."""

    DEV_USER_ID = "dev-user"
    DEV_ORGANIZATION_ID = "dev-org"

    def authenticate(self, authorization: str | None) -> Identity:  # noqa: D401 – impl
        return Identity(self.DEV_USER_ID, self.DEV_ORGANIZATION_ID)


# ---------------------------------------------------------------------------
# HS256 JWT validation (production)
# ---------------------------------------------------------------------------


class JWTAuthStrategy(AuthStrategy):
    """Production strategy that validates HS256 tokens."""

    def __init__(self, secret: str):
        self._secret = secret

    def __repr__(self) -> str:
        return "JWTAuthStrategy(<redacted>)"

    def _decode(self, token: str) -> dict[str, Any]:  # noqa: D401 – helper
        return jwt.decode(token, self._secret, algorithms=["HS256"])

    def authenticate(self, authorization: str | None) -> Identity:  # noqa: D401 – impl
        if not authorization:
            raise AuthenticationError(MISSING_HEADER)

        scheme, _, token = authorization.partition(" ")
        token = token.strip()
        if scheme.lower() != "bearer" or not token:
            raise AuthenticationError(UNAUTHORIZED)

        try:
            payload = self._decode(token)
        except JWTError as exc:
            raise AuthenticationError(UNAUTHORIZED) from exc

        subject = payload.get("sub")
        if not subject:
            raise AuthenticationError(UNAUTHORIZED)

        org_id = payload.get("org_id")
        return Identity(str(subject), str(org_id) if org_id else None)


__all__ = [
    "AuthStrategy",
    "DevAuthStrategy",
    "Identity",
    "JWTAuthStrategy",
    "MISSING_HEADER",
    "UNAUTHORIZED",
]
