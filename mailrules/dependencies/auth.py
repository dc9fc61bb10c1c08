"""FastAPI dependency that exposes the *current identity*.

Token validation lives in the strategy classes under
:pymod:`mailrules.auth.strategy`; this module only picks one from settings
and hands it the ``Authorization`` header.
"""

from __future__ import annotations

from fastapi import Depends
from fastapi import Request

from mailrules.auth.strategy import AuthStrategy
from mailrules.auth.strategy import DevAuthStrategy
from mailrules.auth.strategy import Identity
from mailrules.auth.strategy import JWTAuthStrategy
from mailrules.config import get_settings


def get_auth_strategy() -> AuthStrategy:
    """Return the strategy for the current configuration."""

    settings = get_settings()
    if settings.auth_disabled:
        return DevAuthStrategy()
    return JWTAuthStrategy(settings.jwt_secret)


def get_current_identity(request: Request, strategy: AuthStrategy = Depends(get_auth_strategy)) -> Identity:
    """Return the caller :class:`Identity` or raise ``AuthenticationError`` (→ 401)."""

    return strategy.authenticate(request.headers.get("Authorization"))


__all__ = ["get_auth_strategy", "get_current_identity"]
