"""Centralised configuration helper.

Every environment lookup lives here; the rest of the package receives a
:class:`Settings` instance (via :func:`get_settings`) and passes the values it
needs into constructors explicitly.  Nothing below caches secrets at module
level so tests can tweak the environment between calls.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

# ``_REPO_ROOT`` points at the project root (one level above the package).
_REPO_ROOT = Path(__file__).resolve().parents[2]


def _truthy(value: str | None) -> bool:  # noqa: D401 – small helper
    """Return *True* when *value* looks like an affirmative string."""

    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class OAuthClientCredentials:
    """Provider-scoped OAuth client id/secret pair."""

    client_id: str | None
    client_secret: str | None = field(repr=False, default=None)

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)


@dataclass
class Settings:  # noqa: D401 – simple data container
    """Lightweight settings container populated from environment variables."""

    # Runtime flags -----------------------------------------------------
    testing: bool
    auth_disabled: bool

    # Database ---------------------------------------------------------
    database_url: str

    # Secrets (never rendered by repr) -------------------------------------
    jwt_secret: str = field(repr=False)
    token_encryption_key: str | None = field(repr=False)
    google_client_id: Any = None
    google_client_secret: Any = field(repr=False, default=None)
    microsoft_client_id: Any = None
    microsoft_client_secret: Any = field(repr=False, default=None)

    # Misc
    log_level: str = "INFO"
    rule_name_prefix: str = "Wibookly"
    http_timeout_seconds: float = 30.0
    allowed_cors_origins: str = ""

    def client_credentials(self, provider: str) -> OAuthClientCredentials:
        """Return the OAuth client pair configured for *provider*."""

        if provider == "google":
            return OAuthClientCredentials(self.google_client_id, self.google_client_secret)
        if provider == "microsoft":
            return OAuthClientCredentials(self.microsoft_client_id, self.microsoft_client_secret)
        return OAuthClientCredentials(None, None)

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.allowed_cors_origins.split(",") if o.strip()]


def _load_settings() -> Settings:  # noqa: D401 – helper
    """Populate :class:`Settings` from environment variables."""

    env_path = _REPO_ROOT / ".env"
    if env_path.exists():
        # Real environment wins over the file so deployments and tests can
        # override individual values.
        load_dotenv(env_path, override=False)

    testing = _truthy(os.getenv("TESTING"))

    return Settings(
        testing=testing,
        auth_disabled=_truthy(os.getenv("AUTH_DISABLED")),
        database_url=os.getenv("DATABASE_URL", ""),
        jwt_secret=os.getenv("JWT_SECRET", "dev-secret"),
        token_encryption_key=os.getenv("TOKEN_ENCRYPTION_KEY"),
        google_client_id=os.getenv("GOOGLE_CLIENT_ID"),
        google_client_secret=os.getenv("GOOGLE_CLIENT_SECRET"),
        microsoft_client_id=os.getenv("MICROSOFT_CLIENT_ID"),
        microsoft_client_secret=os.getenv("MICROSOFT_CLIENT_SECRET"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        rule_name_prefix=os.getenv("RULE_NAME_PREFIX", "Wibookly"),
        http_timeout_seconds=float(os.getenv("HTTP_TIMEOUT_SECONDS", "30")),
        allowed_cors_origins=os.getenv("ALLOWED_CORS_ORIGINS", ""),
    )


def _validate_required(settings: Settings) -> None:  # noqa: D401 – helper
    """Abort startup when mandatory configuration is missing.

    Tests run with ``TESTING=1`` and inject their own key material, so the
    check is skipped there.
    """

    if settings.testing:
        return

    missing_vars = []

    if not settings.database_url:
        missing_vars.append("DATABASE_URL")

    if not settings.token_encryption_key:
        missing_vars.append("TOKEN_ENCRYPTION_KEY")

    if not settings.auth_disabled:
        weak = settings.jwt_secret.strip() in {"", "dev-secret"} or len(settings.jwt_secret) < 16
        if weak:
            missing_vars.append("JWT_SECRET (must be >=16 chars, not 'dev-secret')")

    if missing_vars:
        raise RuntimeError(
            f"CRITICAL: Missing required environment variables: {', '.join(missing_vars)}\n"
            f"Set these in your .env file or deployment environment."
        )


def get_settings() -> Settings:  # noqa: D401 – public accessor
    """Return :class:`Settings` instance loaded from environment."""

    settings = _load_settings()
    _validate_required(settings)
    return settings


__all__ = [
    "OAuthClientCredentials",
    "Settings",
    "get_settings",
]
