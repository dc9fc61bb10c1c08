"""Per-request wiring of the service objects.

Each request gets its own ``httpx.Client`` and its own service instances
built from explicit settings values; nothing here is cached at module level.
Tests swap :func:`get_http_client` for a client backed by
``httpx.MockTransport``.
"""

from __future__ import annotations

from typing import Iterator

import httpx
from fastapi import Depends
from sqlalchemy.orm import Session

from mailrules.config import Settings
from mailrules.config import get_settings
from mailrules.database import get_db
from mailrules.email.providers import get_adapter
from mailrules.email.providers import supported_providers
from mailrules.services.rule_cleanup import RuleCleanupService
from mailrules.services.sync_jobs import SyncJobRunner
from mailrules.services.token_refresh import TokenRefreshCoordinator
from mailrules.services.token_vault import TokenVaultStore
from mailrules.utils.crypto import TokenCipher


def get_app_settings() -> Settings:
    return get_settings()


def get_http_client(settings: Settings = Depends(get_app_settings)) -> Iterator[httpx.Client]:
    with httpx.Client(timeout=settings.http_timeout_seconds) as client:
        yield client


def get_token_cipher(settings: Settings = Depends(get_app_settings)) -> TokenCipher:
    if not settings.token_encryption_key:
        raise RuntimeError("TOKEN_ENCRYPTION_KEY is not configured")
    return TokenCipher(settings.token_encryption_key)


def get_token_vault(db: Session = Depends(get_db)) -> TokenVaultStore:
    return TokenVaultStore(db)


def get_refresh_coordinator(
    vault: TokenVaultStore = Depends(get_token_vault),
    cipher: TokenCipher = Depends(get_token_cipher),
    http: httpx.Client = Depends(get_http_client),
    settings: Settings = Depends(get_app_settings),
) -> TokenRefreshCoordinator:
    credentials = {provider: settings.client_credentials(provider) for provider in supported_providers()}
    return TokenRefreshCoordinator(vault, cipher, credentials, http)


def get_rule_cleanup_service(
    vault: TokenVaultStore = Depends(get_token_vault),
    coordinator: TokenRefreshCoordinator = Depends(get_refresh_coordinator),
    http: httpx.Client = Depends(get_http_client),
    settings: Settings = Depends(get_app_settings),
) -> RuleCleanupService:
    return RuleCleanupService(vault, coordinator, lambda provider: get_adapter(provider, http, settings))


def get_sync_job_runner(
    db: Session = Depends(get_db),
    vault: TokenVaultStore = Depends(get_token_vault),
    cipher: TokenCipher = Depends(get_token_cipher),
) -> SyncJobRunner:
    return SyncJobRunner(db, vault, cipher)


__all__ = [
    "get_app_settings",
    "get_http_client",
    "get_refresh_coordinator",
    "get_rule_cleanup_service",
    "get_sync_job_runner",
    "get_token_cipher",
    "get_token_vault",
]
