"""Access-token refresh coordinator.

Turns a vault record into a usable plaintext access token:

* Unexpired (or expiry unknown) → decrypt and return, no network call.
* Expired → exchange the stored refresh token at the provider's OAuth2 token
  endpoint, encrypt the new material, persist it, return the new token.

Whether a provider hands out a *new* refresh token on every exchange is a
capability flag on :class:`ProviderOAuthSpec` (Microsoft rotates, Google does
not) – the persistence path only looks at that flag.

Two invocations may refresh the same row at once.  Writes go through the
vault's version-checked update; the loser re-reads the row and adopts the
winner's token instead of overwriting it, so a rotated Microsoft refresh
token is never replaced by a stale one.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from datetime import timedelta
from typing import Any
from typing import Callable
from typing import Mapping

import httpx

from mailrules.config import OAuthClientCredentials
from mailrules.errors import NoRefreshToken
from mailrules.errors import RefreshFailed
from mailrules.models.enums import OAuthProvider
from mailrules.models.models import OAuthToken
from mailrules.services.token_vault import TokenVaultStore
from mailrules.utils.crypto import TokenCipher
from mailrules.utils.log import log
from mailrules.utils.time import as_naive_utc
from mailrules.utils.time import utc_now_naive

logger = log.bind(component="token-refresh")

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
MICROSOFT_TOKEN_URL = "https://login.microsoftonline.com/common/oauth2/v2.0/token"

# Used when a token response omits ``expires_in``.
DEFAULT_EXPIRES_IN = 3600


@dataclass(frozen=True)
class ProviderOAuthSpec:
    provider: str
    token_url: str
    rotates_refresh_token: bool


PROVIDER_OAUTH: dict[str, ProviderOAuthSpec] = {
    OAuthProvider.GOOGLE.value: ProviderOAuthSpec(
        OAuthProvider.GOOGLE.value, GOOGLE_TOKEN_URL, rotates_refresh_token=False
    ),
    OAuthProvider.MICROSOFT.value: ProviderOAuthSpec(
        OAuthProvider.MICROSOFT.value, MICROSOFT_TOKEN_URL, rotates_refresh_token=True
    ),
}


class TokenRefreshCoordinator:
    """Yield valid access tokens for vault records, refreshing when expired."""

    def __init__(
        self,
        vault: TokenVaultStore,
        cipher: TokenCipher,
        credentials: Mapping[str, OAuthClientCredentials],
        http: httpx.Client,
        *,
        clock: Callable[[], datetime] = utc_now_naive,
        oauth_specs: Mapping[str, ProviderOAuthSpec] = PROVIDER_OAUTH,
    ):
        self._vault = vault
        self._cipher = cipher
        self._credentials = credentials
        self._http = http
        self._clock = clock
        self._specs = oauth_specs

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def is_expired(self, record: OAuthToken, now: datetime | None = None) -> bool:
        """Return True when *record* carries an expiry at or before *now*."""

        if record.expires_at is None:
            return False
        now = as_naive_utc(now or self._clock())
        return as_naive_utc(record.expires_at) <= now

    def get_valid_access_token(self, record: OAuthToken) -> str:
        """Return a plaintext access token for *record*.

        Raises:
            NoRefreshToken: expired and nothing to refresh with.
            RefreshFailed: the provider refused or the response was unusable.
            DecryptionError: stored ciphertext does not match the key.
        """

        now = self._clock()
        if not self.is_expired(record, now):
            return self._cipher.decrypt(record.encrypted_access_token)

        provider = record.provider
        logger.info("token-expired", provider=provider, user_id=record.user_id)

        if not record.encrypted_refresh_token:
            raise NoRefreshToken(provider)

        spec = self._specs.get(provider)
        if spec is None:
            raise RefreshFailed(provider, f"no OAuth token endpoint known for {provider}")

        refresh_token = self._cipher.decrypt(record.encrypted_refresh_token)
        payload = self._exchange(spec, refresh_token)
        return self._persist(record, spec, payload, now)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _exchange(self, spec: ProviderOAuthSpec, refresh_token: str) -> dict[str, Any]:
        """POST a refresh-token grant and return the decoded JSON body."""

        creds = self._credentials.get(spec.provider)
        if creds is None or not creds.configured:
            raise RefreshFailed(spec.provider, f"OAuth client credentials for {spec.provider} are not configured")

        data = {
            "client_id": creds.client_id,
            "client_secret": creds.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }

        try:
            response = self._http.post(
                spec.token_url,
                data=data,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.HTTPError as exc:
            logger.warning("token-refresh-network-failure", provider=spec.provider, error=str(exc))
            raise RefreshFailed(spec.provider, "token endpoint request failed") from exc

        if not response.is_success:
            # Token endpoints answer with a short OAuth error code; safe to log.
            logger.error(
                "token-refresh-rejected",
                provider=spec.provider,
                status=response.status_code,
                error=_oauth_error_code(response),
            )
            raise RefreshFailed(spec.provider, f"token endpoint returned HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise RefreshFailed(spec.provider, "token endpoint returned invalid JSON") from exc

        if not isinstance(payload, dict) or not payload.get("access_token"):
            raise RefreshFailed(spec.provider, "token response carried no access_token")

        return payload

    def _persist(self, record: OAuthToken, spec: ProviderOAuthSpec, payload: dict[str, Any], now: datetime) -> str:
        access_token = str(payload["access_token"])

        try:
            expires_in = int(payload.get("expires_in") or DEFAULT_EXPIRES_IN)
        except (TypeError, ValueError):
            expires_in = DEFAULT_EXPIRES_IN

        fields: dict[str, Any] = {
            "encrypted_access_token": self._cipher.encrypt(access_token),
            "expires_at": as_naive_utc(now) + timedelta(seconds=expires_in),
        }

        new_refresh = payload.get("refresh_token")
        if spec.rotates_refresh_token and new_refresh:
            fields["encrypted_refresh_token"] = self._cipher.encrypt(str(new_refresh))

        won = self._vault.compare_and_swap(record.user_id, record.provider, record.version, **fields)
        if won:
            logger.info(
                "token-refreshed",
                provider=spec.provider,
                user_id=record.user_id,
                rotated=("encrypted_refresh_token" in fields),
                expires_in=expires_in,
            )
            return access_token

        # Someone else refreshed this row after we read it.  Their write is
        # authoritative; adopt it rather than clobbering a rotated token.
        logger.warning("token-refresh-race-lost", provider=spec.provider, user_id=record.user_id)
        current = self._vault.get(record.user_id, record.provider)
        if current is None or self.is_expired(current):
            raise RefreshFailed(spec.provider, "concurrent refresh left no usable token")
        return self._cipher.decrypt(current.encrypted_access_token)


def _oauth_error_code(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return "unparseable"
    if isinstance(body, dict):
        return str(body.get("error", "unknown"))
    return "unknown"


__all__ = [
    "DEFAULT_EXPIRES_IN",
    "GOOGLE_TOKEN_URL",
    "MICROSOFT_TOKEN_URL",
    "PROVIDER_OAUTH",
    "ProviderOAuthSpec",
    "TokenRefreshCoordinator",
]
