from datetime import datetime
from datetime import timedelta
from urllib.parse import parse_qs

import httpx
import pytest

from mailrules.config import OAuthClientCredentials
from mailrules.crud import crud
from mailrules.errors import DecryptionError
from mailrules.errors import NoRefreshToken
from mailrules.errors import RefreshFailed
from mailrules.services.token_refresh import GOOGLE_TOKEN_URL
from mailrules.services.token_refresh import MICROSOFT_TOKEN_URL
from mailrules.services.token_refresh import TokenRefreshCoordinator
from mailrules.utils.crypto import TokenCipher

NOW = datetime(2026, 3, 1, 12, 0, 0)

CREDENTIALS = {
    "google": OAuthClientCredentials("gid", "gsecret"),
    "microsoft": OAuthClientCredentials("mid", "msecret"),
}


@pytest.fixture
def coordinator(vault, cipher, http_client):
    return TokenRefreshCoordinator(vault, cipher, CREDENTIALS, http_client, clock=lambda: NOW)


def _form(request: httpx.Request) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


def test_unexpired_token_returned_without_network(coordinator, store_token, fake_api):
    record = store_token("u1", "google", "live-token", refresh_token="r", expires_at=NOW + timedelta(hours=1))

    assert coordinator.get_valid_access_token(record) == "live-token"
    assert fake_api.calls == []


def test_missing_expiry_never_expires(coordinator, store_token, fake_api):
    record = store_token("u1", "google", "forever")

    assert coordinator.get_valid_access_token(record) == "forever"
    assert fake_api.calls == []


def test_expiry_boundary_counts_as_expired(coordinator, store_token, fake_api):
    fake_api.add("POST", GOOGLE_TOKEN_URL, json={"access_token": "fresh", "expires_in": 60})
    record = store_token("u1", "google", "old", refresh_token="r", expires_at=NOW)

    assert coordinator.get_valid_access_token(record) == "fresh"


def test_google_refresh_persists_new_access_token(coordinator, store_token, fake_api, vault, cipher):
    fake_api.add(
        "POST",
        GOOGLE_TOKEN_URL,
        json={"access_token": "fresh-google", "expires_in": 3599, "refresh_token": "ignored"},
    )
    record = store_token("u1", "google", "stale", refresh_token="g-refresh", expires_at=NOW - timedelta(seconds=1))

    assert coordinator.get_valid_access_token(record) == "fresh-google"

    sent = _form(fake_api.calls[0])
    assert sent == {
        "client_id": "gid",
        "client_secret": "gsecret",
        "refresh_token": "g-refresh",
        "grant_type": "refresh_token",
    }

    stored = vault.get("u1", "google")
    assert cipher.decrypt(stored.encrypted_access_token) == "fresh-google"
    assert stored.expires_at == NOW + timedelta(seconds=3599)
    # Google does not rotate: the stored refresh token is untouched.
    assert cipher.decrypt(stored.encrypted_refresh_token) == "g-refresh"
    assert stored.version == 2


def test_microsoft_refresh_persists_rotated_refresh_token(coordinator, store_token, fake_api, vault, cipher):
    fake_api.add(
        "POST",
        MICROSOFT_TOKEN_URL,
        json={"access_token": "fresh-ms", "refresh_token": "rotated", "expires_in": 3600},
    )
    record = store_token("u1", "microsoft", "stale", refresh_token="m-refresh", expires_at=NOW - timedelta(minutes=5))

    assert coordinator.get_valid_access_token(record) == "fresh-ms"

    stored = vault.get("u1", "microsoft")
    assert cipher.decrypt(stored.encrypted_access_token) == "fresh-ms"
    assert cipher.decrypt(stored.encrypted_refresh_token) == "rotated"


def test_missing_expires_in_defaults_to_one_hour(coordinator, store_token, fake_api, vault):
    fake_api.add("POST", GOOGLE_TOKEN_URL, json={"access_token": "fresh"})
    record = store_token("u1", "google", "stale", refresh_token="r", expires_at=NOW - timedelta(days=1))

    coordinator.get_valid_access_token(record)

    assert vault.get("u1", "google").expires_at == NOW + timedelta(seconds=3600)


def test_expired_without_refresh_token_raises(coordinator, store_token, fake_api):
    record = store_token("u1", "google", "stale", expires_at=NOW - timedelta(seconds=1))

    with pytest.raises(NoRefreshToken):
        coordinator.get_valid_access_token(record)
    assert fake_api.calls == []


def test_rejected_refresh_raises_and_keeps_row(coordinator, store_token, fake_api, vault, cipher):
    fake_api.add("POST", GOOGLE_TOKEN_URL, status=400, json={"error": "invalid_grant"})
    record = store_token("u1", "google", "stale", refresh_token="revoked", expires_at=NOW - timedelta(seconds=1))

    with pytest.raises(RefreshFailed):
        coordinator.get_valid_access_token(record)

    stored = vault.get("u1", "google")
    assert cipher.decrypt(stored.encrypted_access_token) == "stale"
    assert stored.version == 1


def test_response_without_access_token_raises(coordinator, store_token, fake_api):
    fake_api.add("POST", GOOGLE_TOKEN_URL, json={"token_type": "Bearer"})
    record = store_token("u1", "google", "stale", refresh_token="r", expires_at=NOW - timedelta(seconds=1))

    with pytest.raises(RefreshFailed):
        coordinator.get_valid_access_token(record)


def test_transport_error_raises_refresh_failed(vault, cipher, store_token):
    def _boom(request):
        raise httpx.ConnectError("dns failure", request=request)

    with httpx.Client(transport=httpx.MockTransport(_boom)) as http:
        coordinator = TokenRefreshCoordinator(vault, cipher, CREDENTIALS, http, clock=lambda: NOW)
        record = store_token("u1", "google", "stale", refresh_token="r", expires_at=NOW - timedelta(seconds=1))

        with pytest.raises(RefreshFailed):
            coordinator.get_valid_access_token(record)


def test_unconfigured_credentials_raise(vault, cipher, store_token, http_client, fake_api):
    coordinator = TokenRefreshCoordinator(
        vault,
        cipher,
        {"google": OAuthClientCredentials(None, None)},
        http_client,
        clock=lambda: NOW,
    )
    record = store_token("u1", "google", "stale", refresh_token="r", expires_at=NOW - timedelta(seconds=1))

    with pytest.raises(RefreshFailed):
        coordinator.get_valid_access_token(record)
    assert fake_api.calls == []


def test_undecryptable_access_token_raises(coordinator, vault):
    record = vault.upsert("u1", "google", encrypted_access_token=TokenCipher("other-key").encrypt("x"))

    with pytest.raises(DecryptionError):
        coordinator.get_valid_access_token(record)


def test_lost_race_returns_winners_token(coordinator, store_token, fake_api, vault, cipher, db_session):
    record = store_token("u1", "microsoft", "stale", refresh_token="m-old", expires_at=NOW - timedelta(seconds=1))

    def _token_endpoint(request):
        # Another invocation refreshes and commits while our exchange is in flight.
        crud.update_oauth_token_if_version(
            db_session,
            "u1",
            "microsoft",
            1,
            encrypted_access_token=cipher.encrypt("winner-token"),
            encrypted_refresh_token=cipher.encrypt("winner-refresh"),
            expires_at=NOW + timedelta(hours=1),
        )
        return httpx.Response(200, json={"access_token": "loser-token", "refresh_token": "loser-refresh"})

    fake_api.add("POST", MICROSOFT_TOKEN_URL, handler=_token_endpoint)

    assert coordinator.get_valid_access_token(record) == "winner-token"

    stored = vault.get("u1", "microsoft")
    assert cipher.decrypt(stored.encrypted_refresh_token) == "winner-refresh"
    assert stored.version == 2


def test_lost_race_with_expired_winner_raises(coordinator, store_token, fake_api, cipher, db_session):
    record = store_token("u1", "google", "stale", refresh_token="r", expires_at=NOW - timedelta(seconds=1))

    def _token_endpoint(request):
        crud.update_oauth_token_if_version(
            db_session,
            "u1",
            "google",
            1,
            encrypted_access_token=cipher.encrypt("also-stale"),
            expires_at=NOW - timedelta(seconds=1),
        )
        return httpx.Response(200, json={"access_token": "ours"})

    fake_api.add("POST", GOOGLE_TOKEN_URL, handler=_token_endpoint)

    with pytest.raises(RefreshFailed):
        coordinator.get_valid_access_token(record)
