import os

# Configure the environment before any ``mailrules`` import reads it.
os.environ["TESTING"] = "1"
os.environ["AUTH_DISABLED"] = "0"
os.environ["TOKEN_ENCRYPTION_KEY"] = "test-encryption-key"
os.environ["JWT_SECRET"] = "test-jwt-secret-0123456789abcdef"
os.environ["GOOGLE_CLIENT_ID"] = "google-client-id"
os.environ["GOOGLE_CLIENT_SECRET"] = "google-client-secret"
os.environ["MICROSOFT_CLIENT_ID"] = "microsoft-client-id"
os.environ["MICROSOFT_CLIENT_SECRET"] = "microsoft-client-secret"

from datetime import datetime  # noqa: E402
from typing import Any  # noqa: E402
from typing import Callable  # noqa: E402
from typing import Optional  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from jose import jwt  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import mailrules.database as _db_mod  # noqa: E402
from mailrules.config import get_settings  # noqa: E402
from mailrules.database import Base  # noqa: E402
from mailrules.database import get_db  # noqa: E402
from mailrules.database import make_engine  # noqa: E402
from mailrules.database import make_sessionmaker  # noqa: E402
from mailrules.dependencies.services import get_http_client  # noqa: E402
from mailrules.models.models import Job  # noqa: E402,F401
from mailrules.models.models import OAuthToken  # noqa: E402,F401
from mailrules.services.token_vault import TokenVaultStore  # noqa: E402
from mailrules.utils.crypto import TokenCipher  # noqa: E402

# Create a test database - using in-memory SQLite for tests
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

test_engine = make_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,  # Use StaticPool for in-memory database
)

TestingSessionLocal = make_sessionmaker(test_engine)

# Health checks and background helpers resolve sessions through the module.
_db_mod.default_session_factory = TestingSessionLocal

# Import app after the engine override is in place
from mailrules.main import app  # noqa: E402

TEST_KEY = os.environ["TOKEN_ENCRYPTION_KEY"]


# ---------------------------------------------------------------------------
# Fake provider HTTP
# ---------------------------------------------------------------------------


Handler = Callable[[httpx.Request], httpx.Response]


class FakeProviderAPI:
    """Route table for ``httpx.MockTransport``.

    Routes are keyed on method plus URL without query string.  Every request
    is recorded in :attr:`calls`; unrouted requests answer 404 so a test
    that forgot a route fails loudly instead of hitting the network.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], Handler] = {}
        self.calls: list[httpx.Request] = []

    def add(
        self,
        method: str,
        url: str,
        *,
        status: int = 200,
        json: Any = None,
        handler: Optional[Handler] = None,
    ) -> None:
        if handler is None:

            def handler(_request: httpx.Request, _status=status, _json=json) -> httpx.Response:
                if _json is None:
                    return httpx.Response(_status)
                return httpx.Response(_status, json=_json)

        self.routes[(method.upper(), url)] = handler

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        key = (request.method, f"{request.url.scheme}://{request.url.host}{request.url.path}")
        handler = self.routes.get(key)
        if handler is None:
            return httpx.Response(404, json={"error": f"unrouted {key}"})
        return handler(request)

    def calls_to(self, method: str, url_fragment: str) -> list[httpx.Request]:
        return [c for c in self.calls if c.method == method.upper() and url_fragment in str(c.url)]

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self._handle))


@pytest.fixture
def fake_api():
    return FakeProviderAPI()


@pytest.fixture
def http_client(fake_api):
    with fake_api.client() as client:
        yield client


# ---------------------------------------------------------------------------
# Database / vault
# ---------------------------------------------------------------------------


@pytest.fixture
def db_session():
    """
    Creates a fresh database for each test, then tears it down after the test is done.
    """
    Base.metadata.create_all(bind=test_engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def cipher():
    return TokenCipher(TEST_KEY)


@pytest.fixture
def vault(db_session):
    return TokenVaultStore(db_session)


@pytest.fixture
def store_token(vault, cipher):
    """Write an encrypted vault row from plaintext values."""

    def _store(
        user_id: str,
        provider: str,
        access_token: str,
        *,
        refresh_token: Optional[str] = None,
        expires_at: Optional[datetime] = None,
    ) -> OAuthToken:
        return vault.upsert(
            user_id,
            provider,
            encrypted_access_token=cipher.encrypt(access_token),
            encrypted_refresh_token=cipher.encrypt(refresh_token) if refresh_token else None,
            expires_at=expires_at,
        )

    return _store


@pytest.fixture
def settings():
    return get_settings()


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


def make_jwt(user_id: str, org_id: Optional[str] = "org-1", secret: Optional[str] = None) -> str:
    claims: dict[str, Any] = {"sub": user_id}
    if org_id is not None:
        claims["org_id"] = org_id
    return jwt.encode(claims, secret or os.environ["JWT_SECRET"], algorithm="HS256")


@pytest.fixture
def auth_headers():
    def _headers(user_id: str = "user-1", org_id: Optional[str] = "org-1") -> dict[str, str]:
        return {"Authorization": f"Bearer {make_jwt(user_id, org_id)}"}

    return _headers


@pytest.fixture
def client(db_session, fake_api):
    """
    Create a FastAPI TestClient with the test database and fake provider HTTP.
    """

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    def override_get_http_client():
        with fake_api.client() as http:
            yield http

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_http_client] = override_get_http_client
    yield TestClient(app)
    app.dependency_overrides = {}
