"""
Test fixtures: signing keys, an in-memory account store, a fake Google and
an application wired to all three.
"""
import json
from typing import Optional

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backend.api.context import build_context
from backend.api.main import create_app
from backend.api.rate_limiting import FixedWindowRateLimiter
from backend.core.auth.credentials import CredentialSigner, KeyPair
from backend.core.auth.google import GoogleIdentityExchanger, GoogleOAuthConfig
from backend.core.auth.state_store import OAuthStateStore
from backend.core.config import Settings
from backend.core.database import get_db
from backend.core.database.models import Base, User
from backend.core.database.repository import UserRepository
from backend.core.users.service import UserService

TEST_CLIENT_ID = "test-client-id.apps.googleusercontent.com"
TEST_REDIRECT_URL = "http://testserver/api/auth/google/callback"
TEST_FRONTEND_REDIRECT = "http://localhost:3000/auth/callback"
TEST_ACCESS_TOKEN = "ya29.test-access-token"


class FakeGoogle:
    """
    Stand-in for Google's token and userinfo endpoints, served through
    httpx.MockTransport.
    """

    def __init__(self):
        self.token_status = 200
        self.token_body: Optional[dict] = {
            "access_token": TEST_ACCESS_TOKEN,
            "token_type": "Bearer",
            "expires_in": 3599,
        }
        self.userinfo_status = 200
        self.userinfo: object = {
            "id": "google-sub-123",
            "email": "alice@example.com",
            "verified_email": True,
            "name": "Alice Example",
            "picture": "https://lh3.googleusercontent.com/a/alice",
        }
        self.userinfo_raw: Optional[bytes] = None
        self.fail_on: set = set()  # {"token", "userinfo"} -> transport error
        self.requests = []

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.url.path.endswith("/token"):
            if "token" in self.fail_on:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(self.token_status, json=self.token_body)

        if "userinfo" in self.fail_on:
            raise httpx.ReadTimeout("timed out", request=request)
        if request.headers.get("Authorization") != f"Bearer {TEST_ACCESS_TOKEN}":
            return httpx.Response(401, json={"error": "invalid_token"})
        if self.userinfo_raw is not None:
            return httpx.Response(self.userinfo_status, content=self.userinfo_raw)
        return httpx.Response(self.userinfo_status, content=json.dumps(self.userinfo).encode())

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


# ============================================================================
# Keys and credentials
# ============================================================================

@pytest.fixture(scope="session")
def key_pair():
    """One RSA key pair for the whole run (generation is slow)."""
    return KeyPair.generate()


@pytest.fixture(scope="session")
def other_key_pair():
    return KeyPair.generate()


@pytest.fixture
def signer(key_pair):
    return CredentialSigner(key_pair)


@pytest.fixture
def verifier(signer):
    return signer.verifier


# ============================================================================
# Database
# ============================================================================

@pytest.fixture(scope="function")
def test_db():
    """Create test database and tables."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def repository(test_db):
    return UserRepository(test_db)


@pytest.fixture
def user_service(repository):
    return UserService(repository)


@pytest.fixture
def make_user(test_db):
    """Factory inserting a live account directly."""
    def _make(email="bob@example.com", name="Bob Example", federated_id=None, is_active=True, **kwargs):
        user = User(email=email, name=name, federated_id=federated_id, is_active=is_active, **kwargs)
        test_db.add(user)
        test_db.commit()
        test_db.refresh(user)
        return user
    return _make


# ============================================================================
# Google
# ============================================================================

@pytest.fixture
def fake_google():
    return FakeGoogle()


@pytest.fixture
def oauth_config():
    return GoogleOAuthConfig(
        client_id=TEST_CLIENT_ID,
        client_secret="test-client-secret",
        redirect_url=TEST_REDIRECT_URL,
    )


@pytest.fixture
def exchanger(oauth_config, fake_google):
    return GoogleIdentityExchanger(oauth_config, transport=fake_google.transport)


@pytest.fixture
def state_store():
    return OAuthStateStore()


# ============================================================================
# Application
# ============================================================================

@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        google_client_id=TEST_CLIENT_ID,
        google_client_secret="test-client-secret",
        google_redirect_url=TEST_REDIRECT_URL,
        frontend_redirect=TEST_FRONTEND_REDIRECT,
        allowed_origins="http://localhost:3000",
    )


@pytest.fixture
def context(settings, key_pair, fake_google):
    return build_context(settings, key_pair=key_pair, transport=fake_google.transport)


@pytest.fixture
def rate_limiter():
    return FixedWindowRateLimiter(limit=1000, window_seconds=60)


@pytest.fixture
def app(settings, context, rate_limiter, test_db):
    """Application wired to the test context and database."""
    application = create_app(settings=settings, context=context, rate_limiter=rate_limiter)

    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    application.dependency_overrides[get_db] = override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def auth_headers(context):
    token = context.signer.issue("tester@example.com").token
    return {"Authorization": f"Bearer {token}"}
