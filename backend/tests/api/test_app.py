"""
Application-level tests: menu, health, security headers, rate limiting,
error rendering and startup.
"""
import pytest
from fastapi.testclient import TestClient

from backend.api.main import _sanitize_error_message, create_app
from backend.api.rate_limiting import FixedWindowRateLimiter
from backend.core.config import Settings
from backend.core.errors import ConfigurationError


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestMainMenu:
    def test_menu_for_signed_in_user(self, client, auth_headers):
        response = client.get("/api/collp/main-menu", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["email"] == "tester@example.com"
        assert [item["id"] for item in data["menu"]][:2] == ["dashboard", "users"]

    def test_menu_requires_credential(self, client):
        response = client.get("/api/collp/main-menu")

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    def test_expired_credential(self, client, key_pair):
        import jwt
        from datetime import datetime, timezone

        now = int(datetime.now(timezone.utc).timestamp())
        token = jwt.encode({"email": "tester@example.com", "iat": now - 7201, "exp": now - 1},
                           key_pair.private_key, algorithm="RS256")

        response = client.get("/api/collp/main-menu", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json() == {"error": "Token has expired"}


class TestHealthAndHeaders:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] in ("healthy", "degraded")

    def test_security_headers(self, client):
        response = client.get("/health")

        assert response.headers["x-content-type-options"] == "nosniff"
        assert response.headers["x-frame-options"] == "DENY"
        assert response.headers["x-xss-protection"] == "1; mode=block"
        assert "default-src 'self'" in response.headers["content-security-policy"]

    def test_cors_preflight(self, client):
        response = client.options(
            "/api/users",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "GET",
                "Access-Control-Request-Headers": "Authorization",
            },
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"


class TestRateLimiting:
    @pytest.fixture
    def limited_client(self, settings, context, test_db):
        limiter = FixedWindowRateLimiter(limit=3, window_seconds=60, clock=FakeClock())
        return TestClient(create_app(settings=settings, context=context, rate_limiter=limiter))

    def test_requests_over_limit_rejected(self, limited_client):
        statuses = [limited_client.get("/api/collp/main-menu").status_code for _ in range(4)]

        assert statuses[:3] == [401, 401, 401]
        assert statuses[3] == 429

    def test_rejection_body_and_headers(self, limited_client):
        for _ in range(3):
            limited_client.get("/api/collp/main-menu")

        response = limited_client.get("/api/collp/main-menu")

        assert response.json() == {"error": "Rate limit exceeded"}
        assert response.headers["retry-after"] == "60"
        assert response.headers["x-ratelimit-limit"] == "3"
        assert response.headers["x-ratelimit-remaining"] == "0"

    def test_health_exempt(self, limited_client):
        statuses = [limited_client.get("/health").status_code for _ in range(10)]

        assert set(statuses) == {200}


class TestErrorRendering:
    def test_unhandled_error_is_generic(self, app):
        @app.get("/boom")
        async def boom():
            raise RuntimeError("postgresql://collp:hunter2@db:5432/collp is down")

        client = TestClient(app, raise_server_exceptions=False)
        response = client.get("/boom")

        assert response.status_code == 500
        error = response.json()["error"]
        assert error.startswith("An internal error occurred (ref: ")
        assert "hunter2" not in error

    def test_unknown_route(self, client):
        response = client.get("/api/nope")

        assert response.status_code == 404
        assert "error" in response.json()

    def test_sanitize_error_message(self):
        message = (
            "failed: postgresql://collp:hunter2@db/collp "
            "token=eyJhbGciOiJSUzI1NiJ9.eyJlbWFpbCI6ImEifQ.c2ln client_secret=abc123"
        )

        sanitized = _sanitize_error_message(message)

        assert "hunter2" not in sanitized
        assert "eyJhbGciOiJSUzI1NiJ9" not in sanitized
        assert "abc123" not in sanitized


class TestStartup:
    def test_missing_signing_key_aborts_startup(self, tmp_path):
        settings = Settings(
            _env_file=None,
            rsa_key_path=str(tmp_path / "missing.pem"),
            database_url="sqlite://",
        )
        app = create_app(settings=settings)

        with pytest.raises(ConfigurationError):
            with TestClient(app):
                pass

    def test_startup_with_key_and_database(self, tmp_path, key_pair):
        from backend.core.auth.credentials import save_private_key

        key_path = save_private_key(key_pair, tmp_path / "rsa.pem")
        settings = Settings(
            _env_file=None,
            rsa_key_path=str(key_path),
            database_url=f"sqlite:///{tmp_path / 'collp.db'}",
        )
        app = create_app(settings=settings)

        with TestClient(app) as client:
            assert app.state.context is not None
            assert client.get("/health").json()["database"] == "connected"
