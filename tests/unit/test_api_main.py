"""Tests for application wiring: health, security headers, error mapping,
and rate limiting.
"""

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import OperationalError

from heartguide.core.database import Database
from heartguide.core.rate_limiting import limiter
from heartguide.main import create_app
from tests.conftest import make_settings


@pytest_asyncio.fixture
async def make_client(tmp_path, db_engine):
    """Build a client for an app with custom settings on the test database."""
    clients: list[AsyncClient] = []

    async def _make(**overrides) -> AsyncClient:
        settings = make_settings(
            f"sqlite+aiosqlite:///{tmp_path / 'heartguide.db'}", **overrides
        )
        app = create_app(settings, database=Database(settings, engine=db_engine))
        ac = AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
            follow_redirects=False,
        )
        clients.append(ac)
        return ac

    yield _make

    for ac in clients:
        await ac.aclose()


class TestHealth:
    """Tests for GET /health and the security headers."""

    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    async def test_security_headers(self, client):
        response = await client.get("/health")
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert "Strict-Transport-Security" not in response.headers
        assert "Cache-Control" not in response.headers

    async def test_api_responses_not_cached(self, client):
        response = await client.get("/api/v1/auth/check-session")
        assert response.headers["Cache-Control"] == "no-store, max-age=0"


class TestErrorMapping:
    """Tests for the exception handlers."""

    async def test_malformed_json(self, client):
        response = await client.post(
            "/api/v1/auth/login",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["details"]

    async def test_database_failure(self, client, monkeypatch):
        monkeypatch.setattr(
            "heartguide.api.v1.auth.UserRepository.get_by_email",
            AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("down"))),
        )

        response = await client.post(
            "/api/v1/auth/login",
            json={"email": "patient@example.com", "password": "Heart#Guide1"},
        )

        assert response.status_code == 500
        body = response.json()
        assert body["code"] == "UPSTREAM_FAILURE"
        assert "SELECT" not in body["message"]


class TestCodeCooldown:
    """Tests for the per-user resend cooldown."""

    async def test_second_request_within_cooldown(self, make_client, test_user):
        client = await make_client(code_resend_cooldown_seconds=60)
        body = {"identifier": test_user.email}

        first = await client.post("/api/v1/auth/send-verification-code", json=body)
        second = await client.post("/api/v1/auth/send-verification-code", json=body)

        assert first.status_code == 200
        assert second.status_code == 429
        assert second.json()["code"] == "RATE_LIMITED"
        assert 0 < int(second.headers["Retry-After"]) <= 60


class TestRateLimit:
    """Tests for the slowapi limits."""

    @pytest.fixture(autouse=True)
    def _reset_limiter(self):
        limiter.reset()
        yield
        limiter.reset()
        limiter.enabled = False

    async def test_limit_exceeded(self, make_client):
        client = await make_client(rate_limit_enabled=True)

        statuses = [
            (
                await client.post(
                    "/api/v1/auth/verify-reset-token", json={"token": "nope"}
                )
            ).status_code
            for _ in range(11)
        ]

        assert statuses[:10] == [200] * 10
        assert statuses[10] == 429

        response = await client.post(
            "/api/v1/auth/verify-reset-token", json={"token": "nope"}
        )
        body = response.json()
        assert body["success"] is False
        assert body["code"] == "RATE_LIMITED"
        assert "Retry-After" in response.headers

    async def test_disabled_by_default(self, client):
        for _ in range(12):
            response = await client.post(
                "/api/v1/auth/verify-reset-token", json={"token": "nope"}
            )
        assert response.status_code == 200
