"""Tests for the OAuth initiation and callback endpoints.

Provider HTTP calls are served by httpx.MockTransport; the redirector on
app.state is swapped for one using it.
"""

from unittest.mock import AsyncMock, patch
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from sqlalchemy.exc import IntegrityError

from heartguide.repositories.account_repository import AccountRepository
from heartguide.services.oauth_redirector import OAuthRedirector
from tests.conftest import TEST_BASE_URL, create_user

_PROFILE = {
    "id": "google-sub-456",
    "email": "oauthuser@example.com",
    "verified_email": True,
    "name": "OAuth User",
}


def _handler(request: httpx.Request) -> httpx.Response:
    if request.url.host == "oauth2.googleapis.com":
        return httpx.Response(200, json={"access_token": "google-at"})
    if request.url.host == "www.googleapis.com":
        return httpx.Response(200, json=_PROFILE)
    return httpx.Response(404)


@pytest.fixture
def oauth_app(app, settings):
    app.state.oauth = OAuthRedirector(
        settings, transport=httpx.MockTransport(_handler)
    )
    return app


def _error_of(response: httpx.Response) -> str:
    location = response.headers["location"]
    assert location.startswith(f"{TEST_BASE_URL}/login?")
    return parse_qs(urlparse(location).query)["error"][0]


async def _initiate(client) -> str:
    response = await client.get("/api/v1/auth/google")
    assert response.status_code == 307
    assert response.headers["location"].startswith("https://accounts.google.com/")
    assert "oauth_state_google" in response.cookies
    return parse_qs(urlparse(response.headers["location"]).query)["state"][0]


class TestOAuthInitiate:
    """Tests for GET /auth/{provider}."""

    async def test_unsupported_provider(self, client):
        response = await client.get("/api/v1/auth/twitter")
        assert response.status_code == 307
        assert _error_of(response) == "unsupported_provider"

    async def test_unconfigured_provider(self, client):
        response = await client.get("/api/v1/auth/facebook")
        assert response.status_code == 307
        assert _error_of(response) == "provider_not_configured"

    async def test_fixed_routes_not_shadowed(self, client):
        response = await client.get("/api/v1/auth/me")
        assert response.status_code == 401
        response = await client.get("/api/v1/auth/check-session")
        assert response.status_code == 200


class TestOAuthCallback:
    """Tests for GET /auth/{provider}/callback."""

    async def test_new_user_signed_in(self, oauth_app, client):
        state = await _initiate(client)

        response = await client.get(
            "/api/v1/auth/google/callback", params={"code": "auth-code", "state": state}
        )

        assert response.status_code == 307
        assert response.headers["location"] == f"{TEST_BASE_URL}/dashboard"
        assert "session" in response.cookies

        me = await client.get("/api/v1/auth/me")
        assert me.status_code == 200
        user = me.json()["user"]
        assert user["email"] == "oauthuser@example.com"
        assert user["emailVerified"] is True

    async def test_state_mismatch(self, oauth_app, client):
        await _initiate(client)

        response = await client.get(
            "/api/v1/auth/google/callback",
            params={"code": "auth-code", "state": "forged-state"},
        )

        assert _error_of(response) == "invalid_state"
        assert "session" not in response.cookies

    async def test_missing_state_cookie(self, oauth_app, client):
        response = await client.get(
            "/api/v1/auth/google/callback",
            params={"code": "auth-code", "state": "some-state"},
        )
        assert _error_of(response) == "invalid_state"

    async def test_provider_error(self, oauth_app, client):
        response = await client.get(
            "/api/v1/auth/google/callback", params={"error": "access_denied"}
        )
        assert _error_of(response) == "access_denied"

    async def test_unverified_local_account_not_linked(
        self, oauth_app, client, db_session
    ):
        await create_user(db_session, email=_PROFILE["email"], email_verified=False)
        state = await _initiate(client)

        response = await client.get(
            "/api/v1/auth/google/callback", params={"code": "auth-code", "state": state}
        )

        assert _error_of(response) == "account_conflict"
        assert (await client.get("/api/v1/auth/me")).status_code == 401

    async def test_verified_local_account_linked(self, oauth_app, client, db_session):
        user = await create_user(
            db_session, email=_PROFILE["email"], email_verified=True
        )
        state = await _initiate(client)

        response = await client.get(
            "/api/v1/auth/google/callback", params={"code": "auth-code", "state": state}
        )

        assert response.headers["location"] == f"{TEST_BASE_URL}/dashboard"
        me = await client.get("/api/v1/auth/me")
        assert me.json()["user"]["id"] == str(user.id)

    async def test_concurrent_link_redirects_with_conflict(self, oauth_app, client):
        state = await _initiate(client)
        duplicate = IntegrityError("INSERT INTO accounts", {}, Exception("duplicate"))

        with patch.object(AccountRepository, "link", AsyncMock(side_effect=duplicate)):
            response = await client.get(
                "/api/v1/auth/google/callback",
                params={"code": "auth-code", "state": state},
            )

        assert response.status_code == 307
        assert _error_of(response) == "account_conflict"
        assert (await client.get("/api/v1/auth/me")).status_code == 401
