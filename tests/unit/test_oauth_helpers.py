"""Tests for OAuth helpers: PKCE, signed state cookies, provider config,
and profile normalization.
"""

import pytest

from heartguide.core.oauth import (
    SUPPORTED_PROVIDERS,
    create_oauth_state_cookie,
    generate_code_challenge,
    generate_code_verifier,
    generate_state,
    get_provider_config,
    state_cookie_name,
    validate_oauth_state_cookie,
)
from heartguide.core.oauth_client import normalize_profile

_SECRET = "test-secret-key-that-is-at-least-32-characters-long"  # nosec B105


class TestPkce:
    """Tests for PKCE helpers (RFC 7636)."""

    def test_verifier_length_and_alphabet(self):
        verifier = generate_code_verifier()
        assert len(verifier) == 128
        assert set(verifier) <= set(
            "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-._~"
        )

    def test_challenge_matches_rfc_example(self):
        """RFC 7636 Appendix B test vector."""
        verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
        assert generate_code_challenge(verifier) == (
            "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"
        )


class TestStateCookie:
    """Tests for create/validate_oauth_state_cookie()."""

    def test_states_are_distinct(self):
        assert generate_state() != generate_state()

    def test_round_trip_returns_verifier(self):
        cookie = create_oauth_state_cookie(
            provider="google", state="abc", secret=_SECRET, code_verifier="v" * 43
        )
        validated = validate_oauth_state_cookie(
            cookie_value=cookie, provider="google", expected_state="abc", secret=_SECRET
        )
        assert validated is not None
        assert validated.code_verifier == "v" * 43

    def test_state_mismatch(self):
        cookie = create_oauth_state_cookie(provider="github", state="abc", secret=_SECRET)
        assert (
            validate_oauth_state_cookie(
                cookie_value=cookie,
                provider="github",
                expected_state="abd",
                secret=_SECRET,
            )
            is None
        )

    def test_provider_binding(self):
        """A state issued for one provider cannot finish another's callback."""
        cookie = create_oauth_state_cookie(provider="github", state="abc", secret=_SECRET)
        assert (
            validate_oauth_state_cookie(
                cookie_value=cookie,
                provider="google",
                expected_state="abc",
                secret=_SECRET,
            )
            is None
        )

    def test_wrong_secret(self):
        cookie = create_oauth_state_cookie(provider="google", state="abc", secret=_SECRET)
        assert (
            validate_oauth_state_cookie(
                cookie_value=cookie,
                provider="google",
                expected_state="abc",
                secret="another-secret-that-is-also-32-chars-long",
            )
            is None
        )

    def test_expired_cookie(self):
        cookie = create_oauth_state_cookie(
            provider="google", state="abc", secret=_SECRET, ttl_seconds=-10
        )
        assert (
            validate_oauth_state_cookie(
                cookie_value=cookie,
                provider="google",
                expected_state="abc",
                secret=_SECRET,
            )
            is None
        )

    @pytest.mark.parametrize(("cookie", "state"), [(None, "abc"), ("x.y.z", "abc")])
    def test_missing_or_garbage(self, cookie, state):
        assert (
            validate_oauth_state_cookie(
                cookie_value=cookie, provider="google", expected_state=state, secret=_SECRET
            )
            is None
        )

    def test_cookie_name_is_per_provider(self):
        assert state_cookie_name("github") == "oauth_state_github"


class TestProviderConfig:
    """Tests for provider configuration."""

    def test_supported_providers(self):
        assert set(SUPPORTED_PROVIDERS) == {"google", "github", "facebook"}

    def test_only_google_uses_pkce(self):
        assert get_provider_config("google").use_pkce
        assert not get_provider_config("github").use_pkce
        assert get_provider_config("github").emails_url

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unsupported OAuth provider"):
            get_provider_config("myspace")


class TestNormalizeProfile:
    """Tests for normalize_profile()."""

    def test_google(self):
        profile = normalize_profile(
            "google",
            {
                "id": "g-1",
                "email": "a@example.com",
                "verified_email": True,
                "name": "A",
                "picture": "https://img/a.png",
            },
        )
        assert profile.provider_account_id == "g-1"
        assert profile.email_verified is True
        assert profile.image == "https://img/a.png"

    def test_github_uses_primary_email_when_private(self):
        profile = normalize_profile(
            "github",
            {
                "id": 42,
                "login": "octo",
                "email": None,
                "avatar_url": "https://img/o.png",
                "_emails": [
                    {"email": "old@example.com", "primary": False, "verified": True},
                    {"email": "octo@example.com", "primary": True, "verified": True},
                ],
            },
        )
        assert profile.provider_account_id == "42"
        assert profile.name == "octo"
        assert profile.email == "octo@example.com"
        assert profile.email_verified is True

    def test_github_public_email_unlisted_is_unverified(self):
        profile = normalize_profile(
            "github", {"id": 7, "login": "o", "email": "pub@example.com"}
        )
        assert profile.email == "pub@example.com"
        assert profile.email_verified is False

    def test_facebook(self):
        profile = normalize_profile(
            "facebook",
            {
                "id": "fb-1",
                "name": "F",
                "email": "f@example.com",
                "picture": {"data": {"url": "https://img/f.png"}},
            },
        )
        assert profile.image == "https://img/f.png"
        assert profile.email_verified is False

    def test_missing_id(self):
        with pytest.raises(ValueError, match="missing an id"):
            normalize_profile("google", {"email": "a@example.com"})
