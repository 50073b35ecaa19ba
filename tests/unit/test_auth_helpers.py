"""Tests for auth helper functions.

Password hashing, opaque tokens and codes, cookie management, and
password strength validation.
"""

import re

import bcrypt
import pytest
from fastapi import Response

from heartguide.core.auth import (
    DUMMY_HASH,
    MAX_TOKEN_LENGTH,
    clear_auth_cookies,
    generate_numeric_code,
    generate_session_token,
    hash_password,
    hash_token,
    redact,
    set_admin_hint_cookie,
    set_session_cookie,
    validate_password_strength,
    verify_password,
)
from heartguide.core.errors import ValidationError
from tests.conftest import make_settings


class TestPasswords:
    """Tests for hash_password() and verify_password()."""

    def test_round_trip(self):
        """A hashed password verifies; a different one does not."""
        hashed = hash_password("Secret#123", rounds=4)
        assert verify_password("Secret#123", hashed)
        assert not verify_password("Secret#124", hashed)

    def test_missing_hash_is_false(self):
        """No stored hash (unknown or OAuth-only user) never verifies."""
        assert verify_password("anything", None) is False

    def test_dummy_hash_is_valid_bcrypt(self):
        """DUMMY_HASH is a real bcrypt hash, so checkpw does the full work."""
        assert bcrypt.checkpw(b"not-the-password", DUMMY_HASH) is False


class TestTokens:
    """Tests for tokens, codes, and digests."""

    def test_session_tokens_are_unique_and_short_enough(self):
        tokens = {generate_session_token() for _ in range(50)}
        assert len(tokens) == 50
        assert all(len(t) <= MAX_TOKEN_LENGTH for t in tokens)

    def test_numeric_code_has_requested_length(self):
        for length in (4, 6, 8):
            code = generate_numeric_code(length)
            assert re.fullmatch(rf"\d{{{length}}}", code)

    def test_hash_token_is_sha256_hex(self):
        digest = hash_token("123456")
        assert len(digest) == 64
        assert digest == hash_token("123456")
        assert digest != hash_token("123457")

    def test_redact_keeps_four_characters(self):
        assert redact("abcdefgh") == "abcd…"
        assert redact(None) == "<none>"


class TestCookies:
    """Tests for cookie helpers."""

    def test_session_cookie_attributes(self):
        """Session cookie is http-only with the configured SameSite."""
        settings = make_settings(session_cookie_secure=True)
        response = Response()
        set_session_cookie(response, "tok", max_age=60, settings=settings)
        header = response.headers["set-cookie"]
        assert header.startswith("session=tok")
        assert "HttpOnly" in header
        assert "Secure" in header
        assert "SameSite=lax" in header
        assert "Max-Age=60" in header

    def test_admin_hint_cookie_is_script_readable(self):
        """The is_admin hint is not http-only."""
        settings = make_settings()
        response = Response()
        set_admin_hint_cookie(response, is_admin=True, max_age=60, settings=settings)
        header = response.headers["set-cookie"]
        assert header.startswith("is_admin=true")
        assert "HttpOnly" not in header

    def test_clear_expires_both_cookies(self):
        settings = make_settings()
        response = Response()
        clear_auth_cookies(response, settings)
        headers = response.headers.getlist("set-cookie")
        assert len(headers) == 2
        assert all("Max-Age=0" in h for h in headers)


class TestValidatePasswordStrength:
    """Tests for validate_password_strength()."""

    def test_accepts_strong_password(self):
        validate_password_strength("Heart#Guide1")

    @pytest.mark.parametrize(
        ("password", "fragment"),
        [
            ("Ab#1", "at least 8"),
            ("12345678#", "letter"),
            ("abcdefgh#", "number"),
            ("abcdefgh1", "special"),
            ("a1#" + "x" * 126, "at most 128"),
        ],
    )
    def test_rejects_weak_password(self, password, fragment):
        with pytest.raises(ValidationError) as exc_info:
            validate_password_strength(password)
        assert fragment in exc_info.value.message
