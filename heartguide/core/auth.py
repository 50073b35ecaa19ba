"""Authentication helpers for passwords, opaque tokens, and cookies.

Shared utilities used by the session manager, the verification service,
and the auth endpoints.

Pipeline:
- hash_password / verify_password: bcrypt with a timing-safe dummy hash
- generate_session_token / generate_numeric_code: CSPRNG values
- hash_token: SHA-256 digest stored in place of any token or code
- set_session_cookie / clear_auth_cookies: cookie management
- validate_password_strength: format rules (sync, no network)
- redact: safe token prefix for log lines
"""

import hashlib
import logging
import re
import secrets

import bcrypt
from fastapi import Response

from heartguide.core.config import Settings
from heartguide.core.errors import ValidationError

logger = logging.getLogger(__name__)

# Pre-computed bcrypt hash for timing-safe comparison on user-not-found.
# Security: prevents user enumeration via response time differences.
# Pre-generated to avoid ~300ms bcrypt computation on every app startup.
DUMMY_HASH = b"$2b$12$ZP2PVB8yI35X.mkRqcUPUuSzJA1CNRt4dZ7X3cyrfJu.2S3w.Qen2"

# Random bytes in a session token (256 bits)
_SESSION_TOKEN_BYTES = 32

# Longest cookie value accepted before hashing; anything longer is malformed
MAX_TOKEN_LENGTH = 256

_PASSWORD_MIN_LENGTH = 8
_PASSWORD_MAX_LENGTH = 128


def hash_password(password: str, *, rounds: int = 12) -> str:
    """Hash a password with bcrypt.

    Args:
        password: Plain-text password.
        rounds: bcrypt cost factor.

    Returns:
        bcrypt hash as text.
    """
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=rounds)).decode()


def verify_password(password: str, password_hash: str | None) -> bool:
    """Check a password against a stored bcrypt hash.

    When there is no stored hash (unknown user or OAuth-only account) the
    password is still checked against DUMMY_HASH so the response time does
    not reveal whether the account exists.

    Args:
        password: Plain-text password.
        password_hash: Stored bcrypt hash, or None.

    Returns:
        True if the password matches.
    """
    if not password_hash:
        bcrypt.checkpw(password.encode(), DUMMY_HASH)
        return False
    return bcrypt.checkpw(password.encode(), password_hash.encode())


def hash_token(value: str) -> str:
    """SHA-256 hex digest of a token or code, as stored in the database."""
    return hashlib.sha256(value.encode()).hexdigest()


def generate_session_token() -> str:
    """Opaque, URL-safe session token from the OS CSPRNG."""
    return secrets.token_urlsafe(_SESSION_TOKEN_BYTES)


def generate_numeric_code(length: int = 6) -> str:
    """Zero-padded numeric one-time code from the OS CSPRNG.

    Args:
        length: Number of digits.

    Returns:
        Code string of exactly ``length`` digits.
    """
    return f"{secrets.randbelow(10**length):0{length}d}"


def redact(token: str | None) -> str:
    """Shorten a token for log lines: first 4 characters then an ellipsis."""
    if not token:
        return "<none>"
    return f"{token[:4]}…"


def set_session_cookie(
    response: Response,
    token: str,
    *,
    max_age: int,
    settings: Settings,
) -> None:
    """Set the http-only session cookie on a response.

    Security: httpOnly prevents XSS cookie theft. Secure flag and SameSite
    are configured via settings for environment-appropriate security.

    Args:
        response: FastAPI response object.
        token: Plain session token.
        max_age: Cookie lifetime in seconds.
        settings: Application settings.
    """
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite=settings.session_cookie_samesite,
        path="/",
        max_age=max_age,
        domain=settings.session_cookie_domain or None,
    )


def set_admin_hint_cookie(
    response: Response,
    *,
    is_admin: bool,
    max_age: int,
    settings: Settings,
) -> None:
    """Set the is_admin display hint for the frontend.

    The cookie is readable by scripts and carries no authority: admin
    checks always use the role stored on the user row.
    """
    response.set_cookie(
        key=settings.admin_hint_cookie_name,
        value="true" if is_admin else "false",
        httponly=False,
        secure=settings.session_cookie_secure,
        samesite=settings.session_cookie_samesite,
        path="/",
        max_age=max_age,
        domain=settings.session_cookie_domain or None,
    )


def clear_auth_cookies(response: Response, settings: Settings) -> None:
    """Expire the session cookie and the admin hint cookie."""
    for name in (settings.session_cookie_name, settings.admin_hint_cookie_name):
        response.delete_cookie(
            key=name,
            path="/",
            secure=settings.session_cookie_secure,
            samesite=settings.session_cookie_samesite,
            domain=settings.session_cookie_domain or None,
        )


def validate_password_strength(password: str) -> None:
    """Validate password meets strength requirements.

    8-128 chars, letter + number + special character.

    Args:
        password: Plain-text password to validate.

    Raises:
        ValidationError: If password doesn't meet requirements.
    """
    if len(password) < _PASSWORD_MIN_LENGTH:
        raise ValidationError("Password must be at least 8 characters")
    if len(password) > _PASSWORD_MAX_LENGTH:
        raise ValidationError("Password must be at most 128 characters")
    if not re.search(r"[a-zA-Z]", password):
        raise ValidationError("Password must contain at least one letter")
    if not re.search(r"\d", password):
        raise ValidationError("Password must contain at least one number")
    if not re.search(r"[^a-zA-Z\d]", password):
        raise ValidationError("Password must contain at least one special character")
