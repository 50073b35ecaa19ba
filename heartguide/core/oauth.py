"""OAuth utilities: PKCE, signed state cookies, and provider configuration.

PKCE code verifier/challenge generation, the state parameter carried in a
signed JWT cookie between the initiation redirect and the callback, and
endpoint configuration for Google, GitHub, and Facebook.
"""

import base64
import hashlib
import hmac
import secrets
import time
from dataclasses import dataclass

import jwt

# PKCE code verifier length (RFC 7636 allows 43-128)
_VERIFIER_LENGTH = 128

# Characters allowed in PKCE code verifier (RFC 7636 §4.1)
# unreserved = ALPHA / DIGIT / "-" / "." / "_" / "~"
_UNRESERVED_CHARS = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-._~"

# TTL for the OAuth state cookie (10 minutes)
STATE_TTL_SECONDS = 600

# Random bytes in the state parameter (256 bits)
_STATE_BYTES = 32

_STATE_AUDIENCE = "heartguide-oauth-state"


def generate_state() -> str:
    """Generate an unguessable OAuth state parameter."""
    return secrets.token_urlsafe(_STATE_BYTES)


def generate_code_verifier() -> str:
    """Generate a PKCE code verifier.

    RFC 7636 §4.1: 128-character string from unreserved characters.

    Returns:
        Random 128-character code verifier string.
    """
    return "".join(secrets.choice(_UNRESERVED_CHARS) for _ in range(_VERIFIER_LENGTH))


def generate_code_challenge(verifier: str) -> str:
    """Generate a PKCE code challenge from a verifier.

    RFC 7636 §4.2: BASE64URL(SHA256(code_verifier)), no padding.
    """
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def state_cookie_name(provider: str) -> str:
    """Name of the per-provider state cookie."""
    return f"oauth_state_{provider}"


def create_oauth_state_cookie(
    *,
    provider: str,
    state: str,
    secret: str,
    code_verifier: str | None = None,
    ttl_seconds: int = STATE_TTL_SECONDS,
) -> str:
    """Create a signed JWT cookie value holding the OAuth state.

    Signed with HS256 to prevent tampering. The provider name is bound into
    the payload so a state issued for one provider cannot complete another
    provider's callback.

    Args:
        provider: Provider the flow was started for.
        state: Random state parameter for CSRF protection.
        secret: HMAC signing secret.
        code_verifier: PKCE code verifier, for providers that use PKCE.
        ttl_seconds: Cookie expiry in seconds (default 10 minutes).

    Returns:
        Signed JWT string.
    """
    payload: dict[str, str | int] = {
        "state": state,
        "provider": provider,
        "aud": _STATE_AUDIENCE,
        "exp": int(time.time()) + ttl_seconds,
    }
    if code_verifier is not None:
        payload["code_verifier"] = code_verifier
    return jwt.encode(payload, secret, algorithm="HS256")


@dataclass(frozen=True)
class ValidatedState:
    """Outcome of a successful state cookie check.

    Attributes:
        code_verifier: PKCE verifier stored at initiation, if any.
    """

    code_verifier: str | None


def validate_oauth_state_cookie(
    *,
    cookie_value: str | None,
    provider: str,
    expected_state: str | None,
    secret: str,
) -> ValidatedState | None:
    """Validate an OAuth state cookie against the callback's state.

    Verifies JWT signature, expiry, provider binding, and state match.

    Args:
        cookie_value: JWT string from the state cookie (None if absent).
        provider: Provider named in the callback path.
        expected_state: State parameter from the callback query string.
        secret: HMAC signing secret.

    Returns:
        ValidatedState if every check passes, None otherwise.
    """
    if not cookie_value or not expected_state:
        return None
    try:
        payload = jwt.decode(
            cookie_value,
            secret,
            algorithms=["HS256"],
            audience=_STATE_AUDIENCE,
        )
    except jwt.InvalidTokenError:
        return None

    if payload.get("provider") != provider:
        return None
    stored_state = payload.get("state")
    if not isinstance(stored_state, str):
        return None
    if not hmac.compare_digest(stored_state, expected_state):
        return None

    return ValidatedState(code_verifier=payload.get("code_verifier"))


# ===================================================================
# OAuth Provider Configuration
# ===================================================================


@dataclass(frozen=True)
class OAuthProviderConfig:
    """Configuration for an OAuth provider.

    Attributes:
        authorization_url: Provider's authorization endpoint.
        token_url: Provider's token exchange endpoint.
        userinfo_url: Provider's profile endpoint.
        scope: Scope string exactly as the provider expects it.
        use_pkce: Whether to send a PKCE challenge.
        emails_url: Separate endpoint listing the user's email addresses
            (GitHub hides private emails from the profile).
    """

    authorization_url: str
    token_url: str
    userinfo_url: str
    scope: str
    use_pkce: bool = False
    emails_url: str | None = None


_PROVIDERS: dict[str, OAuthProviderConfig] = {
    "google": OAuthProviderConfig(  # nosec B106 - token_url is an endpoint, not a password
        authorization_url="https://accounts.google.com/o/oauth2/v2/auth",
        token_url="https://oauth2.googleapis.com/token",
        userinfo_url="https://www.googleapis.com/oauth2/v2/userinfo",
        scope="profile email",
        use_pkce=True,
    ),
    "github": OAuthProviderConfig(  # nosec B106 - token_url is an endpoint, not a password
        authorization_url="https://github.com/login/oauth/authorize",
        token_url="https://github.com/login/oauth/access_token",
        userinfo_url="https://api.github.com/user",
        scope="read:user user:email",
        emails_url="https://api.github.com/user/emails",
    ),
    "facebook": OAuthProviderConfig(  # nosec B106 - token_url is an endpoint, not a password
        authorization_url="https://www.facebook.com/v18.0/dialog/oauth",
        token_url="https://graph.facebook.com/v18.0/oauth/access_token",
        userinfo_url="https://graph.facebook.com/v18.0/me?fields=id,name,email,picture",
        scope="email,public_profile",
    ),
}

SUPPORTED_PROVIDERS: tuple[str, ...] = tuple(_PROVIDERS)


def get_provider_config(provider: str) -> OAuthProviderConfig:
    """Get OAuth configuration for a provider.

    Args:
        provider: Provider name (e.g., "google", "github").

    Returns:
        OAuthProviderConfig for the provider.

    Raises:
        ValueError: If provider is not supported.
    """
    config = _PROVIDERS.get(provider)
    if config is None:
        msg = f"Unsupported OAuth provider: {provider}"
        raise ValueError(msg)
    return config
