"""OAuth HTTP client: token exchange, profile fetching, and normalization.

HTTP client functions for exchanging authorization codes for tokens and
fetching user profiles from OAuth providers, plus the per-provider mapping
of raw profile payloads onto OAuthProfile.
"""

from dataclasses import dataclass
from typing import Any

import httpx

from heartguide.core.oauth import OAuthProviderConfig

# HTTP client timeout for OAuth token exchange and userinfo
_OAUTH_HTTP_TIMEOUT = 10.0


@dataclass(frozen=True)
class OAuthProfile:
    """Provider profile normalized across providers.

    Attributes:
        provider: Provider name.
        provider_account_id: Provider's stable user id, as a string.
        email: Email address, or None if the provider did not share one.
        email_verified: Whether the provider vouches for the email.
        name: Display name.
        image: Avatar URL.
    """

    provider: str
    provider_account_id: str
    email: str | None
    email_verified: bool
    name: str | None
    image: str | None


async def exchange_code_for_tokens(
    *,
    config: OAuthProviderConfig,
    client_id: str,
    client_secret: str,
    code: str,
    redirect_uri: str,
    code_verifier: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, Any]:
    """Exchange authorization code for OAuth tokens.

    Args:
        config: Provider endpoint configuration.
        client_id: OAuth client id.
        client_secret: OAuth client secret.
        code: Authorization code from callback.
        redirect_uri: Callback URL used in initiation.
        code_verifier: PKCE code verifier, for providers using PKCE.
        transport: Optional httpx transport (tests use MockTransport).

    Returns:
        Token response dict (access_token, token_type, etc.).

    Raises:
        httpx.HTTPError: If the request fails or returns an error status.
    """
    data = {
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": redirect_uri,
        "client_id": client_id,
        "client_secret": client_secret,
    }
    if code_verifier is not None:
        data["code_verifier"] = code_verifier

    async with httpx.AsyncClient(transport=transport) as client:
        resp = await client.post(
            config.token_url,
            data=data,
            # GitHub answers form-encoded unless JSON is requested
            headers={"Accept": "application/json"},
            timeout=_OAUTH_HTTP_TIMEOUT,
        )
        resp.raise_for_status()
        result: dict[str, Any] = resp.json()
        return result


async def fetch_userinfo(
    *,
    config: OAuthProviderConfig,
    access_token: str,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, Any]:
    """Fetch the raw user profile from the OAuth provider.

    For providers with an emails endpoint (GitHub) the email list is
    fetched too and attached under the "_emails" key.

    Args:
        config: Provider endpoint configuration.
        access_token: OAuth access token.
        transport: Optional httpx transport (tests use MockTransport).

    Returns:
        Raw profile dict.

    Raises:
        httpx.HTTPError: If the profile request fails.
    """
    headers = {
        "Authorization": f"Bearer {access_token}",
        "Accept": "application/json",
    }
    async with httpx.AsyncClient(transport=transport) as client:
        resp = await client.get(
            config.userinfo_url,
            headers=headers,
            timeout=_OAUTH_HTTP_TIMEOUT,
        )
        resp.raise_for_status()
        result: dict[str, Any] = resp.json()

        if config.emails_url:
            emails_resp = await client.get(
                config.emails_url,
                headers=headers,
                timeout=_OAUTH_HTTP_TIMEOUT,
            )
            if emails_resp.is_success:
                result["_emails"] = emails_resp.json()

        return result


def _github_email(raw: dict[str, Any]) -> tuple[str | None, bool]:
    """Pick the GitHub email: the public one if listed, else the primary."""
    emails = [e for e in raw.get("_emails") or [] if isinstance(e, dict)]
    public = raw.get("email")
    if public:
        for entry in emails:
            if entry.get("email", "").lower() == public.lower():
                return public, bool(entry.get("verified"))
        return public, False
    chosen = next((e for e in emails if e.get("primary")), None)
    if chosen is None and emails:
        chosen = emails[0]
    if chosen is None:
        return None, False
    return chosen.get("email"), bool(chosen.get("verified"))


def normalize_profile(provider: str, raw: dict[str, Any]) -> OAuthProfile:
    """Map a provider's raw profile onto OAuthProfile.

    Args:
        provider: Provider name.
        raw: Profile dict from fetch_userinfo().

    Returns:
        Normalized profile.

    Raises:
        ValueError: If the provider is unknown or the profile has no id.
    """
    if raw.get("id") is None:
        msg = f"{provider} profile is missing an id"
        raise ValueError(msg)

    if provider == "google":
        return OAuthProfile(
            provider=provider,
            provider_account_id=str(raw["id"]),
            email=raw.get("email"),
            email_verified=bool(raw.get("verified_email")),
            name=raw.get("name"),
            image=raw.get("picture"),
        )
    if provider == "github":
        email, verified = _github_email(raw)
        return OAuthProfile(
            provider=provider,
            provider_account_id=str(raw["id"]),
            email=email,
            email_verified=verified,
            name=raw.get("name") or raw.get("login"),
            image=raw.get("avatar_url"),
        )
    if provider == "facebook":
        picture = raw.get("picture") or {}
        return OAuthProfile(
            provider=provider,
            provider_account_id=str(raw["id"]),
            email=raw.get("email"),
            # Graph API does not report verification status
            email_verified=False,
            name=raw.get("name"),
            image=(picture.get("data") or {}).get("url"),
        )

    msg = f"Unsupported OAuth provider: {provider}"
    raise ValueError(msg)
