"""OAuth redirector: builds provider authorization redirects and completes
callbacks into local users.

The CSRF state travels in a signed, short-lived, http-only cookie scoped
to the provider's auth path; nothing is persisted server-side until the
callback succeeds. Google additionally uses PKCE.
"""

import logging
import secrets
from dataclasses import dataclass
from urllib.parse import urlencode

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from heartguide.core.account_linking import find_or_create_user_for_oauth
from heartguide.core.config import Settings, get_base_url
from heartguide.core.errors import (
    OAuthExchangeError,
    ProviderNotConfiguredError,
    StateMismatchError,
    UnsupportedProviderError,
)
from heartguide.core.oauth import (
    STATE_TTL_SECONDS,
    OAuthProviderConfig,
    create_oauth_state_cookie,
    generate_code_challenge,
    generate_code_verifier,
    generate_state,
    get_provider_config,
    state_cookie_name,
    validate_oauth_state_cookie,
)
from heartguide.core.oauth_client import (
    exchange_code_for_tokens,
    fetch_userinfo,
    normalize_profile,
)
from heartguide.models.user import User

logger = logging.getLogger(__name__)

API_AUTH_PREFIX = "/api/v1/auth"


@dataclass(frozen=True)
class AuthorizationRedirect:
    """Where to send the browser, plus the state cookie to set.

    Attributes:
        url: Provider authorization URL.
        state: State parameter embedded in the URL.
        cookie_name: Name of the state cookie.
        cookie_value: Signed state cookie value.
        cookie_path: Path the state cookie is scoped to.
        max_age: State cookie lifetime in seconds.
    """

    url: str
    state: str
    cookie_name: str
    cookie_value: str
    cookie_path: str
    max_age: int = STATE_TTL_SECONDS


class OAuthRedirector:
    """Runs the authorization-code flow for Google, GitHub, and Facebook.

    Args:
        settings: Application settings (client credentials, base URL).
        transport: Optional httpx transport for provider calls.
    """

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport
        # Per-process fallback when AUTH_SECRET is unset (development)
        self._state_secret = (
            settings.auth_secret.get_secret_value() or secrets.token_hex(32)
        )

    def redirect_uri(self, provider: str) -> str:
        """Callback URL registered with the provider."""
        return f"{get_base_url(self._settings)}{API_AUTH_PREFIX}/{provider}/callback"

    def _credentials(self, provider: str) -> tuple[OAuthProviderConfig, str, str]:
        try:
            config = get_provider_config(provider)
        except ValueError as exc:
            raise UnsupportedProviderError(str(exc)) from exc

        client_id = getattr(self._settings, f"{provider}_client_id")
        client_secret = getattr(
            self._settings, f"{provider}_client_secret"
        ).get_secret_value()
        if not client_id or not client_secret:
            raise ProviderNotConfiguredError(
                f"OAuth provider {provider} is not configured"
            )
        return config, client_id, client_secret

    def is_configured(self, provider: str) -> bool:
        try:
            self._credentials(provider)
        except (UnsupportedProviderError, ProviderNotConfiguredError):
            return False
        return True

    def build_authorization_url(self, provider: str) -> AuthorizationRedirect:
        """Prepare the redirect to a provider's consent screen.

        Args:
            provider: "google", "github", or "facebook".

        Returns:
            AuthorizationRedirect with a fresh state.

        Raises:
            UnsupportedProviderError: Unknown provider name.
            ProviderNotConfiguredError: Client id or secret missing.
        """
        config, client_id, _ = self._credentials(provider)

        state = generate_state()
        params = {
            "client_id": client_id,
            "redirect_uri": self.redirect_uri(provider),
            "response_type": "code",
            "scope": config.scope,
            "state": state,
        }

        code_verifier = None
        if config.use_pkce:
            code_verifier = generate_code_verifier()
            params["code_challenge"] = generate_code_challenge(code_verifier)
            params["code_challenge_method"] = "S256"

        cookie_value = create_oauth_state_cookie(
            provider=provider,
            state=state,
            secret=self._state_secret,
            code_verifier=code_verifier,
        )
        return AuthorizationRedirect(
            url=f"{config.authorization_url}?{urlencode(params)}",
            state=state,
            cookie_name=state_cookie_name(provider),
            cookie_value=cookie_value,
            cookie_path=f"{API_AUTH_PREFIX}/{provider}",
        )

    async def handle_callback(
        self,
        db: AsyncSession,
        provider: str,
        *,
        code: str | None,
        state: str | None,
        state_cookie: str | None,
    ) -> User:
        """Complete the flow: check state, exchange the code, upsert the user.

        Args:
            db: Async database session.
            provider: Provider named in the callback path.
            code: Authorization code from the query string.
            state: State from the query string.
            state_cookie: Value of the provider's state cookie.

        Returns:
            The signed-in local user (created or linked if needed).

        Raises:
            UnsupportedProviderError: Unknown provider name.
            ProviderNotConfiguredError: Client id or secret missing.
            StateMismatchError: State missing, expired, tampered, or
                different from the cookie.
            OAuthExchangeError: Provider rejected the code or the profile
                could not be fetched.
            OAuthAccountConflictError: Email belongs to an unlinkable account.
            OAuthEmailMissingError: Provider shared no email for a new user.
        """
        config, client_id, client_secret = self._credentials(provider)

        validated = validate_oauth_state_cookie(
            cookie_value=state_cookie,
            provider=provider,
            expected_state=state,
            secret=self._state_secret,
        )
        if validated is None:
            logger.warning("OAuth state mismatch", extra={"provider": provider})
            raise StateMismatchError()

        if not code:
            raise OAuthExchangeError("Missing authorization code")

        try:
            tokens = await exchange_code_for_tokens(
                config=config,
                client_id=client_id,
                client_secret=client_secret,
                code=code,
                redirect_uri=self.redirect_uri(provider),
                code_verifier=validated.code_verifier,
                transport=self._transport,
            )
            access_token = tokens.get("access_token")
            if not access_token:
                raise OAuthExchangeError("Provider did not return an access token")
            raw = await fetch_userinfo(
                config=config,
                access_token=access_token,
                transport=self._transport,
            )
            profile = normalize_profile(provider, raw)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(
                "OAuth exchange failed",
                extra={"provider": provider, "error": type(exc).__name__},
            )
            raise OAuthExchangeError(str(exc)) from exc

        user, created = await find_or_create_user_for_oauth(db=db, profile=profile)
        logger.info(
            "OAuth sign-in completed",
            extra={"provider": provider, "user_id": str(user.id), "created": created},
        )
        return user
