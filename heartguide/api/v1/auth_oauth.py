"""OAuth authentication endpoints.

Initiation and callback for Google, GitHub, and Facebook. Every failure
ends in a redirect to the login page with an ?error= slug rather than a
JSON error, because these URLs are opened by the browser directly.

Included last in the v1 router: "/auth/{provider}" would otherwise
shadow the fixed GET routes such as "/auth/me".
"""

import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.exc import IntegrityError
from starlette.responses import Response

from heartguide.api.deps import AppSettings, DbSession, OAuth, Sessions
from heartguide.core.auth import set_admin_hint_cookie, set_session_cookie
from heartguide.core.config import Settings, get_base_url
from heartguide.core.errors import OAuthAccountConflictError, OAuthFlowError
from heartguide.core.oauth import state_cookie_name
from heartguide.core.rate_limiting import limiter
from heartguide.services.oauth_redirector import API_AUTH_PREFIX

logger = logging.getLogger(__name__)

router = APIRouter()


def _error_redirect(settings: Settings, slug: str) -> RedirectResponse:
    """Redirect to the login page carrying an error slug."""
    query = urlencode({"error": slug})
    url = f"{get_base_url(settings)}{settings.oauth_error_path}?{query}"
    return RedirectResponse(url=url, status_code=307)


def _clear_state_cookie(response: Response, provider: str, settings: Settings) -> None:
    response.delete_cookie(
        key=state_cookie_name(provider),
        path=f"{API_AUTH_PREFIX}/{provider}",
        secure=settings.session_cookie_secure,
        samesite="lax",
    )


# ===================================================================
# GET /auth/{provider}: OAuth Initiation
# ===================================================================


@router.get("/{provider}")
@limiter.limit("20/hour")
async def oauth_initiate(
    provider: str,
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    settings: AppSettings,
    oauth: OAuth,
) -> Response:
    """Redirect to the provider's authorization URL.

    Sets a signed state cookie (10 minutes) scoped to this provider's
    auth path.

    Rate limit: 20 per hour per IP.
    """
    try:
        redirect = oauth.build_authorization_url(provider)
    except OAuthFlowError as exc:
        logger.warning(
            "OAuth initiation refused",
            extra={"provider": provider, "reason": exc.slug},
        )
        return _error_redirect(settings, exc.slug)

    response = RedirectResponse(url=redirect.url, status_code=307)
    response.set_cookie(
        key=redirect.cookie_name,
        value=redirect.cookie_value,
        httponly=True,
        secure=settings.session_cookie_secure,
        # Lax so the cookie survives the top-level redirect back from the provider
        samesite="lax",
        max_age=redirect.max_age,
        path=redirect.cookie_path,
    )
    return response


# ===================================================================
# GET /auth/{provider}/callback: OAuth Callback
# ===================================================================


@router.get("/{provider}/callback")
@limiter.limit("30/hour")
async def oauth_callback(
    provider: str,
    request: Request,
    db: DbSession,
    settings: AppSettings,
    oauth: OAuth,
    sessions: Sessions,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
) -> Response:
    """Handle the provider's redirect after user consent.

    Validates state against the signed cookie, exchanges the code,
    finds or creates the local user, starts a session, and redirects to
    the app. The state cookie is cleared on every outcome.
    """
    if error:
        # User denied consent or the provider reported a problem
        logger.info(
            "OAuth provider returned an error",
            extra={"provider": provider, "error": error[:64]},
        )
        response: Response = _error_redirect(settings, "access_denied")
        _clear_state_cookie(response, provider, settings)
        return response

    try:
        user = await oauth.handle_callback(
            db,
            provider,
            code=code,
            state=state,
            state_cookie=request.cookies.get(state_cookie_name(provider)),
        )
    except OAuthFlowError as exc:
        await db.rollback()
        response = _error_redirect(settings, exc.slug)
        _clear_state_cookie(response, provider, settings)
        return response
    except IntegrityError:
        # A concurrent callback linked the same identity or email first
        await db.rollback()
        logger.warning(
            "OAuth callback lost a race on account linking",
            extra={"provider": provider},
        )
        response = _error_redirect(settings, OAuthAccountConflictError.slug)
        _clear_state_cookie(response, provider, settings)
        return response

    issued = await sessions.create_session(db, user.id)
    await db.commit()

    response = RedirectResponse(
        url=f"{get_base_url(settings)}{settings.oauth_success_path}",
        status_code=307,
    )
    set_session_cookie(response, issued.token, max_age=issued.max_age, settings=settings)
    set_admin_hint_cookie(
        response, is_admin=user.is_admin, max_age=issued.max_age, settings=settings
    )
    _clear_state_cookie(response, provider, settings)
    return response
