"""Shared dependencies for API endpoints.

Authentication resolves the session cookie through the SessionManager on
every request; admin checks use the role stored on the user row. The
application-wide components (settings, session manager, verification
service, notification dispatcher, OAuth redirector) are built once by
create_app() and read from app.state here.
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from heartguide.core.config import Settings
from heartguide.core.database import get_db
from heartguide.core.errors import AdminRequiredError, UnauthorizedError
from heartguide.models.user import User
from heartguide.services.notifications import NotificationDispatcher
from heartguide.services.oauth_redirector import OAuthRedirector
from heartguide.services.session_manager import SessionManager
from heartguide.services.verification import VerificationService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


def get_verification_service(request: Request) -> VerificationService:
    return request.app.state.verification


def get_notifications(request: Request) -> NotificationDispatcher:
    return request.app.state.notifications


def get_oauth_redirector(request: Request) -> OAuthRedirector:
    return request.app.state.oauth


def get_session_token(request: Request) -> str | None:
    """Raw session cookie value, if any."""
    settings: Settings = request.app.state.settings
    return request.cookies.get(settings.session_cookie_name)


DbSession = Annotated[AsyncSession, Depends(get_db)]
AppSettings = Annotated[Settings, Depends(get_settings)]
Sessions = Annotated[SessionManager, Depends(get_session_manager)]
Verification = Annotated[VerificationService, Depends(get_verification_service)]
Notifications = Annotated[NotificationDispatcher, Depends(get_notifications)]
OAuth = Annotated[OAuthRedirector, Depends(get_oauth_redirector)]
SessionToken = Annotated[str | None, Depends(get_session_token)]


async def get_optional_user(
    db: DbSession,
    sessions: Sessions,
    token: SessionToken,
) -> User | None:
    """Current user for a valid session cookie, None otherwise.

    Args:
        db: Database session (injected).
        sessions: Session manager (injected).
        token: Session cookie value (injected).

    Returns:
        The signed-in user or None.
    """
    return await sessions.validate_session(db, token)


async def get_current_user(
    user: Annotated[User | None, Depends(get_optional_user)],
) -> User:
    """Current user; 401 when there is no valid session.

    Raises:
        UnauthorizedError: Missing, unknown, or expired session.
    """
    if user is None:
        raise UnauthorizedError()
    return user


async def require_admin(
    user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Current user, who must hold the admin role.

    Security: the decision uses the role column of the user resolved from
    the validated session. The is_admin cookie is a UI hint and is ignored.

    Raises:
        UnauthorizedError: No valid session.
        AdminRequiredError: Signed in but not an admin.
    """
    if not user.is_admin:
        raise AdminRequiredError()
    return user


# Reusable type aliases for dependency injection
OptionalUser = Annotated[User | None, Depends(get_optional_user)]
CurrentUser = Annotated[User, Depends(get_current_user)]
AdminUser = Annotated[User, Depends(require_admin)]
