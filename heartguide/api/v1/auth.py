"""Authentication endpoints for password sign-in and the session lifecycle.

signup, login, logout, check-session, me, refresh-session, change-password.

Security considerations:
- login: constant-time comparison via DUMMY_HASH prevents user enumeration
- signup: bcrypt hash, password strength rules, email verification code
- change-password: verifies current password, revokes all other sessions
- the is_admin cookie set at login is a display hint only
"""

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Request, Response, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import IntegrityError

from heartguide.api.deps import (
    AppSettings,
    CurrentUser,
    DbSession,
    Notifications,
    OptionalUser,
    Sessions,
    SessionToken,
    Verification,
)
from heartguide.core.auth import (
    clear_auth_cookies,
    hash_password,
    set_admin_hint_cookie,
    set_session_cookie,
    validate_password_strength,
    verify_password,
)
from heartguide.core.errors import ConflictError, UnauthorizedError, ValidationError
from heartguide.core.phone import SIGNUP_PHONE_PATTERN
from heartguide.core.rate_limiting import limiter
from heartguide.core.responses import MessageResponse
from heartguide.models.verification_code import PURPOSE_EMAIL_VERIFICATION
from heartguide.repositories.user_repository import UserRepository
from heartguide.schemas.user import UserOut, normalize_phone_input

logger = logging.getLogger(__name__)

router = APIRouter()

_INVALID_CREDENTIALS_MSG = "Invalid email or password"  # nosec B105


# ===================================================================
# Request / response models
# ===================================================================


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid"
    )


class SignupRequest(_CamelModel):
    """Request body for POST /auth/signup."""

    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)
    phone: str | None = Field(None, max_length=25)

    @field_validator("phone")
    @classmethod
    def _check_phone(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        if not SIGNUP_PHONE_PATTERN.match(v.strip()):
            msg = "phone must look like +<country code>-<number>, e.g. +1-5551234567"
            raise ValueError(msg)
        return normalize_phone_input(v)


class LoginRequest(_CamelModel):
    """Request body for POST /auth/login."""

    email: EmailStr
    password: str = Field(min_length=1, max_length=128)
    phone: str | None = Field(None, max_length=25)
    remember_me: bool = False


class ChangePasswordRequest(_CamelModel):
    """Request body for POST /auth/change-password."""

    current_password: str | None = Field(None, max_length=128)
    new_password: str = Field(min_length=1, max_length=128)


class SignupResponse(_CamelModel):
    success: bool = True
    message: str
    user_id: str


class LoginResponse(_CamelModel):
    success: bool = True
    message: str
    user: UserOut


class SessionStatusResponse(_CamelModel):
    authenticated: bool
    user: UserOut | None = None


class RefreshResponse(_CamelModel):
    success: bool = True
    message: str
    expires_at: datetime


# ===================================================================
# POST /auth/signup
# ===================================================================


@router.post("/signup", status_code=status.HTTP_201_CREATED)
@limiter.limit("5/hour")
async def signup(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: SignupRequest,
    db: DbSession,
    settings: AppSettings,
    verification: Verification,
    notifications: Notifications,
) -> SignupResponse:
    """Register a new user with email + password.

    Validates password strength, creates the user with a bcrypt hash, and
    emails a verification code. A failed email send does not undo the
    signup; the user can request a new code.

    Rate limit: 5 per hour per IP.
    """
    validate_password_strength(body.password)

    if await UserRepository.get_by_email(db, body.email):
        raise ConflictError(
            code="EMAIL_ALREADY_EXISTS",
            message="Email already registered",
        )

    password_hash = hash_password(body.password, rounds=settings.bcrypt_rounds)
    try:
        user = await UserRepository.create(
            db,
            email=body.email,
            name=body.name.strip(),
            phone=body.phone,
            password_hash=password_hash,
        )
    except IntegrityError as exc:
        await db.rollback()
        raise ConflictError(
            code="EMAIL_ALREADY_EXISTS",
            message="Email already registered",
        ) from exc

    code = await verification.issue_code(db, user.id, PURPOSE_EMAIL_VERIFICATION)
    await db.commit()

    result = await notifications.send_code(
        method="email",
        destination=user.email,
        code=code,
        purpose=PURPOSE_EMAIL_VERIFICATION,
    )
    message = "Account created. Check your email for a verification code."
    if not result.success:
        logger.warning(
            "Signup verification email not delivered",
            extra={"user_id": str(user.id), "error": result.error},
        )
        message = (
            "Account created. Request a new verification code to verify your email."
        )

    return SignupResponse(message=message, user_id=str(user.id))


# ===================================================================
# POST /auth/login
# ===================================================================


@router.post("/login")
@limiter.limit("10/15minute")
async def login(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: LoginRequest,
    response: Response,
    db: DbSession,
    settings: AppSettings,
    sessions: Sessions,
) -> LoginResponse:
    """Verify email + password and start a session.

    When a phone number is supplied it must match the account's phone.
    Constant-time comparison prevents user enumeration via response time.

    Rate limit: 10 per 15 minutes per IP.
    """
    user = await UserRepository.get_by_email(db, body.email)

    # Security: always run bcrypt, even for unknown users
    valid = verify_password(body.password, user.password_hash if user else None)
    if user is None or not valid:
        raise UnauthorizedError(_INVALID_CREDENTIALS_MSG)

    if body.phone:
        try:
            phone = normalize_phone_input(body.phone)
        except ValueError:
            phone = None
        if phone is None or phone != user.phone:
            raise UnauthorizedError(_INVALID_CREDENTIALS_MSG)

    issued = await sessions.create_session(db, user.id, remember_me=body.remember_me)
    await db.commit()

    set_session_cookie(response, issued.token, max_age=issued.max_age, settings=settings)
    set_admin_hint_cookie(
        response, is_admin=user.is_admin, max_age=issued.max_age, settings=settings
    )
    return LoginResponse(message="Login successful", user=UserOut.from_user(user))


# ===================================================================
# POST /auth/logout
# ===================================================================


@router.post("/logout")
async def logout(
    response: Response,
    db: DbSession,
    settings: AppSettings,
    sessions: Sessions,
    token: SessionToken,
) -> MessageResponse:
    """Destroy the current session and clear auth cookies.

    Always succeeds; logging out without a session is a no-op.
    """
    await sessions.destroy_session(db, token)
    await db.commit()
    clear_auth_cookies(response, settings)
    return MessageResponse(message="Logged out successfully")


# ===================================================================
# GET /auth/check-session, GET /auth/me
# ===================================================================


@router.get("/check-session")
async def check_session(user: OptionalUser) -> SessionStatusResponse:
    """Report whether the caller has a valid session. Never 401s."""
    if user is None:
        return SessionStatusResponse(authenticated=False)
    return SessionStatusResponse(authenticated=True, user=UserOut.from_user(user))


@router.get("/me")
async def me(user: CurrentUser) -> SessionStatusResponse:
    """Return the signed-in user, or 401."""
    return SessionStatusResponse(authenticated=True, user=UserOut.from_user(user))


# ===================================================================
# POST /auth/refresh-session
# ===================================================================


@router.post("/refresh-session")
async def refresh_session(
    response: Response,
    db: DbSession,
    settings: AppSettings,
    sessions: Sessions,
    token: SessionToken,
    user: CurrentUser,
) -> RefreshResponse:
    """Extend the current session and re-issue the cookie.

    Raises:
        UnauthorizedError: No valid session to refresh.
    """
    expires = await sessions.refresh_session(db, token)
    if expires is None or token is None:
        raise UnauthorizedError("Session expired")
    await db.commit()

    max_age = max(int((expires - datetime.now(UTC)).total_seconds()), 0)
    set_session_cookie(response, token, max_age=max_age, settings=settings)
    set_admin_hint_cookie(
        response, is_admin=user.is_admin, max_age=max_age, settings=settings
    )
    return RefreshResponse(message="Session refreshed", expires_at=expires)


# ===================================================================
# POST /auth/change-password
# ===================================================================


@router.post("/change-password")
@limiter.limit("5/hour")
async def change_password(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: ChangePasswordRequest,
    db: DbSession,
    settings: AppSettings,
    sessions: Sessions,
    token: SessionToken,
    user: CurrentUser,
) -> MessageResponse:
    """Change password for the signed-in user.

    Verifies the current password when one is set (OAuth-only accounts
    may set a first password without it), validates the new password, and
    revokes every other session of the user. The current session stays
    valid.

    Rate limit: 5 per hour per session.
    """
    if user.password_hash:
        if not body.current_password:
            raise ValidationError("Current password required")
        if not verify_password(body.current_password, user.password_hash):
            raise UnauthorizedError("Current password incorrect")

    validate_password_strength(body.new_password)

    await UserRepository.update(
        db,
        user.id,
        password_hash=hash_password(body.new_password, rounds=settings.bcrypt_rounds),
    )
    await sessions.revoke_user_sessions(db, user.id, keep_token=token)
    await db.commit()

    return MessageResponse(message="Password updated")
