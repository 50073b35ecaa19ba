"""One-time code and password reset endpoints.

send-verification-code, resend-verification-code, verify-otp,
forgot-password, verify-reset-code, verify-reset-token, reset-password.

Security considerations:
- Requests naming an unknown email or phone get the same generic answer
  as known ones (no account enumeration)
- Codes are single use; replays and wrong guesses answer
  {"success": false}, and repeated wrong guesses burn the code
- A successful password reset revokes every session of the user
"""

import logging
from typing import Literal

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from heartguide.api.deps import (
    AppSettings,
    DbSession,
    Notifications,
    Sessions,
    Verification,
)
from heartguide.core.auth import hash_password, validate_password_strength
from heartguide.core.errors import (
    ExpiredCodeError,
    InvalidCodeError,
    UpstreamFailureError,
)
from heartguide.core.phone import is_email_identifier
from heartguide.core.rate_limiting import limiter
from heartguide.core.responses import FailureResponse, MessageResponse
from heartguide.models.user import User
from heartguide.models.verification_code import (
    PURPOSE_EMAIL_VERIFICATION,
    PURPOSE_PASSWORD_RESET,
    PURPOSE_PHONE_VERIFICATION,
)
from heartguide.repositories.user_repository import UserRepository
from heartguide.services.notifications import NotificationDispatcher
from heartguide.services.verification import VerificationService

logger = logging.getLogger(__name__)

router = APIRouter()

_CODE_SENT_MSG = "If an account exists, a verification code has been sent."
_RESET_SENT_MSG = "If an account exists, a password reset code has been sent."

Method = Literal["email", "sms"]
Purpose = Literal["email_verification", "phone_verification", "password_reset"]


# ===================================================================
# Request / response models
# ===================================================================


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid"
    )


class SendCodeRequest(_CamelModel):
    """Request body for POST /auth/send-verification-code (and resend)."""

    identifier: str = Field(min_length=3, max_length=255)
    method: Method = "email"
    purpose: Purpose | None = None


class VerifyOtpRequest(_CamelModel):
    """Request body for POST /auth/verify-otp."""

    identifier: str = Field(min_length=3, max_length=255)
    code: str = Field(min_length=1, max_length=12)
    purpose: Purpose | None = None


class ForgotPasswordRequest(_CamelModel):
    """Request body for POST /auth/forgot-password."""

    identifier: str = Field(min_length=3, max_length=255)
    method: Method = "email"


class VerifyResetCodeRequest(_CamelModel):
    """Request body for POST /auth/verify-reset-code."""

    identifier: str = Field(min_length=3, max_length=255)
    code: str = Field(min_length=1, max_length=12)


class ResetTokenRequest(_CamelModel):
    """Request body for POST /auth/verify-reset-token."""

    token: str = Field(min_length=1, max_length=255)


class ResetPasswordRequest(_CamelModel):
    """Request body for POST /auth/reset-password."""

    token: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=128)


class ResetCodeVerifiedResponse(_CamelModel):
    success: bool = True
    message: str
    token: str


class ResetTokenStatusResponse(_CamelModel):
    valid: bool
    user_id: str | None = None


# ===================================================================
# Helpers
# ===================================================================


def _default_purpose(method: str) -> str:
    if method == "sms":
        return PURPOSE_PHONE_VERIFICATION
    return PURPOSE_EMAIL_VERIFICATION


async def _issue_and_deliver(
    *,
    db: AsyncSession,
    user: User,
    method: str,
    purpose: str,
    verification: VerificationService,
    notifications: NotificationDispatcher,
) -> None:
    """Issue a code for a known user and send it over the chosen channel.

    Users without a phone number asking for SMS are skipped silently so
    the response stays identical to the unknown-user case.

    Raises:
        CodeCooldownError: Asked again within the resend cooldown.
        UpstreamFailureError: The gateway rejected the message. The code
            is already committed and stays valid.
    """
    destination = user.phone if method == "sms" else user.email
    if not destination:
        logger.info(
            "No destination for verification code",
            extra={"user_id": str(user.id), "method": method},
        )
        return

    code = await verification.issue_code(db, user.id, purpose)
    await db.commit()

    result = await notifications.send_code(
        method=method, destination=destination, code=code, purpose=purpose
    )
    if not result.success:
        logger.warning(
            "Verification code delivery failed",
            extra={"user_id": str(user.id), "method": method, "error": result.error},
        )
        raise UpstreamFailureError(f"Failed to send verification code via {method}")


async def _send_code(
    body: SendCodeRequest,
    db: AsyncSession,
    verification: VerificationService,
    notifications: NotificationDispatcher,
) -> MessageResponse:
    user = await verification.resolve_user(db, body.identifier)
    if user is not None:
        await _issue_and_deliver(
            db=db,
            user=user,
            method=body.method,
            purpose=body.purpose or _default_purpose(body.method),
            verification=verification,
            notifications=notifications,
        )
    return MessageResponse(message=_CODE_SENT_MSG)


# ===================================================================
# POST /auth/send-verification-code, /auth/resend-verification-code
# ===================================================================


@router.post("/send-verification-code")
@limiter.limit("5/15minute")
async def send_verification_code(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: SendCodeRequest,
    db: DbSession,
    verification: Verification,
    notifications: Notifications,
) -> MessageResponse:
    """Send a one-time code by email or SMS.

    Always answers with the same generic message whether or not the
    identifier belongs to an account.

    Rate limit: 5 per 15 minutes per IP.
    """
    return await _send_code(body, db, verification, notifications)


@router.post("/resend-verification-code")
@limiter.limit("5/15minute")
async def resend_verification_code(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: SendCodeRequest,
    db: DbSession,
    verification: Verification,
    notifications: Notifications,
) -> MessageResponse:
    """Issue a fresh code, invalidating the previous one.

    Rate limit: 5 per 15 minutes per IP.
    """
    return await _send_code(body, db, verification, notifications)


# ===================================================================
# POST /auth/verify-otp
# ===================================================================


@router.post("/verify-otp", response_model=MessageResponse)
@limiter.limit("10/15minute")
async def verify_otp(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: VerifyOtpRequest,
    db: DbSession,
    verification: Verification,
) -> MessageResponse | JSONResponse:
    """Check a one-time code and mark the email or phone as verified.

    The purpose defaults to email_verification for email identifiers and
    phone_verification for phone identifiers.

    Returns:
        {"success": true} on a match; 400 {"success": false} for invalid,
        expired, or already used codes and for unknown identifiers.

    Rate limit: 10 per 15 minutes per IP.
    """
    purpose = body.purpose or (
        PURPOSE_EMAIL_VERIFICATION
        if is_email_identifier(body.identifier)
        else PURPOSE_PHONE_VERIFICATION
    )
    try:
        user = await verification.verify_code_for_identifier(
            db, body.identifier, body.code, purpose
        )
    except (InvalidCodeError, ExpiredCodeError) as exc:
        # Keep the failed-attempt count
        await db.commit()
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=FailureResponse(message=exc.message).model_dump(),
        )

    if purpose == PURPOSE_EMAIL_VERIFICATION:
        await UserRepository.update(db, user.id, email_verified=True)
    elif purpose == PURPOSE_PHONE_VERIFICATION:
        await UserRepository.update(db, user.id, phone_verified=True)
    await db.commit()

    return MessageResponse(message="Verification successful")


# ===================================================================
# POST /auth/forgot-password
# ===================================================================


@router.post("/forgot-password")
@limiter.limit("5/hour")
async def forgot_password(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: ForgotPasswordRequest,
    db: DbSession,
    verification: Verification,
    notifications: Notifications,
) -> MessageResponse:
    """Send a password reset code.

    Always answers with the same generic message.

    Rate limit: 5 per hour per IP.
    """
    user = await verification.resolve_user(db, body.identifier)
    if user is not None:
        await _issue_and_deliver(
            db=db,
            user=user,
            method=body.method,
            purpose=PURPOSE_PASSWORD_RESET,
            verification=verification,
            notifications=notifications,
        )
    return MessageResponse(message=_RESET_SENT_MSG)


# ===================================================================
# POST /auth/verify-reset-code
# ===================================================================


@router.post("/verify-reset-code")
@limiter.limit("10/15minute")
async def verify_reset_code(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: VerifyResetCodeRequest,
    db: DbSession,
    verification: Verification,
) -> ResetCodeVerifiedResponse:
    """Exchange a password reset code for a single-use reset token.

    Raises:
        InvalidCodeError: Wrong, used, or unknown-identifier code (400).
        ExpiredCodeError: Code expired (400).

    Rate limit: 10 per 15 minutes per IP.
    """
    try:
        user = await verification.verify_code_for_identifier(
            db, body.identifier, body.code, PURPOSE_PASSWORD_RESET
        )
    except (InvalidCodeError, ExpiredCodeError):
        # Keep the failed-attempt count before the error handler runs
        await db.commit()
        raise

    token = await verification.issue_reset_token(db, user.id)
    await db.commit()
    return ResetCodeVerifiedResponse(message="Code verified", token=token)


# ===================================================================
# POST /auth/verify-reset-token
# ===================================================================


@router.post("/verify-reset-token")
@limiter.limit("10/15minute")
async def verify_reset_token(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: ResetTokenRequest,
    db: DbSession,
    verification: Verification,
) -> ResetTokenStatusResponse:
    """Report whether a reset token is still usable. Does not consume it."""
    user_id = await verification.check_reset_token(db, body.token)
    if user_id is None:
        return ResetTokenStatusResponse(valid=False)
    return ResetTokenStatusResponse(valid=True, user_id=str(user_id))


# ===================================================================
# POST /auth/reset-password
# ===================================================================


@router.post("/reset-password")
@limiter.limit("5/hour")
async def reset_password(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: ResetPasswordRequest,
    db: DbSession,
    settings: AppSettings,
    sessions: Sessions,
    verification: Verification,
) -> MessageResponse:
    """Set a new password using a reset token.

    The token is consumed, the password replaced, and every session of
    the user revoked.

    Raises:
        ValidationError: New password too weak (token left unused).
        InvalidResetTokenError: Token unknown, used, or expired.

    Rate limit: 5 per hour per IP.
    """
    validate_password_strength(body.password)

    user_id = await verification.consume_reset_token(db, body.token)
    await UserRepository.update(
        db,
        user_id,
        password_hash=hash_password(body.password, rounds=settings.bcrypt_rounds),
    )
    await sessions.revoke_user_sessions(db, user_id)
    await db.commit()

    return MessageResponse(message="Password has been reset. Please sign in.")
