"""One-time code and password reset token issuance and verification.

Codes are 6-digit numbers sent by email or SMS, stored as SHA-256 digests,
valid for 15 minutes, and single use. Issuing a code for a (user, purpose)
first marks any older unused code for that pair as used, so at most one
live code exists at a time; a partial unique index on live codes turns a
concurrent second issue into CodeCooldownError.

Consumption is a compare-and-set: one conditional UPDATE flips ``used``
only if the row is still unused and unexpired, and the affected-row count
says whether this caller won. Wrong guesses count against the live code,
which is burned after ``code_max_attempts`` failures.

Reset tokens follow the same pattern with a UUID4 value and a one hour
lifetime.
"""

import logging
import uuid
from datetime import UTC, datetime, timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from heartguide.core.auth import MAX_TOKEN_LENGTH, generate_numeric_code, hash_token
from heartguide.core.config import Settings
from heartguide.core.errors import (
    CodeCooldownError,
    ExpiredCodeError,
    InvalidCodeError,
    InvalidResetTokenError,
    UserNotFoundError,
)
from heartguide.core.phone import is_email_identifier, normalize_identifier
from heartguide.models.user import User
from heartguide.models.verification_code import CODE_PURPOSES
from heartguide.repositories.password_reset_token_repository import (
    PasswordResetTokenRepository,
)
from heartguide.repositories.user_repository import UserRepository
from heartguide.repositories.verification_code_repository import (
    VerificationCodeRepository,
)

logger = logging.getLogger(__name__)


class VerificationService:
    """Issues and verifies one-time codes and password reset tokens.

    Args:
        settings: Application settings (lifetimes, attempt cap, cooldown).
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    @property
    def code_ttl(self) -> timedelta:
        return timedelta(minutes=self._settings.code_ttl_minutes)

    @property
    def reset_token_ttl(self) -> timedelta:
        return timedelta(minutes=self._settings.reset_token_ttl_minutes)

    # =========================================================================
    # Identifier resolution
    # =========================================================================

    async def resolve_user(self, db: AsyncSession, identifier: str) -> User | None:
        """Find the user behind an email address or phone number."""
        normalized = normalize_identifier(identifier)
        if is_email_identifier(normalized):
            return await UserRepository.get_by_email(db, normalized)
        return await UserRepository.get_by_phone(db, normalized)

    # =========================================================================
    # Codes
    # =========================================================================

    async def issue_code(
        self, db: AsyncSession, user_id: uuid.UUID, purpose: str
    ) -> str:
        """Generate, persist, and return a new code for (user, purpose).

        Args:
            db: Async database session.
            user_id: Owner of the code.
            purpose: One of email_verification, phone_verification,
                password_reset.

        Returns:
            The plain code, to be delivered to the user.

        Raises:
            ValueError: If purpose is unknown.
            CodeCooldownError: A code for this pair was issued within the
                resend cooldown, or concurrently by another request.
        """
        if purpose not in CODE_PURPOSES:
            msg = f"Unknown code purpose: {purpose}"
            raise ValueError(msg)

        now = datetime.now(UTC)
        cooldown = self._settings.code_resend_cooldown_seconds
        if cooldown > 0:
            recent = await VerificationCodeRepository.count_issued_since(
                db,
                user_id=user_id,
                purpose=purpose,
                since=now - timedelta(seconds=cooldown),
            )
            if recent:
                raise CodeCooldownError(retry_after=cooldown)

        await VerificationCodeRepository.invalidate_unused(
            db, user_id=user_id, purpose=purpose
        )
        code = generate_numeric_code(self._settings.code_length)
        try:
            async with db.begin_nested():
                await VerificationCodeRepository.create(
                    db,
                    user_id=user_id,
                    code_hash=hash_token(code),
                    purpose=purpose,
                    expires_at=now + self.code_ttl,
                )
        except IntegrityError as exc:
            # A concurrent request issued the live code first; savepoint
            # rolled back, session still usable.
            logger.info(
                "Concurrent verification code issue rejected",
                extra={"user_id": str(user_id), "purpose": purpose},
            )
            raise CodeCooldownError(retry_after=max(cooldown, 1)) from exc
        logger.info(
            "Verification code issued",
            extra={"user_id": str(user_id), "purpose": purpose},
        )
        return code

    async def verify_code(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        submitted_code: str,
        purpose: str,
    ) -> None:
        """Consume a code if it matches the live code for (user, purpose).

        Args:
            db: Async database session.
            user_id: Owner of the code.
            submitted_code: Code typed by the user.
            purpose: Code purpose.

        Raises:
            ExpiredCodeError: The code matches an unused but expired code.
            InvalidCodeError: Anything else that is not a live match,
                including replays of a consumed code.
        """
        now = datetime.now(UTC)
        code_hash = hash_token(submitted_code.strip())

        consumed = await VerificationCodeRepository.consume(
            db, user_id=user_id, purpose=purpose, code_hash=code_hash, now=now
        )
        if consumed:
            logger.info(
                "Verification code consumed",
                extra={"user_id": str(user_id), "purpose": purpose},
            )
            return

        if await VerificationCodeRepository.has_expired_match(
            db, user_id=user_id, purpose=purpose, code_hash=code_hash, now=now
        ):
            raise ExpiredCodeError()

        await VerificationCodeRepository.record_failed_attempt(
            db,
            user_id=user_id,
            purpose=purpose,
            now=now,
            max_attempts=self._settings.code_max_attempts,
        )
        logger.info(
            "Verification code rejected",
            extra={"user_id": str(user_id), "purpose": purpose},
        )
        raise InvalidCodeError()

    async def verify_code_for_identifier(
        self,
        db: AsyncSession,
        identifier: str,
        submitted_code: str,
        purpose: str,
    ) -> User:
        """Resolve an identifier to a user, then verify its code.

        Returns:
            The user whose code was consumed.

        Raises:
            UserNotFoundError: Identifier does not match any user. Renders
                exactly like InvalidCodeError.
            ExpiredCodeError: See verify_code().
            InvalidCodeError: See verify_code().
        """
        user = await self.resolve_user(db, identifier)
        if user is None:
            raise UserNotFoundError()
        await self.verify_code(db, user.id, submitted_code, purpose)
        return user

    # =========================================================================
    # Reset tokens
    # =========================================================================

    async def issue_reset_token(self, db: AsyncSession, user_id: uuid.UUID) -> str:
        """Create a password reset token, superseding any unused ones.

        Returns:
            The plain UUID4 token string.
        """
        await PasswordResetTokenRepository.invalidate_unused(db, user_id=user_id)
        token = str(uuid.uuid4())
        await PasswordResetTokenRepository.create(
            db,
            user_id=user_id,
            token_hash=hash_token(token),
            expires_at=datetime.now(UTC) + self.reset_token_ttl,
        )
        logger.info("Password reset token issued", extra={"user_id": str(user_id)})
        return token

    async def check_reset_token(
        self, db: AsyncSession, token: str | None
    ) -> uuid.UUID | None:
        """Report the owner of a live reset token without consuming it."""
        if not token or len(token) > MAX_TOKEN_LENGTH:
            return None
        return await PasswordResetTokenRepository.get_valid_user_id(
            db, token_hash=hash_token(token), now=datetime.now(UTC)
        )

    async def consume_reset_token(self, db: AsyncSession, token: str) -> uuid.UUID:
        """Consume a reset token.

        Returns:
            The owner's user id.

        Raises:
            InvalidResetTokenError: Token is unknown, used, or expired.
        """
        if not token or len(token) > MAX_TOKEN_LENGTH:
            raise InvalidResetTokenError()
        user_id = await PasswordResetTokenRepository.consume(
            db, token_hash=hash_token(token), now=datetime.now(UTC)
        )
        if user_id is None:
            raise InvalidResetTokenError()
        logger.info("Password reset token consumed", extra={"user_id": str(user_id)})
        return user_id
