"""Repository for VerificationCode operations.

One-time codes are stored as SHA-256 digests. Consumption is a single
conditional UPDATE whose affected-row count decides the winner, so two
concurrent submissions of the same code cannot both succeed.
"""

import uuid
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from heartguide.models.verification_code import VerificationCode


class VerificationCodeRepository:
    """Stateless repository for VerificationCode table operations.

    All methods are static; no instance state.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        code_hash: str,
        purpose: str,
        expires_at: datetime,
    ) -> VerificationCode:
        """Store a new verification code.

        Args:
            db: Async database session.
            user_id: Owner of the code.
            code_hash: SHA-256 hex digest of the plain code.
            purpose: Code purpose.
            expires_at: Expiry timestamp.

        Returns:
            Created VerificationCode.
        """
        vc = VerificationCode(
            user_id=user_id,
            code=code_hash,
            purpose=purpose,
            expires_at=expires_at,
        )
        db.add(vc)
        await db.flush()
        return vc

    @staticmethod
    async def invalidate_unused(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        purpose: str,
    ) -> int:
        """Mark every unused code for (user, purpose) as used.

        Returns:
            Number of codes invalidated.
        """
        stmt = (
            update(VerificationCode)
            .where(
                VerificationCode.user_id == user_id,
                VerificationCode.purpose == purpose,
                VerificationCode.used.is_(False),
            )
            .values(used=True)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count

    @staticmethod
    async def count_issued_since(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        purpose: str,
        since: datetime,
    ) -> int:
        """Count codes issued for (user, purpose) after a point in time.

        Used by the resend cooldown.
        """
        stmt = select(func.count(VerificationCode.id)).where(
            VerificationCode.user_id == user_id,
            VerificationCode.purpose == purpose,
            VerificationCode.created_at > since,
        )
        result = await db.execute(stmt)
        return int(result.scalar_one())

    @staticmethod
    async def consume(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        purpose: str,
        code_hash: str,
        now: datetime,
    ) -> bool:
        """Atomically mark a matching live code as used.

        Args:
            db: Async database session.
            user_id: Owner of the code.
            purpose: Code purpose.
            code_hash: SHA-256 hex digest of the submitted code.
            now: Current time.

        Returns:
            True if exactly this call consumed the code, False otherwise.
        """
        stmt = (
            update(VerificationCode)
            .where(
                VerificationCode.user_id == user_id,
                VerificationCode.purpose == purpose,
                VerificationCode.code == code_hash,
                VerificationCode.used.is_(False),
                VerificationCode.expires_at > now,
            )
            .values(used=True)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.rowcount > 0  # type: ignore[attr-defined]

    @staticmethod
    async def record_failed_attempt(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        purpose: str,
        now: datetime,
        max_attempts: int,
    ) -> int:
        """Count a wrong guess against the live code for (user, purpose).

        The code is burned (marked used) once failed_attempts reaches
        max_attempts.

        Returns:
            Number of live codes touched (0 when none is outstanding).
        """
        live = (
            VerificationCode.user_id == user_id,
            VerificationCode.purpose == purpose,
            VerificationCode.used.is_(False),
            VerificationCode.expires_at > now,
        )
        bump = (
            update(VerificationCode)
            .where(*live)
            .values(failed_attempts=VerificationCode.failed_attempts + 1)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(bump)
        burn = (
            update(VerificationCode)
            .where(*live, VerificationCode.failed_attempts >= max_attempts)
            .values(used=True)
            .execution_options(synchronize_session=False)
        )
        await db.execute(burn)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count

    @staticmethod
    async def has_expired_match(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        purpose: str,
        code_hash: str,
        now: datetime,
    ) -> bool:
        """Whether the submitted code matches an unused but expired code."""
        stmt = select(VerificationCode.id).where(
            VerificationCode.user_id == user_id,
            VerificationCode.purpose == purpose,
            VerificationCode.code == code_hash,
            VerificationCode.used.is_(False),
            VerificationCode.expires_at <= now,
        )
        result = await db.execute(stmt.limit(1))
        return result.first() is not None
