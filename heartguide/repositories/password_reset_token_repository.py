"""Repository for PasswordResetToken operations.

Reset tokens are stored as SHA-256 digests and consumed with a
compare-and-set UPDATE.
"""

import uuid
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from heartguide.models.password_reset_token import PasswordResetToken


class PasswordResetTokenRepository:
    """Stateless repository for PasswordResetToken table operations.

    All methods are static; no instance state.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        token_hash: str,
        expires_at: datetime,
    ) -> PasswordResetToken:
        """Store a new reset token.

        Args:
            db: Async database session.
            user_id: Owner of the token.
            token_hash: SHA-256 hex digest of the plain token.
            expires_at: Expiry timestamp.

        Returns:
            Created PasswordResetToken.
        """
        prt = PasswordResetToken(
            user_id=user_id,
            token=token_hash,
            expires_at=expires_at,
        )
        db.add(prt)
        await db.flush()
        return prt

    @staticmethod
    async def invalidate_unused(db: AsyncSession, *, user_id: uuid.UUID) -> int:
        """Mark every unused reset token of a user as used.

        Returns:
            Number of tokens invalidated.
        """
        stmt = (
            update(PasswordResetToken)
            .where(
                PasswordResetToken.user_id == user_id,
                PasswordResetToken.used.is_(False),
            )
            .values(used=True)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count

    @staticmethod
    async def get_valid_user_id(
        db: AsyncSession,
        *,
        token_hash: str,
        now: datetime,
    ) -> uuid.UUID | None:
        """Look up the owner of an unused, unexpired token without consuming it.

        Returns:
            The user id, or None if the token is unknown, used, or expired.
        """
        stmt = select(PasswordResetToken.user_id).where(
            PasswordResetToken.token == token_hash,
            PasswordResetToken.used.is_(False),
            PasswordResetToken.expires_at > now,
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def consume(
        db: AsyncSession,
        *,
        token_hash: str,
        now: datetime,
    ) -> uuid.UUID | None:
        """Atomically mark a live token as used.

        The owner is read first, then the row is claimed with a conditional
        UPDATE; only the caller whose UPDATE affects the row wins.

        Returns:
            The owner's user id if this call consumed the token, None
            otherwise.
        """
        user_id = await PasswordResetTokenRepository.get_valid_user_id(
            db, token_hash=token_hash, now=now
        )
        if user_id is None:
            return None

        stmt = (
            update(PasswordResetToken)
            .where(
                PasswordResetToken.token == token_hash,
                PasswordResetToken.used.is_(False),
                PasswordResetToken.expires_at > now,
            )
            .values(used=True)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        if result.rowcount == 0:  # type: ignore[attr-defined]
            return None
        return user_id
