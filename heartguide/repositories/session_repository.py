"""Repository for Session operations.

Sessions are keyed by the SHA-256 digest of the cookie token. Expiry is
always compared in SQL against a bound "now" so the check is the same on
every backend.
"""

import uuid
from datetime import datetime

from sqlalchemy import case, delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from heartguide.models.session import Session
from heartguide.models.user import User


class SessionRepository:
    """Stateless repository for Session table operations.

    All methods are static; no instance state.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        token_hash: str,
        expires: datetime,
    ) -> Session:
        """Persist a new session.

        Args:
            db: Async database session.
            user_id: Owner of the session.
            token_hash: SHA-256 hex digest of the cookie token.
            expires: Absolute expiry.

        Returns:
            Created Session.
        """
        session = Session(user_id=user_id, token=token_hash, expires=expires)
        db.add(session)
        await db.flush()
        return session

    @staticmethod
    async def get_active_user(
        db: AsyncSession,
        *,
        token_hash: str,
        now: datetime,
    ) -> User | None:
        """Resolve a live session to its user.

        Args:
            db: Async database session.
            token_hash: SHA-256 hex digest of the cookie token.
            now: Current time; sessions expiring at or before it are ignored.

        Returns:
            User if the session exists and has not expired, None otherwise.
        """
        stmt = (
            select(User)
            .join(Session, Session.user_id == User.id)
            .where(Session.token == token_hash, Session.expires > now)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def extend(
        db: AsyncSession,
        *,
        token_hash: str,
        new_expires: datetime,
        now: datetime,
    ) -> datetime | None:
        """Push a live session's expiry out to new_expires.

        Single conditional UPDATE; an expiry already later than new_expires
        is left untouched.

        Args:
            db: Async database session.
            token_hash: SHA-256 hex digest of the cookie token.
            new_expires: Candidate expiry.
            now: Current time; expired sessions are not revived.

        Returns:
            The session's expiry after the update, or None if no live
            session matched.
        """
        stmt = (
            update(Session)
            .where(Session.token == token_hash, Session.expires > now)
            .values(
                expires=case(
                    (Session.expires < new_expires, new_expires),
                    else_=Session.expires,
                )
            )
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        if result.rowcount == 0:  # type: ignore[attr-defined]
            return None

        current = await db.execute(
            select(Session.expires).where(Session.token == token_hash)
        )
        return current.scalar_one_or_none()

    @staticmethod
    async def delete_by_token(db: AsyncSession, *, token_hash: str) -> int:
        """Delete the session for a token hash.

        Returns:
            Number of deleted rows (0 or 1).
        """
        stmt = (
            delete(Session)
            .where(Session.token == token_hash)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count

    @staticmethod
    async def delete_for_user(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        keep_token_hash: str | None = None,
    ) -> int:
        """Delete every session of a user, optionally sparing one.

        Args:
            db: Async database session.
            user_id: Owner of the sessions.
            keep_token_hash: Session to keep (the caller's own).

        Returns:
            Number of deleted rows.
        """
        stmt = delete(Session).where(Session.user_id == user_id)
        if keep_token_hash is not None:
            stmt = stmt.where(Session.token != keep_token_hash)
        result = await db.execute(
            stmt.execution_options(synchronize_session=False)
        )
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count
