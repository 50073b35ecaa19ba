"""Session manager: opaque cookie sessions backed by the sessions table.

Lifecycle: absent → active (create) → expired (time, checked lazily on
lookup) or revoked (destroy / revoke). Expired and revoked are terminal;
a refresh only ever lengthens an active session.

Validation fails closed: anything other than a well-formed token for a
live session yields None, including database errors.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from heartguide.core.auth import (
    MAX_TOKEN_LENGTH,
    generate_session_token,
    hash_token,
    redact,
)
from heartguide.core.config import Settings
from heartguide.models.user import User
from heartguide.repositories.session_repository import SessionRepository

logger = logging.getLogger(__name__)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from the database."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@dataclass(frozen=True)
class IssuedSession:
    """A freshly created session.

    Attributes:
        token: Plain cookie token. Never stored; only its digest is.
        expires: Absolute expiry.
        max_age: Cookie lifetime in seconds.
    """

    token: str
    expires: datetime
    max_age: int


class SessionManager:
    """Creates, validates, refreshes, and destroys login sessions.

    Args:
        settings: Application settings (session lifetimes).
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    @property
    def default_ttl(self) -> timedelta:
        return timedelta(hours=self._settings.session_ttl_hours)

    def ttl_for(self, *, remember_me: bool) -> timedelta:
        """Session lifetime for a login, longer when "remember me" is set."""
        if remember_me:
            return timedelta(days=self._settings.remember_me_ttl_days)
        return self.default_ttl

    async def create_session(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        *,
        remember_me: bool = False,
    ) -> IssuedSession:
        """Persist a new session for a user.

        Args:
            db: Async database session.
            user_id: Owner of the session.
            remember_me: Use the long "remember me" lifetime.

        Returns:
            IssuedSession with the plain token for the cookie.
        """
        ttl = self.ttl_for(remember_me=remember_me)
        token = generate_session_token()
        expires = datetime.now(UTC) + ttl
        await SessionRepository.create(
            db,
            user_id=user_id,
            token_hash=hash_token(token),
            expires=expires,
        )
        logger.info(
            "Session created",
            extra={"user_id": str(user_id), "token": redact(token)},
        )
        return IssuedSession(
            token=token,
            expires=expires,
            max_age=int(ttl.total_seconds()),
        )

    async def validate_session(
        self, db: AsyncSession, token: str | None
    ) -> User | None:
        """Resolve a session token to its user.

        Args:
            db: Async database session.
            token: Cookie value, possibly missing or garbage.

        Returns:
            The user for a live session, None in every other case.
        """
        if not token or len(token) > MAX_TOKEN_LENGTH:
            return None
        try:
            return await SessionRepository.get_active_user(
                db, token_hash=hash_token(token), now=datetime.now(UTC)
            )
        except SQLAlchemyError:
            logger.warning(
                "Session lookup failed", extra={"token": redact(token)}, exc_info=True
            )
            await db.rollback()
            return None

    async def refresh_session(
        self, db: AsyncSession, token: str | None
    ) -> datetime | None:
        """Extend a live session to now + the default lifetime.

        Never shortens a session (a "remember me" session keeps its later
        expiry). Safe to call concurrently; the last write wins.

        Args:
            db: Async database session.
            token: Cookie value.

        Returns:
            The session's expiry after the refresh, or None if the session
            is missing or already expired.
        """
        if not token or len(token) > MAX_TOKEN_LENGTH:
            return None
        now = datetime.now(UTC)
        expires = await SessionRepository.extend(
            db,
            token_hash=hash_token(token),
            new_expires=now + self.default_ttl,
            now=now,
        )
        if expires is None:
            return None
        return as_utc(expires)

    async def destroy_session(self, db: AsyncSession, token: str | None) -> None:
        """Delete a session. Missing or unknown tokens are a no-op."""
        if not token or len(token) > MAX_TOKEN_LENGTH:
            return
        deleted = await SessionRepository.delete_by_token(
            db, token_hash=hash_token(token)
        )
        if deleted:
            logger.info("Session destroyed", extra={"token": redact(token)})

    async def revoke_user_sessions(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        *,
        keep_token: str | None = None,
    ) -> int:
        """Delete every session of a user except, optionally, the caller's.

        Args:
            db: Async database session.
            user_id: Owner of the sessions.
            keep_token: Plain token of the session to keep.

        Returns:
            Number of sessions revoked.
        """
        keep_hash = hash_token(keep_token) if keep_token else None
        revoked = await SessionRepository.delete_for_user(
            db, user_id=user_id, keep_token_hash=keep_hash
        )
        logger.info(
            "Sessions revoked", extra={"user_id": str(user_id), "count": revoked}
        )
        return revoked
