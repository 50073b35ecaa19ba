"""Session model - server-side login sessions.

The browser holds an opaque random token in the session cookie; only its
SHA-256 digest is stored here.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from heartguide.models.base import Base, CreatedAtMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from heartguide.models.user import User


class Session(Base, UUIDPrimaryKeyMixin, CreatedAtMixin):
    """Active login session.

    Attributes:
        id: UUID primary key.
        token: SHA-256 hex digest of the cookie token. Unique.
        user_id: FK to users table.
        expires: Absolute expiry. Rows past it are treated as absent.
        created_at: Record creation timestamp.
    """

    __tablename__ = "sessions"

    token: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    expires: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="sessions")
