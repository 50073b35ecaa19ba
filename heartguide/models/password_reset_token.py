"""Password reset token model.

Issued after a password-reset code is verified and consumed by the
reset-password call. The plain UUID4 value goes to the client; the table
only stores its SHA-256 digest.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String, text
from sqlalchemy.orm import Mapped, mapped_column

from heartguide.models.base import Base, CreatedAtMixin, UUIDPrimaryKeyMixin


class PasswordResetToken(Base, UUIDPrimaryKeyMixin, CreatedAtMixin):
    """Single-use, time-limited password reset token.

    Attributes:
        id: UUID primary key.
        user_id: FK to users table.
        token: SHA-256 hex digest of the token. Unique.
        expires_at: Expiry timestamp.
        used: Set once consumed or superseded.
        created_at: Issue timestamp.
    """

    __tablename__ = "password_reset_tokens"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    used: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("false"),
        default=False,
    )
