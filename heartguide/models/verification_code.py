"""Verification code model - email/SMS one-time codes.

Single-use and time-limited. At most one unused code exists per
(user, purpose); issuing a new one marks the older ones used.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from heartguide.models.base import Base, CreatedAtMixin, UUIDPrimaryKeyMixin

PURPOSE_EMAIL_VERIFICATION = "email_verification"
PURPOSE_PHONE_VERIFICATION = "phone_verification"
PURPOSE_PASSWORD_RESET = "password_reset"

CODE_PURPOSES = (
    PURPOSE_EMAIL_VERIFICATION,
    PURPOSE_PHONE_VERIFICATION,
    PURPOSE_PASSWORD_RESET,
)


class VerificationCode(Base, UUIDPrimaryKeyMixin, CreatedAtMixin):
    """One-time numeric code sent by email or SMS.

    Attributes:
        id: UUID primary key.
        user_id: FK to users table.
        code: SHA-256 hex digest of the code.
        purpose: One of CODE_PURPOSES.
        expires_at: Expiry timestamp.
        used: Set once the code is consumed, superseded, or burned.
        failed_attempts: Wrong guesses against this code.
        created_at: Issue timestamp (drives the resend cooldown).
    """

    __tablename__ = "verification_codes"
    __table_args__ = (
        CheckConstraint(
            "purpose IN ('email_verification', 'phone_verification', "
            "'password_reset')",
            name="ck_verification_codes_purpose",
        ),
        Index("ix_verification_codes_user_purpose", "user_id", "purpose"),
        # At most one live code per (user, purpose), even under concurrent issues
        Index(
            "uq_verification_codes_live",
            "user_id",
            "purpose",
            unique=True,
            postgresql_where=text("used = false"),
            sqlite_where=text("used = 0"),
        ),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    code: Mapped[str] = mapped_column(String(64), nullable=False)
    purpose: Mapped[str] = mapped_column(String(30), nullable=False)
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
    failed_attempts: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        server_default=text("0"),
        default=0,
    )
