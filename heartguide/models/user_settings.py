"""User settings model - notification and privacy preferences.

One row per user, created lazily on first read.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, String, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from heartguide.models.base import Base, utcnow

if TYPE_CHECKING:
    from heartguide.models.user import User


class UserSettings(Base):
    """Per-user preferences.

    Attributes:
        user_id: PK and FK to users table.
        two_factor_enabled: Whether login requires a second factor.
        two_factor_method: "email" or "sms".
        notify_email: Email notifications on.
        notify_sms: SMS notifications on.
        notify_app: In-app notifications on.
        data_sharing: Consent to share data with care providers.
        anonymous_data_collection: Consent to anonymous analytics.
        updated_at: Last modification timestamp.
    """

    __tablename__ = "user_settings"
    __table_args__ = (
        CheckConstraint(
            "two_factor_method IN ('email', 'sms')",
            name="ck_user_settings_two_factor_method",
        ),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    two_factor_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false"), default=False
    )
    two_factor_method: Mapped[str] = mapped_column(
        String(10), nullable=False, server_default=text("'email'"), default="email"
    )
    notify_email: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("true"), default=True
    )
    notify_sms: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false"), default=False
    )
    notify_app: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("true"), default=True
    )
    data_sharing: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("true"), default=True
    )
    anonymous_data_collection: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("true"), default=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="settings")
