"""User model - authentication foundation.

No FK dependencies. Users are never deleted by the account service; every
dependent table cascades on delete so manual cleanup stays possible.
"""

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from heartguide.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from heartguide.models.account import Account
    from heartguide.models.session import Session
    from heartguide.models.user_settings import UserSettings

_CASCADE_ALL_DELETE_ORPHAN = "all, delete-orphan"

ROLE_USER = "user"
ROLE_ADMIN = "admin"


class User(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """User account for authentication.

    Attributes:
        id: UUID primary key.
        email: Unique email address, stored lower-cased.
        name: Display name (from signup or OAuth profile).
        phone: E.164 phone number. NULL when not provided.
        password_hash: bcrypt hash. NULL for OAuth-only users.
        role: "user" or "admin". The only source of admin authority.
        email_verified: Whether the email address has been confirmed.
        phone_verified: Whether the phone number has been confirmed.
        image: Profile picture URL from OAuth provider.
        created_at: Account creation timestamp (from TimestampMixin).
        updated_at: Last modification timestamp (from TimestampMixin).
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    phone: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
        index=True,
    )
    password_hash: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        server_default=text("'user'"),
        default=ROLE_USER,
    )
    email_verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("false"),
        default=False,
    )
    phone_verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("false"),
        default=False,
    )
    image: Mapped[str | None] = mapped_column(
        Text(),
        nullable=True,
    )

    # Relationships
    accounts: Mapped[list["Account"]] = relationship(
        "Account",
        back_populates="user",
        cascade=_CASCADE_ALL_DELETE_ORPHAN,
    )
    sessions: Mapped[list["Session"]] = relationship(
        "Session",
        back_populates="user",
        cascade=_CASCADE_ALL_DELETE_ORPHAN,
    )
    settings: Mapped["UserSettings | None"] = relationship(
        "UserSettings",
        back_populates="user",
        cascade=_CASCADE_ALL_DELETE_ORPHAN,
        uselist=False,
    )

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN
