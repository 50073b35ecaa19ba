"""Account model - OAuth provider connections.

One row per (provider, provider user id). Several rows may point at the
same user when they sign in with more than one provider.
"""

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from heartguide.models.base import Base, CreatedAtMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from heartguide.models.user import User


class Account(Base, UUIDPrimaryKeyMixin, CreatedAtMixin):
    """OAuth provider identity linked to a local user.

    Provider access tokens are used once during the callback to fetch the
    profile and are not stored.

    Attributes:
        id: UUID primary key.
        user_id: FK to users table.
        provider: Provider name ("google", "github", "facebook").
        provider_account_id: Provider's unique user ID.
        created_at: Record creation timestamp.
    """

    __tablename__ = "accounts"
    __table_args__ = (
        UniqueConstraint(
            "provider", "provider_account_id", name="uq_accounts_provider_account"
        ),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    provider_account_id: Mapped[str] = mapped_column(String(255), nullable=False)

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="accounts")
