"""SQLAlchemy ORM models for HeartGuide.

All models are exported from this module for convenient imports:
    from heartguide.models import User, Session, VerificationCode, ...

Models are organized by table:
- user.py: User (no FK dependencies)
- account.py: Account (OAuth identities)
- session.py: Session (login sessions)
- verification_code.py: VerificationCode (email/SMS one-time codes)
- password_reset_token.py: PasswordResetToken
- user_settings.py: UserSettings (notification and privacy preferences)
"""

from heartguide.models.account import Account
from heartguide.models.base import Base, CreatedAtMixin, TimestampMixin
from heartguide.models.password_reset_token import PasswordResetToken
from heartguide.models.session import Session
from heartguide.models.user import User
from heartguide.models.user_settings import UserSettings
from heartguide.models.verification_code import VerificationCode

__all__ = [
    # Base classes
    "Base",
    "CreatedAtMixin",
    "TimestampMixin",
    # Users
    "User",
    "UserSettings",
    # Auth
    "Account",
    "Session",
    "VerificationCode",
    "PasswordResetToken",
]
