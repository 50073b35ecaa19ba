"""Repository for User CRUD operations.

Provides database access for the users table.
"""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from heartguide.models.user import ROLE_ADMIN, ROLE_USER, User

# Fields that may be updated via UserRepository.update().
# Security: Never add 'id', 'email', 'role', 'created_at', or 'updated_at'.
# - id: primary key, immutable
# - email: unique identity, requires dedicated flow with re-verification
# - role: use set_role() so privilege changes are explicit
# - created_at/updated_at: managed timestamps
_UPDATABLE_FIELDS: frozenset[str] = frozenset(
    {
        "name",
        "phone",
        "password_hash",
        "email_verified",
        "phone_verified",
        "image",
    }
)

_ROLES: frozenset[str] = frozenset({ROLE_USER, ROLE_ADMIN})


class UserRepository:
    """Stateless repository for User table operations.

    All methods are static; no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> User | None:
        """Fetch a user by email address (case-insensitive).

        Args:
            db: Async database session.
            email: Email address to look up.

        Returns:
            User if found, None otherwise.
        """
        stmt = select(User).where(User.email == email.strip().lower())
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_phone(db: AsyncSession, phone: str) -> User | None:
        """Fetch a user by E.164 phone number.

        Phone numbers are not unique; the oldest account wins so repeated
        lookups resolve to the same user.

        Args:
            db: Async database session.
            phone: Normalized E.164 phone number.

        Returns:
            User if found, None otherwise.
        """
        stmt = (
            select(User)
            .where(User.phone == phone)
            .order_by(User.created_at)
            .limit(1)
        )
        result = await db.execute(stmt)
        return result.scalars().first()

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        name: str | None = None,
        phone: str | None = None,
        password_hash: str | None = None,
        email_verified: bool = False,
        image: str | None = None,
    ) -> User:
        """Create a new user with the "user" role.

        Email is normalized to lowercase before storage.

        Args:
            db: Async database session.
            email: User email address.
            name: Display name.
            phone: E.164 phone number.
            password_hash: bcrypt hash (None for OAuth-only users).
            email_verified: Whether the email is already confirmed.
            image: Profile picture URL.

        Returns:
            Created User with generated fields populated.

        Raises:
            sqlalchemy.exc.IntegrityError: If email already exists.
        """
        user = User(
            email=email.strip().lower(),
            name=name,
            phone=phone,
            password_hash=password_hash,
            email_verified=email_verified,
            image=image,
            role=ROLE_USER,
        )
        db.add(user)
        await db.flush()
        await db.refresh(user)
        return user

    @staticmethod
    async def update(
        db: AsyncSession,
        user_id: uuid.UUID,
        /,
        **kwargs: str | bool | None,
    ) -> User | None:
        """Update user fields.

        Only fields in _UPDATABLE_FIELDS are allowed. Unknown field names
        raise ValueError.

        Args:
            db: Async database session.
            user_id: UUID of the user to update.
            **kwargs: Field names and values to update.

        Returns:
            Updated User if found, None if user does not exist.

        Raises:
            ValueError: If an unknown field name is passed.
        """
        unknown = set(kwargs) - _UPDATABLE_FIELDS
        if unknown:
            msg = f"Unknown fields: {', '.join(sorted(unknown))}"
            raise ValueError(msg)

        user = await db.get(User, user_id)
        if user is None:
            return None

        for field, value in kwargs.items():
            setattr(user, field, value)

        await db.flush()
        await db.refresh(user)
        return user

    @staticmethod
    async def set_role(db: AsyncSession, user_id: uuid.UUID, role: str) -> User | None:
        """Set the role for a user.

        Separated from update() to prevent mass-assignment privilege
        escalation. Only call from explicit promotion paths.

        Args:
            db: Async database session.
            user_id: UUID of the user.
            role: "user" or "admin".

        Returns:
            Updated User if found, None if user does not exist.

        Raises:
            ValueError: If role is not a known role.
        """
        if role not in _ROLES:
            msg = f"Unknown role: {role}"
            raise ValueError(msg)
        user = await db.get(User, user_id)
        if user is None:
            return None
        user.role = role
        await db.flush()
        await db.refresh(user)
        return user
