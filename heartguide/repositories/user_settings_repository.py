"""Repository for UserSettings operations."""

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from heartguide.models.user_settings import UserSettings

_UPDATABLE_FIELDS: frozenset[str] = frozenset(
    {
        "two_factor_enabled",
        "two_factor_method",
        "notify_email",
        "notify_sms",
        "notify_app",
        "data_sharing",
        "anonymous_data_collection",
    }
)


class UserSettingsRepository:
    """Stateless repository for UserSettings table operations.

    All methods are static; no instance state.
    """

    @staticmethod
    async def get_or_create(db: AsyncSession, user_id: uuid.UUID) -> UserSettings:
        """Fetch a user's settings, creating the default row on first access.

        Args:
            db: Async database session.
            user_id: Owner of the settings.

        Returns:
            The UserSettings row.
        """
        row = await db.get(UserSettings, user_id)
        if row is not None:
            return row
        row = UserSettings(user_id=user_id)
        db.add(row)
        await db.flush()
        await db.refresh(row)
        return row

    @staticmethod
    async def update(
        db: AsyncSession,
        user_id: uuid.UUID,
        /,
        **kwargs: bool | str,
    ) -> UserSettings:
        """Update settings fields, creating the row if needed.

        Raises:
            ValueError: If an unknown field name is passed.
        """
        unknown = set(kwargs) - _UPDATABLE_FIELDS
        if unknown:
            msg = f"Unknown fields: {', '.join(sorted(unknown))}"
            raise ValueError(msg)

        row = await UserSettingsRepository.get_or_create(db, user_id)
        for field, value in kwargs.items():
            setattr(row, field, value)
        await db.flush()
        await db.refresh(row)
        return row
