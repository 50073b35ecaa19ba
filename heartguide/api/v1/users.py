"""Profile and settings endpoints for the signed-in user."""

from fastapi import APIRouter

from heartguide.api.deps import CurrentUser, DbSession
from heartguide.repositories.user_repository import UserRepository
from heartguide.repositories.user_settings_repository import UserSettingsRepository
from heartguide.schemas.user import ProfileUpdate, UserOut, UserSettingsPayload

router = APIRouter()


@router.get("/me/profile")
async def get_profile(user: CurrentUser) -> UserOut:
    """Return the signed-in user's profile."""
    return UserOut.from_user(user)


@router.patch("/me/profile")
async def update_profile(
    body: ProfileUpdate,
    user: CurrentUser,
    db: DbSession,
) -> UserOut:
    """Update name and/or phone.

    Changing the phone number clears its verified flag.
    """
    changes = body.model_dump(exclude_unset=True)
    if "name" in changes and changes["name"] is None:
        del changes["name"]
    if "phone" in changes and changes["phone"] != user.phone:
        changes["phone_verified"] = False

    if changes:
        updated = await UserRepository.update(db, user.id, **changes)
        await db.commit()
        if updated is not None:
            user = updated
    return UserOut.from_user(user)


@router.get("/me/settings")
async def read_settings(user: CurrentUser, db: DbSession) -> UserSettingsPayload:
    """Return the signed-in user's settings, creating defaults on first read."""
    row = await UserSettingsRepository.get_or_create(db, user.id)
    await db.commit()
    return UserSettingsPayload.from_row(row)


@router.put("/me/settings")
async def put_settings(
    body: UserSettingsPayload,
    user: CurrentUser,
    db: DbSession,
) -> UserSettingsPayload:
    """Replace the signed-in user's settings."""
    row = await UserSettingsRepository.update(db, user.id, **body.to_columns())
    await db.commit()
    return UserSettingsPayload.from_row(row)
