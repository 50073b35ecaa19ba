"""Pydantic request/response schemas shared across API endpoints."""

from heartguide.schemas.user import (
    NotificationPreferences,
    PrivacySettings,
    ProfileUpdate,
    UserOut,
    UserSettingsPayload,
)

__all__ = [
    "NotificationPreferences",
    "PrivacySettings",
    "ProfileUpdate",
    "UserOut",
    "UserSettingsPayload",
]
