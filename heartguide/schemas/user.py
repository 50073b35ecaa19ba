"""User, profile, and settings schemas.

JSON bodies use camelCase keys; Python attributes stay snake_case.
Request schemas use ConfigDict(extra="forbid") to reject unexpected fields.
"""

import uuid

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from heartguide.core.phone import is_valid_e164, to_e164
from heartguide.models.user import User
from heartguide.models.user_settings import UserSettings

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)
_CAMEL_STRICT = ConfigDict(
    alias_generator=to_camel, populate_by_name=True, extra="forbid"
)


def normalize_phone_input(value: str | None) -> str | None:
    """Validate a phone number from a request body and return it as E.164.

    The number must carry a country code ("+1-5551234567",
    "+1 555 123 4567", "+15551234567"); separators are dropped.

    Raises:
        ValueError: If the number is not usable.
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if not value.startswith("+"):
        msg = "phone must include a country code, e.g. +1-5551234567"
        raise ValueError(msg)
    phone = to_e164(value)
    if not is_valid_e164(phone):
        msg = "phone is not a valid international number"
        raise ValueError(msg)
    return phone


class UserOut(BaseModel):
    """Public view of a user."""

    model_config = _CAMEL

    id: uuid.UUID
    email: str
    name: str | None
    phone: str | None
    role: str
    email_verified: bool
    phone_verified: bool
    image: str | None

    @classmethod
    def from_user(cls, user: User) -> "UserOut":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            phone=user.phone,
            role=user.role,
            email_verified=user.email_verified,
            phone_verified=user.phone_verified,
            image=user.image,
        )


class ProfileUpdate(BaseModel):
    """Request body for PATCH /users/me/profile."""

    model_config = _CAMEL_STRICT

    name: str | None = Field(None, min_length=1, max_length=255)
    phone: str | None = Field(None, max_length=25)

    @field_validator("phone")
    @classmethod
    def _check_phone(cls, v: str | None) -> str | None:
        return normalize_phone_input(v)


class NotificationPreferences(BaseModel):
    model_config = _CAMEL_STRICT

    email: bool = True
    sms: bool = False
    app: bool = True


class PrivacySettings(BaseModel):
    model_config = _CAMEL_STRICT

    data_sharing: bool = True
    anonymous_data_collection: bool = True


class UserSettingsPayload(BaseModel):
    """Settings body, used for both GET and PUT /users/me/settings."""

    model_config = _CAMEL_STRICT

    two_factor_enabled: bool = False
    two_factor_method: str = "email"
    notification_preferences: NotificationPreferences = Field(
        default_factory=NotificationPreferences
    )
    privacy_settings: PrivacySettings = Field(default_factory=PrivacySettings)

    @field_validator("two_factor_method")
    @classmethod
    def _check_method(cls, v: str) -> str:
        if v not in ("email", "sms"):
            msg = "twoFactorMethod must be 'email' or 'sms'"
            raise ValueError(msg)
        return v

    @classmethod
    def from_row(cls, row: UserSettings) -> "UserSettingsPayload":
        return cls(
            two_factor_enabled=row.two_factor_enabled,
            two_factor_method=row.two_factor_method,
            notification_preferences=NotificationPreferences(
                email=row.notify_email, sms=row.notify_sms, app=row.notify_app
            ),
            privacy_settings=PrivacySettings(
                data_sharing=row.data_sharing,
                anonymous_data_collection=row.anonymous_data_collection,
            ),
        )

    def to_columns(self) -> dict[str, bool | str]:
        """Flatten into UserSettings column values."""
        return {
            "two_factor_enabled": self.two_factor_enabled,
            "two_factor_method": self.two_factor_method,
            "notify_email": self.notification_preferences.email,
            "notify_sms": self.notification_preferences.sms,
            "notify_app": self.notification_preferences.app,
            "data_sharing": self.privacy_settings.data_sharing,
            "anonymous_data_collection": self.privacy_settings.anonymous_data_collection,
        }
