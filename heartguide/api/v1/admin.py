"""Admin API router.

All endpoints require the AdminUser dependency, which checks the role
stored on the user row.
"""

from fastapi import APIRouter

from heartguide.api.deps import AdminUser, Notifications, OAuth
from heartguide.core.oauth import SUPPORTED_PROVIDERS

router = APIRouter()


@router.get("/notification-status")
async def notification_status(
    _admin: AdminUser,
    notifications: Notifications,
    oauth: OAuth,
) -> dict:
    """Report which email, SMS, and OAuth integrations are configured.

    Never includes credential values.
    """
    return {
        "success": True,
        "channels": notifications.status(),
        "oauth": {p: oauth.is_configured(p) for p in SUPPORTED_PROVIDERS},
    }
