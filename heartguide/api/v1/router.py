"""API v1 router aggregator.

All v1 endpoint routers are included here and mounted at /api/v1.
"""

from fastapi import APIRouter

from heartguide.api.v1 import admin, auth, auth_oauth, auth_verification, users

router = APIRouter()

# =============================================================================
# Authentication
# =============================================================================

_AUTH_PREFIX = "/auth"

router.include_router(auth.router, prefix=_AUTH_PREFIX, tags=["auth"])
router.include_router(auth_verification.router, prefix=_AUTH_PREFIX, tags=["auth"])

# =============================================================================
# Users and admin
# =============================================================================

router.include_router(users.router, prefix="/users", tags=["users"])
router.include_router(admin.router, prefix="/admin", tags=["admin"])

# =============================================================================
# OAuth (last: "/auth/{provider}" must not shadow fixed auth routes)
# =============================================================================

router.include_router(auth_oauth.router, prefix=_AUTH_PREFIX, tags=["auth"])
