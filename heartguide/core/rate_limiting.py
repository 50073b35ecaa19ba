"""Rate limiting configuration using slowapi.

Security: Slows down credential stuffing, code guessing, and email/SMS
flooding on the unauthenticated auth endpoints.

Requests carrying a session cookie are keyed per session; everything else
is keyed per client IP. The limiter is switched on or off by create_app()
from Settings.rate_limit_enabled.

Usage in routers:
    from heartguide.core.rate_limiting import limiter

    @router.post("/login")
    @limiter.limit("10/15minute")
    async def login(request: Request, ...):
        ...
"""

import hashlib

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from heartguide.core.responses import ErrorResponse

_SESSION_COOKIE_FALLBACK = "session"


def _rate_limit_key_func(request: Request) -> str:
    """Get rate limit key from request.

    Key format:
    - Session cookie present: "session:{digest prefix}"
    - Otherwise: "ip:{address}"

    The cookie is not validated here; authenticated endpoints reject bad
    sessions in their own dependencies, and stripping the cookie only
    moves the caller into the per-IP bucket.

    Args:
        request: The incoming request.

    Returns:
        Rate limit key string.
    """
    settings = getattr(request.app.state, "settings", None)
    cookie_name = (
        settings.session_cookie_name if settings else _SESSION_COOKIE_FALLBACK
    )
    token = request.cookies.get(cookie_name)
    if token:
        digest = hashlib.sha256(token.encode()).hexdigest()[:16]
        return f"session:{digest}"
    return f"ip:{get_remote_address(request)}"


# Global limiter instance
# Configured with in-memory storage (suitable for single-instance deployment)
# For multi-instance, configure Redis storage via RATELIMIT_STORAGE_URL
limiter = Limiter(key_func=_rate_limit_key_func)


def rate_limit_exceeded_handler(
    _request: Request,
    exc: RateLimitExceeded,
) -> Response:
    """Handle rate limit exceeded errors.

    Security: Returns 429 Too Many Requests with standard error body.

    Args:
        request: The incoming request.
        exc: The rate limit exception.

    Returns:
        JSONResponse with 429 status and retry-after header.
    """
    # Parse retry-after from exception detail (e.g., "10 per 1 minute")
    # Fallback to 60 seconds if parsing fails
    try:
        retry_after = str(exc.detail.split()[-1])
        int(retry_after.rstrip("s"))
    except (ValueError, AttributeError, IndexError):
        retry_after = "60"

    return JSONResponse(
        status_code=429,
        content=ErrorResponse(
            code="RATE_LIMITED",
            message=f"Rate limit exceeded: {exc.detail}",
        ).model_dump(exclude_none=True),
        headers={"Retry-After": retry_after},
    )
