"""API error classes.

Every failure a route can report maps to one of these classes. The
exception handlers in main.py turn them into the standard error body:

    {"success": false, "code": "...", "message": "...", "details": [...]}

OAuth errors never reach the JSON handlers: the OAuth routes catch
OAuthFlowError and redirect the browser to the login page with the
error slug instead.
"""


class APIError(Exception):
    """Base class for API errors.

    All API errors have a code, message, and HTTP status.
    Subclasses set default status_code.

    Attributes:
        code: Machine-readable error code (e.g., "NOT_FOUND").
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationError(APIError):
    """Field validation failed (400).

    Use for request body validation errors, query param errors, etc.
    """

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=400,
            details=details,
        )


class UnauthorizedError(APIError):
    """Authentication required (401).

    Use when no valid session cookie is provided.
    """

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401,
        )


class ForbiddenError(APIError):
    """Not allowed to access resource (403).

    Use when the session is valid but the user lacks permission.
    """

    def __init__(self, message: str = "Access denied") -> None:
        super().__init__(
            code="FORBIDDEN",
            message=message,
            status_code=403,
        )


class AdminRequiredError(ForbiddenError):
    """Admin access required (403).

    Raised by the require_admin dependency when the user's stored role
    is not "admin". The is_admin cookie is never consulted.
    """

    def __init__(self) -> None:
        APIError.__init__(
            self,
            code="ADMIN_REQUIRED",
            message="Admin access required",
            status_code=403,
        )


class NotFoundError(APIError):
    """Resource not found (404)."""

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        if resource_id:
            message = f"{resource} with id '{resource_id}' not found"
        else:
            message = f"{resource} not found"
        super().__init__(
            code="NOT_FOUND",
            message=message,
            status_code=404,
        )


class ConflictError(APIError):
    """Duplicate or conflicting resource (409).

    Accepts custom code for specific conflict types
    (e.g., EMAIL_ALREADY_EXISTS).
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details,
        )


# =============================================================================
# One-time codes and reset tokens
# =============================================================================


class InvalidCodeError(APIError):
    """Submitted verification code did not match a live code (400)."""

    def __init__(self, message: str = "Invalid verification code") -> None:
        super().__init__(
            code="INVALID_CODE",
            message=message,
            status_code=400,
        )


class UserNotFoundError(InvalidCodeError):
    """Identifier did not resolve to a user (400).

    Renders exactly like InvalidCodeError so callers cannot tell an unknown
    email or phone apart from a wrong code.
    """


class ExpiredCodeError(APIError):
    """Submitted code matched a code that has expired (400)."""

    def __init__(self) -> None:
        super().__init__(
            code="EXPIRED_CODE",
            message="Verification code has expired. Please request a new one.",
            status_code=400,
        )


class InvalidResetTokenError(APIError):
    """Password reset token is unknown, used, or expired (400)."""

    def __init__(self) -> None:
        super().__init__(
            code="INVALID_RESET_TOKEN",
            message="Invalid or expired reset token",
            status_code=400,
        )


class CodeCooldownError(APIError):
    """A code was requested again before the resend cooldown elapsed (429).

    Args:
        retry_after: Seconds until another code may be requested.
    """

    def __init__(self, retry_after: int) -> None:
        self.retry_after = retry_after
        super().__init__(
            code="RATE_LIMITED",
            message="Please wait before requesting another code",
            status_code=429,
            details=[{"retry_after_seconds": retry_after}],
        )


class UpstreamFailureError(APIError):
    """Email, SMS, OAuth provider, or database call failed (500).

    The client may retry; nothing is retried server-side.
    """

    def __init__(
        self, message: str = "A downstream service failed. Please try again."
    ) -> None:
        super().__init__(
            code="UPSTREAM_FAILURE",
            message=message,
            status_code=500,
        )


class InternalError(APIError):
    """Unexpected server error (500).

    Use for unhandled exceptions. Never expose stack traces to clients.
    """

    def __init__(self, message: str = "An unexpected error occurred") -> None:
        super().__init__(
            code="INTERNAL_ERROR",
            message=message,
            status_code=500,
        )


# =============================================================================
# OAuth flow
# =============================================================================


class OAuthFlowError(Exception):
    """Base class for OAuth failures that end in a login-page redirect.

    Attributes:
        slug: Value for the ?error= query parameter on the login page.
    """

    slug = "oauth_failed"


class UnsupportedProviderError(OAuthFlowError):
    """Provider name is not one of google, github, facebook."""

    slug = "unsupported_provider"


class ProviderNotConfiguredError(OAuthFlowError):
    """Provider client id or secret is missing from the environment."""

    slug = "provider_not_configured"


class StateMismatchError(OAuthFlowError):
    """Callback state does not match the signed state cookie."""

    slug = "invalid_state"


class OAuthExchangeError(OAuthFlowError):
    """Token exchange or profile fetch with the provider failed."""

    slug = "oauth_failed"


class OAuthAccountConflictError(OAuthFlowError):
    """Provider email belongs to a local account that cannot be linked."""

    slug = "account_conflict"


class OAuthEmailMissingError(OAuthFlowError):
    """Provider did not share an email address for the user."""

    slug = "email_required"
