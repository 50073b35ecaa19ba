"""Response body models.

Success bodies carry ``success: true`` plus a human-readable message and
any endpoint-specific fields; error bodies carry ``success: false`` with a
machine-readable code.
"""

from pydantic import BaseModel, ConfigDict


class MessageResponse(BaseModel):
    """Generic success body.

    Attributes:
        success: Always True for this model.
        message: Human-readable outcome.
    """

    success: bool = True
    message: str


class FailureResponse(BaseModel):
    """Expected failure body for flows that report ``success: false``
    without an error code (verify-otp).
    """

    success: bool = False
    message: str


class ErrorResponse(BaseModel):
    """Standard error body.

    Usage in exception handlers:
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(code=exc.code, message=exc.message).model_dump(
                exclude_none=True
            ),
        )

    Attributes:
        success: Always False.
        code: Machine-readable error code (e.g., "NOT_FOUND").
        message: Human-readable error message.
        details: Optional list of field-level errors (for validation).
    """

    model_config = ConfigDict(frozen=True)

    success: bool = False
    code: str
    message: str
    details: list[dict] | None = None
