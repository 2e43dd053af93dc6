"""
Wingmann Engine - Error Handling

Structured error responses for API consistency.
Client errors (4xx) are terminal and never retried; server errors (5xx)
never leak internals to the client.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from .middleware import get_request_id

logger = logging.getLogger(__name__)


# =============================================================================
# Error Response Models
# =============================================================================


class ErrorDetail(BaseModel):
    """Detailed error information."""

    field: str | None = None
    message: str
    code: str | None = None


class ErrorResponse(BaseModel):
    """
    Standardized error response format.

    All API errors return this structure for consistency.
    """

    success: bool = False
    error: str  # Machine-readable error code
    message: str  # Human-readable error message
    status_code: int
    request_id: str | None = None
    details: list[ErrorDetail] | None = None


# =============================================================================
# Error Codes
# =============================================================================

# Client errors (4xx)
ERROR_VALIDATION = "validation_error"
ERROR_UNAUTHORIZED = "unauthorized"
ERROR_FORBIDDEN = "forbidden"
ERROR_NOT_FOUND = "not_found"
ERROR_BAD_REQUEST = "bad_request"
ERROR_METHOD_NOT_ALLOWED = "method_not_allowed"

# Server errors (5xx)
ERROR_INTERNAL = "internal_error"
ERROR_STORAGE = "storage_error"


# =============================================================================
# Exceptions
# =============================================================================


class WingmannError(Exception):
    """Base exception for Wingmann business logic errors."""

    def __init__(
        self,
        message: str,
        error_code: str = ERROR_INTERNAL,
        status_code: int = 500,
        details: list[ErrorDetail] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details


class ValidationError(WingmannError):
    """Submitted payload is missing required data."""

    def __init__(self, message: str, details: list[ErrorDetail] | None = None):
        super().__init__(
            message=message,
            error_code=ERROR_VALIDATION,
            status_code=400,
            details=details,
        )


class AuthError(WingmannError):
    """Download gate rejected the request."""


class MissingCredentialError(AuthError):
    """No download key supplied."""

    def __init__(self, message: str = "Download key required."):
        super().__init__(
            message=message,
            error_code=ERROR_UNAUTHORIZED,
            status_code=401,
        )


class InvalidCredentialError(AuthError):
    """Download key supplied but wrong."""

    def __init__(self, message: str = "Invalid download key."):
        super().__init__(
            message=message,
            error_code=ERROR_FORBIDDEN,
            status_code=403,
        )


class NotFoundError(WingmannError):
    """Resource not found."""

    def __init__(self, message: str = "Resource not found"):
        super().__init__(
            message=message,
            error_code=ERROR_NOT_FOUND,
            status_code=404,
        )


class StorageError(WingmannError):
    """Blob store operation failed."""

    def __init__(self, message: str = "Storage operation failed"):
        super().__init__(
            message=message,
            error_code=ERROR_STORAGE,
            status_code=500,
        )


class StorageWriteError(StorageError):
    """Canonical record list could not be persisted."""

    def __init__(self, message: str = "Error saving data"):
        super().__init__(message=message)


# =============================================================================
# Exception Handlers
# =============================================================================


def create_error_response(
    status_code: int,
    error: str,
    message: str,
    details: list[ErrorDetail] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Create a standardized error response."""
    request_id = get_request_id()

    response = ErrorResponse(
        error=error,
        message=message,
        status_code=status_code,
        request_id=request_id if request_id else None,
        details=details,
    )

    return JSONResponse(
        status_code=status_code,
        content=response.model_dump(exclude_none=True),
        headers=headers,
    )


async def wingmann_error_handler(request: Request, exc: WingmannError) -> JSONResponse:
    """Render a WingmannError with its own status and code."""
    if exc.status_code >= 500:
        logger.error(
            f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}",
            extra={
                "request_id": get_request_id(),
                "path": request.url.path,
                "status_code": exc.status_code,
                "error_code": exc.error_code,
            },
        )

    return create_error_response(
        status_code=exc.status_code,
        error=exc.error_code,
        message=exc.message,
        details=exc.details,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Map standard HTTP errors (404 route, 405 method) to our error format."""
    error_map = {
        400: ERROR_BAD_REQUEST,
        401: ERROR_UNAUTHORIZED,
        403: ERROR_FORBIDDEN,
        404: ERROR_NOT_FOUND,
        405: ERROR_METHOD_NOT_ALLOWED,
    }
    error_code = error_map.get(exc.status_code, ERROR_INTERNAL)

    if isinstance(exc.detail, dict):
        message = exc.detail.get("message", str(exc.detail))
    else:
        message = str(exc.detail)

    return create_error_response(
        status_code=exc.status_code,
        error=error_code,
        message=message,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Handle request parsing errors (malformed JSON, wrong field types).

    Reported as 400 so all client-caused submission failures share one status.
    """
    details = []
    for error in exc.errors():
        loc = error.get("loc", [])
        field = ".".join(str(x) for x in loc) if loc else None
        details.append(
            ErrorDetail(
                field=field,
                message=error.get("msg", "Validation error"),
                code=error.get("type", "validation"),
            )
        )

    logger.warning(
        f"Validation error on {request.url.path}: {len(details)} errors",
        extra={"request_id": get_request_id(), "path": request.url.path},
    )

    return create_error_response(
        status_code=status.HTTP_400_BAD_REQUEST,
        error=ERROR_VALIDATION,
        message="Request validation failed",
        details=details,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Catch-all handler for unhandled exceptions.

    Logs the full traceback but returns a generic error to the client.
    """
    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {exc}",
        extra={
            "request_id": get_request_id(),
            "path": request.url.path,
            "method": request.method,
        },
        exc_info=True,
    )

    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        error=ERROR_INTERNAL,
        message="An unexpected error occurred. Please try again later.",
    )


def setup_error_handlers(app: FastAPI) -> None:
    """
    Register all error handlers with the FastAPI app.

    Call this in create_app() after creating the FastAPI instance.
    """
    app.add_exception_handler(WingmannError, wingmann_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, generic_exception_handler)

    logger.info("Error handlers registered")
