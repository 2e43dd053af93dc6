"""
Wingmann Engine - Core Module

Contains the download gate, error taxonomy, logging and middleware.
"""

from .errors import (
    AuthError,
    ErrorResponse,
    InvalidCredentialError,
    MissingCredentialError,
    NotFoundError,
    StorageError,
    StorageWriteError,
    ValidationError,
    WingmannError,
    setup_error_handlers,
)
from .middleware import RequestLoggingMiddleware, get_request_id
from .security import DownloadAuth, authorize, require_download_key

__all__ = [
    # Download gate
    "DownloadAuth",
    "authorize",
    "require_download_key",
    # Middleware
    "RequestLoggingMiddleware",
    "get_request_id",
    # Errors
    "ErrorResponse",
    "WingmannError",
    "ValidationError",
    "AuthError",
    "MissingCredentialError",
    "InvalidCredentialError",
    "NotFoundError",
    "StorageError",
    "StorageWriteError",
    "setup_error_handlers",
]
