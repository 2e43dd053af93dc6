"""
Wingmann Engine - Download Gate

Shared-secret check protecting bulk export retrieval.

The key is compared for exact equality against DOWNLOAD_KEY. A missing key
and a wrong key are reported differently (401 vs 403). There is no hashing,
rate limiting or rotation.
"""

import secrets
from enum import Enum

from fastapi import Depends, Header, Query
from loguru import logger

from ..config import Settings, get_settings
from .errors import InvalidCredentialError, MissingCredentialError


class DownloadAuth(str, Enum):
    """Outcome of a download gate check."""

    AUTHORIZED = "authorized"
    UNAUTHORIZED = "unauthorized"  # no credential supplied
    FORBIDDEN = "forbidden"  # credential supplied but wrong


def _mask(value: str) -> str:
    return "***" + value[-3:]


def authorize(provided: str | None, expected: str | None) -> DownloadAuth:
    """
    Compare a caller-supplied token against the configured secret.

    An empty string counts as no token. When no secret is configured,
    every supplied token is forbidden.
    """
    if not provided:
        return DownloadAuth.UNAUTHORIZED

    if not expected:
        return DownloadAuth.FORBIDDEN

    if secrets.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        return DownloadAuth.AUTHORIZED

    return DownloadAuth.FORBIDDEN


async def require_download_key(
    key: str | None = Query(default=None),
    x_download_key: str | None = Header(default=None, alias="X-Download-Key"),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    FastAPI dependency guarding /api/download.

    The `key` query parameter wins over the X-Download-Key header.

    Raises:
        MissingCredentialError: 401 if no key was supplied
        InvalidCredentialError: 403 if the key does not match
    """
    provided = key or x_download_key
    logger.info(
        "Download attempt - provided key: {}",
        _mask(provided) if provided else "NONE",
    )

    outcome = authorize(provided, settings.download_key)

    if outcome is DownloadAuth.UNAUTHORIZED:
        logger.warning("Access denied: no key provided")
        raise MissingCredentialError(
            "Download key required. Use ?key=your-secret-key or set X-Download-Key header."
        )

    if outcome is DownloadAuth.FORBIDDEN:
        if not settings.download_key:
            logger.warning("Access denied: DOWNLOAD_KEY is not configured")
        else:
            logger.warning("Access denied: invalid key")
        raise InvalidCredentialError("Invalid download key.")

    logger.debug("Access granted: valid key")
