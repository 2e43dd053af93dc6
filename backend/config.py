"""
Wingmann Engine - Configuration

SINGLE SOURCE OF TRUTH for runtime configuration.

ENVIRONMENT VARIABLES:
----------------------
Security:
  DOWNLOAD_KEY              - Shared secret for /api/download (REQUIRED in prod)

Storage:
  STORAGE_BACKEND           - local | supabase (default: local)
  DATA_DIR                  - Directory for the local backend (default: ./data)
  STORAGE_BUCKET            - Bucket for the supabase backend
                              (default: wingmann-submissions)
  SUPABASE_URL              - Supabase project REST URL (supabase backend only)
  SUPABASE_SERVICE_ROLE_KEY - Service role key (supabase backend only)

Server:
  ENVIRONMENT               - dev | staging | prod (default: dev)
  LOG_LEVEL                 - DEBUG | INFO | WARNING | ERROR (default: INFO)
  HOST                      - Bind address (default: 0.0.0.0)
  PORT                      - Bind port (default: 3000)
  CORS_ORIGINS              - Comma-separated origins (default: *)

Values are read from os.environ first, then from a local .env file.

Usage:
------
    from backend.config import get_settings

    settings = get_settings()
    print(settings.storage_backend)
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Placeholder shipped in old deployment docs; never valid in prod
PLACEHOLDER_DOWNLOAD_KEY = "YOUR_SECRET_KEY_HERE"


class Settings(BaseSettings):
    """
    Application settings.

    Field names are the environment variable names (case-insensitive).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================================================================
    # ENVIRONMENT CONTROL
    # =========================================================================

    ENVIRONMENT: Literal["dev", "staging", "prod"] = Field(
        default="dev",
        description="Deployment environment",
    )
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )

    # =========================================================================
    # DOWNLOAD GATE
    # =========================================================================

    DOWNLOAD_KEY: str | None = Field(default=None)

    # =========================================================================
    # STORAGE
    # =========================================================================

    STORAGE_BACKEND: Literal["local", "supabase"] = Field(
        default="local",
        description="Blob store backend",
    )
    DATA_DIR: str = Field(default="./data")
    STORAGE_BUCKET: str = Field(default="wingmann-submissions")
    SUPABASE_URL: str = Field(default="")
    SUPABASE_SERVICE_ROLE_KEY: str = Field(default="")

    # =========================================================================
    # SERVER CONFIGURATION
    # =========================================================================

    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=3000)
    CORS_ORIGINS: str | None = Field(default=None)

    @field_validator("ENVIRONMENT", mode="before")
    @classmethod
    def _normalize_environment(cls, value: Any) -> Any:
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in {"production", "prod"}:
                return "prod"
            if lowered in {"development", "dev", "local", ""}:
                return "dev"
            return lowered
        return value

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("DOWNLOAD_KEY", mode="before")
    @classmethod
    def _blank_key_is_unset(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    # =========================================================================
    # PROPERTY ALIASES
    # =========================================================================

    @property
    def environment(self) -> str:
        return self.ENVIRONMENT

    @property
    def log_level(self) -> str:
        return self.LOG_LEVEL

    @property
    def download_key(self) -> str | None:
        return self.DOWNLOAD_KEY

    @property
    def storage_backend(self) -> str:
        return self.STORAGE_BACKEND

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "prod"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "dev"

    @property
    def cors_allowed_origins(self) -> list[str]:
        """Parse CORS_ORIGINS into a list. Unset means any origin."""
        if self.CORS_ORIGINS:
            raw = self.CORS_ORIGINS.replace(",", " ")
            origins = [o.strip().rstrip("/") for o in raw.split() if o.strip()]
            if origins:
                return origins
        return ["*"]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()  # type: ignore[call-arg]


def reset_settings() -> None:
    """Clear the cached settings (for testing)."""
    get_settings.cache_clear()


# =========================================================================
# LOGGING CONFIGURATION
# =========================================================================


def configure_logging(settings: Settings | None = None) -> None:
    """
    Configure application logging based on settings.

    In production, uses structured JSON logging for observability.
    In development, uses colored console output.
    """
    if settings is None:
        settings = get_settings()

    from backend.core.logging import configure_structured_logging

    configure_structured_logging(
        level=settings.LOG_LEVEL,
        json_output=settings.is_production,
        service_name="wingmann",
    )

    # Quiet noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# =========================================================================
# STARTUP VALIDATION
# =========================================================================


def validate_required_env(
    settings: Settings | None = None, fail_fast: bool = True
) -> dict[str, Any]:
    """
    Validate configuration and log a startup report.

    Args:
        settings: Settings to check (defaults to get_settings())
        fail_fast: If True, raise when a required value is missing

    Returns:
        Dict with validation results:
        {
            "valid": bool,
            "missing": ["VAR1"],
            "warnings": ["message1", "message2"],
        }

    Raises:
        RuntimeError: If fail_fast=True and required values are missing
    """
    if settings is None:
        settings = get_settings()

    result: dict[str, Any] = {"valid": True, "missing": [], "warnings": []}

    key = settings.DOWNLOAD_KEY
    if not key or key == PLACEHOLDER_DOWNLOAD_KEY:
        if settings.is_production:
            result["missing"].append("DOWNLOAD_KEY")
        else:
            result["warnings"].append(
                "DOWNLOAD_KEY not set - /api/download will reject every key"
            )

    if settings.STORAGE_BACKEND == "supabase":
        for var in ("SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY"):
            if not getattr(settings, var).strip():
                result["missing"].append(var)
        if "STORAGE_BUCKET" not in os.environ:
            result["warnings"].append(
                f"STORAGE_BUCKET not set, using default {settings.STORAGE_BUCKET!r}"
            )

    if result["missing"]:
        result["valid"] = False

    for warning in result["warnings"]:
        logger.warning(warning)

    if not result["valid"]:
        message = "Missing required configuration: " + ", ".join(result["missing"])
        logger.critical(message)
        if fail_fast:
            raise RuntimeError(message)

    return result
