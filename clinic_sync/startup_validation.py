"""
Startup validation for required environment variables.

Uses Pydantic Settings for centralized, testable validation. Missing values
are logged; only production refuses to start.
"""
import os
import sys
import logging
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class EnvironmentSettings(BaseSettings):
    """Validated environment configuration."""

    SUPABASE_URL: str
    SUPABASE_SERVICE_ROLE_KEY: str

    GOOGLE_CLIENT_ID: str
    GOOGLE_CLIENT_SECRET: str

    JWT_SECRET: str = ""

    CALENDAR_TIMEZONE: str = "America/Argentina/Buenos_Aires"

    ENVIRONMENT: str = "development"

    @field_validator('JWT_SECRET')
    @classmethod
    def validate_jwt_secret_in_prod(cls, v: str) -> str:
        if not v and os.getenv("ENVIRONMENT", "development") == "production":
            raise ValueError("JWT_SECRET must be set in production")
        return v

    @field_validator('CALENDAR_TIMEZONE')
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


def validate_environment() -> bool:
    """
    Validate environment configuration at startup.
    Returns True if valid, logs errors and returns False otherwise.

    Note: Never log actual secret values, only variable names.
    """
    try:
        EnvironmentSettings()
        logger.info("Environment validation passed")
        return True
    except Exception as e:
        logger.error(f"Startup validation failed: {e}")
        return False


def validate_or_exit(environment: Optional[str] = None):
    """Validate environment; exit in production if it is invalid."""
    environment = environment or os.getenv("ENVIRONMENT", "development")
    if not validate_environment() and environment == "production":
        logger.critical("Application cannot start with invalid configuration")
        sys.exit(1)
