"""
Codezoo configuration: all environment variables in one place.

Read from environment at runtime. Never hardcode secrets.
"""

from __future__ import annotations

import os


class Settings:
    """Application settings from environment variables."""

    # Database
    DATABASE_URL: str = os.environ.get("DATABASE_URL", "")

    # Auth
    JWT_SECRET: str = os.environ.get("JWT_SECRET", "")
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRY_HOURS: int = int(os.environ.get("JWT_EXPIRY_HOURS", "720"))
    BCRYPT_ROUNDS: int = int(os.environ.get("BCRYPT_ROUNDS", "12"))
    LOGIN_RATE_LIMIT_PER_IP: int = 20  # per hour

    # Preprocessors
    NODE_BINARY: str = os.environ.get("NODE_BINARY", "node")
    COMPILE_TIMEOUT_SECONDS: float = float(os.environ.get("COMPILE_TIMEOUT_SECONDS", "10"))

    # Editor timing
    PREVIEW_DEBOUNCE_MS: int = int(os.environ.get("PREVIEW_DEBOUNCE_MS", "350"))
    AUTOSAVE_DELAY_MS: int = int(os.environ.get("AUTOSAVE_DELAY_MS", "4000"))

    # Application
    ENVIRONMENT: str = os.environ.get("ENVIRONMENT", "development")

    @property
    def COOKIE_SECURE(self) -> bool:
        return self.ENVIRONMENT != "development"


# Singleton instance
settings = Settings()

if not settings.DATABASE_URL:
    raise RuntimeError("DATABASE_URL environment variable is required")
if not settings.JWT_SECRET:
    raise RuntimeError("JWT_SECRET environment variable is required")
