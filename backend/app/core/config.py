"""Application configuration management using Pydantic Settings.

This module provides centralized configuration for the DentalDesk backend,
supporting environment variables and .env files for different deployment environments.
"""

import secrets
import sys
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Get the backend directory (parent of app/ directory)
BACKEND_DIR = Path(__file__).parent.parent.parent
ENV_FILE = BACKEND_DIR / ".env"

# Load environment variables from .env file
load_dotenv(ENV_FILE)


def _generate_dev_secret_key() -> str:
    """Generate a temporary secret key for development ONLY."""
    return f"dev-only-insecure-{secrets.token_hex(24)}"


INSECURE_KEY_MARKERS = ("change-this", "your-secret", "dev-only", "changeme", "placeholder")
MIN_SECRET_KEY_LENGTH = 32


def _is_insecure_key(key: str) -> bool:
    """Empty, short, or an obvious placeholder."""
    if len(key) < MIN_SECRET_KEY_LENGTH:
        return True
    return any(marker in key.lower() for marker in INSECURE_KEY_MARKERS)


class AttachmentSettings(BaseSettings):
    """Configuration for patient attachment storage.

    Exactly one storage mode is active per deployment:

    - ``reference``: bytes are written under ``storage_dir`` and the database
      row keeps only the stored file name.
    - ``inline``: bytes are persisted in the attachment row itself.
    """

    model_config = SettingsConfigDict(env_prefix="ATTACHMENT_")

    storage_mode: Literal["reference", "inline"] = Field(
        default="reference", description="Attachment storage strategy"
    )
    storage_dir: Path = Field(
        default=Path("./uploads"), description="Root directory for stored attachment files"
    )
    max_file_size_mb: float = Field(
        default=10.0, gt=0, le=1024, description="Maximum size of a single attachment in MB"
    )
    field_name: str = Field(
        default="file",
        min_length=1,
        max_length=32,
        description="Field discriminator used in stored file names",
    )
    serve_static: bool = Field(
        default=True, description="Expose storage_dir read-only at /uploads (reference mode)"
    )

    @property
    def max_file_size_bytes(self) -> int:
        """Maximum attachment size in bytes."""
        return int(self.max_file_size_mb * 1024 * 1024)


class DatabaseSettings(BaseSettings):
    """Database configuration settings."""

    model_config = SettingsConfigDict(env_prefix="DB_")

    driver: str = Field(default="postgresql+asyncpg", description="Database driver")
    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    user: str = Field(default="dentaldesk", description="Database user")
    password: str = Field(default="", description="Database password")
    name: str = Field(default="dentaldesk", description="Database name")
    pool_size: int = Field(default=10, ge=1, le=100, description="Connection pool size")
    max_overflow: int = Field(default=20, ge=0, le=100, description="Max pool overflow")

    @property
    def url(self) -> str:
        """Get database connection URL."""
        if self.driver.startswith("sqlite"):
            return f"{self.driver}:///{self.name}"
        return f"{self.driver}://{self.user}:{self.password}@{self.host}:{self.port}/{self.name}"


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    app_name: str = Field(default="DentalDesk", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Deployment environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server settings
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=4000, ge=1, le=65535, description="Server port")
    workers: int = Field(default=2, ge=1, le=32, description="Number of workers")

    # Security settings
    secret_key: str = Field(
        default="",
        description="Secret key for JWT tokens",
    )
    access_token_expire_minutes: int = Field(default=60, ge=5, description="Token expiration")
    algorithm: str = Field(default="HS256", description="JWT algorithm")

    # CORS settings
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins",
    )
    cors_allow_credentials: bool = Field(default=True, description="Allow CORS credentials")

    # Startup behaviour
    init_default_users: bool = Field(
        default=False, description="Create default users on startup even in production"
    )
    enable_demo_data: bool = Field(default=False, description="Seed demo patients on startup")

    # Nested settings
    attachments: AttachmentSettings = Field(default_factory=AttachmentSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @model_validator(mode="after")
    def validate_settings(self) -> "Settings":
        """Refuse unsafe production settings; patch up development ones."""
        if _is_insecure_key(self.secret_key):
            if self.is_production:
                _banner(
                    "=",
                    "FATAL ERROR: SECRET_KEY is not configured for production!",
                    "JWT access tokens for clinic staff are signed with this key.",
                    "Generate one with `openssl rand -hex 32` and set SECRET_KEY",
                    "in the environment or in backend/.env.",
                )
                raise ValueError("SECRET_KEY must be set to a secure value in production")
            object.__setattr__(self, "secret_key", _generate_dev_secret_key())
            _banner(
                "!",
                "WARNING: Using auto-generated temporary SECRET_KEY for development!",
                "Tokens become invalid on every restart. Add SECRET_KEY to",
                "backend/.env to keep sessions across restarts.",
            )

        if self.is_production:
            if self.debug:
                raise ValueError("Debug mode must be disabled in production (DEBUG=false)")
            if self.enable_demo_data:
                raise ValueError(
                    "Demo data must be disabled in production (ENABLE_DEMO_DATA=false)"
                )

        return self


def _banner(rule: str, title: str, *lines: str) -> None:
    bar = rule * 70
    print("\n".join(["", bar, title, bar, *lines, bar]), file=sys.stderr)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
