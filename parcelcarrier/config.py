"""Configuration loading for the Parcel & Carrier logistics system.

This module provides centralized configuration management:
- Load settings from environment variables and .env files
- Validate configuration using pydantic
- Provide typed access to all settings
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment.

    Uses pydantic-settings for environment variable handling with
    .env file support via python-dotenv.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Store configuration
    store_backend: Literal["sqlite", "postgresql"] = Field(
        default="sqlite",
        description="Package/account store backend type",
    )
    store_sqlite_path: str = Field(
        default="./data/parcelcarrier.db",
        description="SQLite database file path",
    )
    database_url: str = Field(
        default="",
        description="PostgreSQL connection URL",
    )

    # Session tokens
    token_secret: str = Field(
        ...,
        description="HMAC secret used to sign session tokens",
    )
    token_issuer: str = Field(
        default="parcel-and-carrier-api",
        description="Issuer claim written into and required from session tokens",
    )
    token_ttl_seconds: int = Field(
        default=86400,
        description="Session token lifetime in seconds",
    )

    # Password hashing
    password_hash_iterations: int = Field(
        default=260000,
        description="PBKDF2 iteration count for new password hashes",
    )

    # Bootstrap
    bootstrap_admin: bool = Field(
        default=True,
        description="Create the default admin account at start if missing",
    )
    admin_login: str = Field(
        default="admin",
        description="Login of the default admin account",
    )
    admin_password: str = Field(
        default="admin123",
        description="Password of the default admin account",
    )

    # Queries
    default_page_size: int = Field(
        default=10,
        description="Page size used when a request does not give one",
    )
    max_page_size: int = Field(
        default=100,
        description="Upper bound on requested page sizes",
    )

    # Lifecycle
    strict_status_transitions: bool = Field(
        default=False,
        description="Reject package status moves outside the delivery graph",
    )

    # HTTP API
    api_host: str = Field(
        default="0.0.0.0",
        description="Host to listen on for the HTTP API",
    )
    api_port: int = Field(
        default=8080,
        description="Port to listen on for the HTTP API",
    )
    max_body_bytes: int = Field(
        default=1024 * 1024,
        description="Largest accepted request body in bytes",
    )

    # Logging configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Log level",
    )
    log_format: Literal["json", "text"] = Field(
        default="text",
        description="Log format",
    )

    @field_validator("token_secret")
    @classmethod
    def validate_token_secret(cls, v: str) -> str:
        """Ensure the signing secret is present."""
        if not v or not v.strip():
            raise ValueError("token_secret must be a non-empty string")
        return v

    @field_validator("token_ttl_seconds")
    @classmethod
    def validate_token_ttl(cls, v: int) -> int:
        """Ensure token lifetime is positive."""
        if v <= 0:
            raise ValueError("token_ttl_seconds must be positive")
        return v

    @field_validator("password_hash_iterations")
    @classmethod
    def validate_hash_iterations(cls, v: int) -> int:
        """Ensure a sensible PBKDF2 work factor."""
        if v < 1000:
            raise ValueError("password_hash_iterations must be at least 1000")
        return v

    @field_validator("default_page_size", "max_page_size")
    @classmethod
    def validate_page_size(cls, v: int) -> int:
        """Ensure page sizes are positive."""
        if v <= 0:
            raise ValueError("page sizes must be positive")
        return v

    @field_validator("max_body_bytes")
    @classmethod
    def validate_max_body(cls, v: int) -> int:
        """Ensure body limit is positive."""
        if v <= 0:
            raise ValueError("max_body_bytes must be positive")
        return v

    @field_validator("api_port")
    @classmethod
    def validate_api_port(cls, v: int) -> int:
        """Ensure API port is in valid range."""
        if v <= 0 or v > 65535:
            raise ValueError("api_port must be between 1 and 65535")
        return v


def load_settings(env_file: str | None = None) -> Settings:
    """Load application settings from environment.

    Args:
        env_file: Optional path to .env file. If not provided,
                 uses the default .env in the current directory.

    Returns:
        Validated Settings instance.

    Raises:
        ValidationError: If settings validation fails.
    """
    if env_file:
        return Settings(_env_file=env_file)  # type: ignore[call-arg]
    return Settings()  # type: ignore[call-arg]


__all__ = ["Settings", "load_settings"]
