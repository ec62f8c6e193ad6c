"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables (or a local .env file).
"""

from functools import lru_cache
from typing import Any, Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "AccentVote"
    APP_ENV: str = "development"
    DEBUG: bool = False
    SECRET_KEY: str = ""  # Required - loaded from environment

    # Database - PostgreSQL (DATABASE_URL overrides, e.g. sqlite+aiosqlite for local runs)
    DATABASE_URL: str | None = None
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "accentvote"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "accentvote"
    DATABASE_ECHO: bool = False

    @field_validator("SECRET_KEY")
    @classmethod
    def validate_required_secrets(cls, v: str, info: Any) -> str:
        """Validate that required secrets are set."""
        if not v:
            raise ValueError(f"{info.field_name} must be set in environment")
        return v

    @property
    def POSTGRES_URL(self) -> str:
        """Construct PostgreSQL connection URL with SSL required."""
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}?ssl=require"
        )

    @property
    def SQLALCHEMY_DATABASE_URL(self) -> str:
        """The URL the engine is built from."""
        return self.DATABASE_URL or self.POSTGRES_URL

    # Session cookie (AES-256-GCM sealed identity)
    # Base64-encoded 256-bit key. Outside production a key is derived from SECRET_KEY.
    # Generate with: python -c "from core.cookie_guard import generate_cookie_key; print(generate_cookie_key())"
    COOKIE_SECRET_KEY: str | None = None
    # Comma-separated base64 keys that can still open older cookies (key rotation)
    COOKIE_PREVIOUS_KEYS: str = ""
    COOKIE_NAME: str = "accent_vote_user"
    COOKIE_MAX_AGE_DAYS: int = 30
    COOKIE_SECURE: bool = True

    @property
    def cookie_previous_keys_list(self) -> list[str]:
        """Get rotated cookie keys as a list."""
        return [key.strip() for key in self.COOKIE_PREVIOUS_KEYS.split(",") if key.strip()]

    # Authenticated voters (bearer tokens issued by the auth collaborator)
    JWT_ALGORITHM: str = "HS256"

    # Statistics
    STATS_TIME_BUCKET: Literal["hour", "day"] = "hour"

    # CORS - stored as comma-separated string to avoid pydantic-settings JSON parsing issues
    CORS_ORIGINS: str = "http://localhost:3000"

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        import json

        try:
            return json.loads(self.CORS_ORIGINS)
        except json.JSONDecodeError:
            return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: Literal["json", "console"] = "console"

    @property
    def is_production(self) -> bool:
        return self.APP_ENV in ("production", "staging")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
