"""
Cascade Connect - Configuration
================================

All application settings loaded from environment variables.
Uses pydantic-settings for validation and type conversion.
"""

from functools import lru_cache
from typing import Literal

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Application
    # ==========================================================================
    APP_NAME: str = "Cascade Connect"
    APP_VERSION: str = "0.1.0"
    ENVIRONMENT: Literal["development", "staging", "production", "test"] = "development"
    DEBUG: bool = False
    PUBLIC_APP_URL: str = "http://localhost:5173"

    # ==========================================================================
    # API
    # ==========================================================================
    API_V1_PREFIX: str = "/api/v1"
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # ==========================================================================
    # Database (supports SQLite and PostgreSQL)
    # ==========================================================================
    DATABASE_URL: str = "sqlite+aiosqlite:///./cascade.db"
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 10
    DATABASE_ECHO: bool = False

    @computed_field  # type: ignore[misc]
    @property
    def is_sqlite(self) -> bool:
        return "sqlite" in self.DATABASE_URL

    # ==========================================================================
    # Authentication
    # ==========================================================================
    SECRET_KEY: str = "CHANGE-ME-IN-PRODUCTION-USE-LONG-RANDOM-STRING"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # ==========================================================================
    # Real-time (Pusher)
    # ==========================================================================
    PUSHER_APP_ID: str | None = None
    PUSHER_KEY: str | None = None
    PUSHER_SECRET: str | None = None
    PUSHER_CLUSTER: str = "us2"

    # ==========================================================================
    # SMS (Twilio)
    # ==========================================================================
    TWILIO_ACCOUNT_SID: str | None = None
    TWILIO_AUTH_TOKEN: str | None = None
    TWILIO_PHONE_NUMBER: str | None = None
    TWILIO_VALIDATE_WEBHOOKS: bool = True

    # ==========================================================================
    # Voice AI (Vapi)
    # ==========================================================================
    VAPI_SECRET: str | None = None
    VAPI_API_URL: str = "https://api.vapi.ai"
    VAPI_MIN_ADDRESS_SIMILARITY: float = 0.4

    # ==========================================================================
    # File Uploads (Cloudinary)
    # ==========================================================================
    CLOUDINARY_CLOUD_NAME: str | None = None
    CLOUDINARY_API_KEY: str | None = None
    CLOUDINARY_API_SECRET: str | None = None
    CLOUDINARY_FOLDER: str = "cascade-connect"

    # ==========================================================================
    # Email (SendGrid)
    # ==========================================================================
    SENDGRID_API_KEY: str | None = None
    SENDGRID_API_URL: str = "https://api.sendgrid.com/v3"
    EMAIL_FROM: str = "noreply@cascadebuilderservices.com"
    EMAIL_FROM_NAME: str = "Cascade Connect"
    ADMIN_NOTIFICATION_EMAIL: str = "info@cascadebuilderservices.com"

    # ==========================================================================
    # Hosting (Netlify)
    # ==========================================================================
    NETLIFY_API_TOKEN: str | None = None
    NETLIFY_SITE_ID: str | None = None
    NETLIFY_API_URL: str = "https://api.netlify.com/api/v1"

    # ==========================================================================
    # Computed Properties
    # ==========================================================================
    @computed_field  # type: ignore[misc]
    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    @computed_field  # type: ignore[misc]
    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @computed_field  # type: ignore[misc]
    @property
    def is_test(self) -> bool:
        return self.ENVIRONMENT == "test"

    @computed_field  # type: ignore[misc]
    @property
    def pusher_enabled(self) -> bool:
        return bool(self.PUSHER_APP_ID and self.PUSHER_KEY and self.PUSHER_SECRET)

    @computed_field  # type: ignore[misc]
    @property
    def twilio_enabled(self) -> bool:
        return bool(
            self.TWILIO_ACCOUNT_SID and self.TWILIO_AUTH_TOKEN and self.TWILIO_PHONE_NUMBER
        )

    @computed_field  # type: ignore[misc]
    @property
    def cloudinary_enabled(self) -> bool:
        return bool(
            self.CLOUDINARY_CLOUD_NAME and self.CLOUDINARY_API_KEY and self.CLOUDINARY_API_SECRET
        )

    @computed_field  # type: ignore[misc]
    @property
    def sendgrid_enabled(self) -> bool:
        return bool(self.SENDGRID_API_KEY)

    @computed_field  # type: ignore[misc]
    @property
    def netlify_enabled(self) -> bool:
        return bool(self.NETLIFY_API_TOKEN and self.NETLIFY_SITE_ID)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience export
settings = get_settings()
