"""Application configuration using Pydantic Settings."""
from typing import Literal, Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings, read from environment variables or .env."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Image Host Console"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    API_V1_PREFIX: str = "/api/v1"
    LOG_LEVEL: str = "INFO"

    # Optional static bearer token for the admin API; unset disables the check
    ADMIN_TOKEN: Optional[str] = None

    # Storage
    STORAGE_BACKEND: Literal["s3", "memory"] = "memory"
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    S3_BUCKET_NAME: str = "images"
    S3_REGION: str = "auto"
    S3_ENDPOINT_URL: Optional[str] = None

    # Limits
    MAX_BATCH_ITEMS: int = Field(500, ge=1)
    DEFAULT_PAGE_SIZE: int = Field(100, ge=1, le=1000)


settings = Settings()
