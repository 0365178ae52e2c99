"""Service configuration using pydantic-settings."""

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """s3shelf configuration."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)

    # Backend: "s3" or "memory" (in-process, for local development)
    SHELF_BACKEND: str = "s3"

    # S3 Configuration
    SHELF_S3_BUCKET: str = ""
    SHELF_S3_ENDPOINT_URL: str = ""  # blank = AWS default endpoint
    SHELF_S3_REGION: str = "us-east-2"
    SHELF_S3_ACCESS_KEY_ID: str = ""
    SHELF_S3_SECRET_ACCESS_KEY: str = ""

    # Recent-records cache
    SHELF_CACHE_TTL_SECONDS: float = 600.0
    SHELF_CACHE_MAX_ENTRIES: int = 1024
    SHELF_EMPTY_RETRY_DELAY: float = 1.0
    SHELF_DEFAULT_PAGE_SIZE: int = 100
    SHELF_MAX_PAGE_SIZE: int = 1000

    # Store
    SHELF_DELETE_BATCH_SIZE: int = 1000

    # HTTP API: "module:attribute" naming the RecordBindings to serve
    SHELF_BINDINGS: str = ""

    # Logging
    SHELF_LOG_LEVEL: str = "INFO"
    SHELF_LOG_DIR: Optional[Path] = None


settings = Settings()
