# app/config/settings.py
import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field, ValidationError as PydanticValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.config.env import get_env_var, get_optional_env_var

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    APP_NAME: str = Field("Showroom Inventory API", description="Human readable API title")
    ENV: str = Field("development", description="Deployment environment name")

    CACHE_BACKEND: str = Field("redis", description="Cache store backend (redis or memory)")
    REDIS_URL: str = Field("redis://localhost:6379/0", description="Redis connection URL")
    CACHE_TIMEOUT_SECONDS: float = Field(5.0, gt=0, description="Timeout for a single cache store call")

    MONGO_URI: str = Field("mongodb://localhost:27017", description="MongoDB connection URI")
    MONGO_DB: str = Field("showroom", description="MongoDB database name")

    MEDIA_STORAGE_DIR: str = Field("uploads", description="Directory holding uploaded media blobs")
    MEDIA_BASE_URL: str = Field("/uploads", description="Public base URL for stored media blobs")
    MAX_UPLOAD_SIZE_BYTES: int = Field(25 * 1024 * 1024, ge=1, description="Largest accepted upload in bytes")

    INVENTORY_FEED_URL: Optional[str] = Field(None, description="HTTP URL of the upstream inventory snapshot")
    INVENTORY_FEED_FILE: Optional[str] = Field(None, description="Path of a JSON inventory snapshot file")
    INVENTORY_FEED_TIMEOUT_SECONDS: float = Field(15.0, gt=0, description="Timeout for an upstream feed fetch")
    INVENTORY_STALE_AFTER_SECONDS: int = Field(3600, ge=0, description="Age after which cached inventory is refreshed")
    INVENTORY_REFRESH_INTERVAL_MINUTES: int = Field(30, ge=0, description="Scheduler interval, 0 disables it")

    LOG_LEVEL: str = Field("INFO", description="Root log level")
    LOG_FILE: str = Field("app.log", description="Log file path")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @field_validator("CACHE_BACKEND")
    def validate_cache_backend(cls, value):
        """Ensure the cache backend is one we can build."""
        value = value.strip().lower()
        if value not in ["redis", "memory"]:
            raise ValueError(f"CACHE_BACKEND must be 'redis' or 'memory', got: {value}")
        return value

    @field_validator("LOG_LEVEL")
    def validate_log_level(cls, value):
        value = value.strip().upper()
        if value not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            raise ValueError(f"Invalid LOG_LEVEL: {value}")
        return value

    def __init__(self, **values):
        """Initialize settings and log the loaded values."""
        super().__init__(**values)
        logger.info("Settings initialized successfully")
        logger.debug(f"Loaded settings: CACHE_BACKEND={self.CACHE_BACKEND}, MONGO_DB={self.MONGO_DB}, "
                     f"INVENTORY_FEED_URL={self.INVENTORY_FEED_URL}, "
                     f"INVENTORY_FEED_FILE={self.INVENTORY_FEED_FILE}, "
                     f"INVENTORY_STALE_AFTER_SECONDS={self.INVENTORY_STALE_AFTER_SECONDS}")


def load_settings() -> Settings:
    """Load settings with environment variable validation."""
    try:
        overrides = {}
        for name in ["INVENTORY_FEED_URL", "INVENTORY_FEED_FILE"]:
            value = get_optional_env_var(name)
            if value is not None:
                overrides[name] = value
        settings = Settings(
            CACHE_BACKEND=get_env_var("CACHE_BACKEND", "redis"),
            MONGO_DB=get_env_var("MONGO_DB", "showroom"),
            **overrides
        )
        return settings
    except PydanticValidationError as ve:
        logger.error(f"Validation error loading settings: {str(ve)}", exc_info=True)
        raise
    except Exception as e:
        logger.error(f"Unexpected error loading settings: {str(e)}", exc_info=True)
        raise RuntimeError(f"Failed to load settings: {str(e)}")


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""
    return load_settings()
