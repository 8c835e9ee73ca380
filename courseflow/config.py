"""Application configuration using Pydantic settings."""
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "postgresql://localhost/courseflow"
    AUTO_CREATE_TABLES: bool = True

    # Sessions (identity is resolved upstream, we only read user_id)
    SECRET_KEY: str = "change-me-in-production"

    # Logging
    LOG_LEVEL: str = "INFO"

    # Branching
    DEFAULT_BRANCH_NAME: str = "main"
    ALLOW_MERGE_FROM_OPEN: bool = False

    # Cache invalidation webhook
    CACHE_INVALIDATION_WEBHOOK_URL: Optional[str] = None
    CACHE_INVALIDATION_TIMEOUT: float = 5.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
