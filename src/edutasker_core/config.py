"""Application settings loaded from the environment."""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration.

    Every field can be overridden with an ``EDUTASKER_``-prefixed environment
    variable (e.g. ``EDUTASKER_DATABASE_URL``) or a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="EDUTASKER_",
        env_file=".env",
        extra="ignore",
    )

    database_url: str = "sqlite:///./edutasker.db"

    # Connection pool (ignored for SQLite)
    db_pool_size: int = 3
    db_max_overflow: int = 7
    db_pool_recycle: int = 3600
    db_pool_timeout: int = 30

    # Ordering transactions
    reorder_max_attempts: int = 3
    reorder_retry_backoff_seconds: float = 0.05

    cors_origins: list[str] = ["*"]
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
