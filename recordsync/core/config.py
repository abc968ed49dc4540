from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Database
    db_path: str = "record_sync.db"

    # Bulk sync
    sync_chunk_size: int = 50
    max_sync_operations: int = 1000

    # Conflict resolution
    business_client_lead_minutes: int = 60
    notes_merge_separator: str = "\n\n--- Merged from mobile ---\n"

    # Session housekeeping
    sync_history_retention_days: int = 30
    cleanup_hour: int = 3

    # Optional settings
    tz: str = "UTC"
    debug: bool = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
