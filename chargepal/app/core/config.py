"""
Configuration settings for the ChargePal backend.

This module handles application configuration using Pydantic settings.
"""

from pydantic_settings import BaseSettings

from chargepal.app.schemas.sync import SyncConfig


class Settings(BaseSettings):
    """Application settings."""

    # Application
    app_name: str = "ChargePal Backend"
    api_version: str = "v1"
    debug: bool = False
    log_level: str = "INFO"

    # Local persistence (single JSON blob row)
    database_url: str = "sqlite+aiosqlite:///./chargepal.db"
    db_echo: bool = False
    state_key: str = "chargepal_data"

    # Redis Configuration (sync lock)
    redis_url: str = "redis://localhost:6379/0"
    redis_decode_responses: bool = True
    sync_lock_ttl_seconds: int = 300

    # Remote store (Supabase / PostgREST)
    supabase_project_url: str = ""
    supabase_api_key: str = ""
    remote_timeout_seconds: float = 15.0
    delete_batch_size: int = 100

    # Auto sync
    auto_sync: bool = False
    sync_interval_minutes: int = 15

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def sync_interval_seconds(self) -> int:
        """Interval between automatic syncs, clamped to 1..30 minutes."""
        return max(1, min(30, self.sync_interval_minutes)) * 60

    def sync_config(self) -> SyncConfig:
        return SyncConfig(project_url=self.supabase_project_url, api_key=self.supabase_api_key)


settings = Settings()
