"""Sidebar configuration using Pydantic settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Sidebar settings loaded from SIDEBAR_* environment variables."""

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Backend call layer
    backend_url: str = "http://127.0.0.1:8765"
    request_timeout_seconds: float = 30.0

    # Push event stream
    event_stream_reconnect_seconds: float = 2.0
    event_stream_max_backoff_seconds: float = 30.0

    # Timers
    active_tab_poll_interval_seconds: float = 0.5

    # Client-side field constraints
    name_max_length: int = 100
    description_max_length: int = 500
    continuation_min_items: int = 1
    continuation_max_items: int = 100

    class Config:
        env_prefix = "SIDEBAR_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
