"""Application configuration from environment."""
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """App settings loaded from env / .env."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Case Simulator"
    debug: bool = False
    log_level: str = "INFO"

    # Database (async driver; alembic converts to sync)
    database_url: str = "sqlite+aiosqlite:///./case_simulator.db"

    # JWT for API clients
    secret_key: str = "change-me-in-production-use-env"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7  # 7 days

    # Auth cookie (session-based for browser users)
    auth_cookie_name: str = "cs_auth"
    auth_cookie_max_age: int = 60 * 60 * 24 * 14  # 14 days

    # Content
    seed_demo_content: bool = True

    # Completion side effects
    forum_threads_enabled: bool = True
    forum_channel_slug: str = "general"
    side_effect_timeout_seconds: float = 5.0


@lru_cache
def get_settings() -> Settings:
    return Settings()


# Base path (parent of app/)
BASE_DIR = Path(__file__).resolve().parent.parent.parent
