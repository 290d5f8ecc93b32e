"""
Environment configuration — single source of truth for all settings.

Uses pydantic-settings for type-safe config with .env file support.
All values have sensible defaults for local development; live weather
monitoring stays disabled until OPENWEATHER_API_KEY is provided.

Usage:
    from floodwatch.core.config import settings
    print(settings.MONITOR_LIVE_INTERVAL_SECONDS)
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings loaded from environment variables or .env file.

    Precedence: env var > .env file > default value
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ── Application ──
    APP_NAME: str = "FloodWatch Risk Monitor"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development | staging | production
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"  # DEBUG | INFO | WARNING | ERROR | CRITICAL

    # ── Weather provider (OpenWeatherMap) ──
    OPENWEATHER_API_KEY: Optional[str] = None
    OPENWEATHER_BASE_URL: str = "https://api.openweathermap.org/data/2.5"
    WEATHER_FETCH_TIMEOUT: float = 15.0  # seconds

    # ── Monitoring loop ──
    MONITOR_BATCH_SIZE: int = 3
    MONITOR_BATCH_DELAY_SECONDS: float = 1.0  # live mode only
    MONITOR_LIVE_INTERVAL_SECONDS: float = 300.0  # 5 min
    MONITOR_DEMO_INTERVAL_SECONDS: float = 10.0
    MONITOR_AUTOSTART: bool = False
    MONITOR_DEFAULT_MODE: str = "demo"  # live | demo

    # ── Database ──
    DATABASE_URL: str = "sqlite+aiosqlite:///./floodwatch.db"
    DATABASE_ECHO: bool = False  # log SQL queries

    # ── Redis ──
    REDIS_URL: str = "redis://localhost:6379/0"
    WEATHER_CACHE_ENABLED: bool = False
    REDIS_FORECAST_TTL: int = 1800  # forecast rainfall cache (30 min)

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()


settings = get_settings()
