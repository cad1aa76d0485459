"""
Application configuration using Pydantic Settings.

Values are read from environment variables (or a local .env file).
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ===========================================
    # Environment
    # ===========================================
    ENVIRONMENT: Literal["local", "test"] = "local"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # ===========================================
    # Database
    # ===========================================
    # Engine state (definitions, values, rules, insights, dashboards)
    DATABASE_URL: str = "sqlite+aiosqlite:///./kpi_engine.db"

    # Business data the aggregate queries run against.
    # Empty means the same database as DATABASE_URL.
    SOURCE_DATABASE_URL: str = ""

    # ===========================================
    # KPI values and cache
    # ===========================================
    DEFAULT_REFRESH_INTERVAL_SECONDS: int = Field(300, ge=1)
    VALUE_CACHE_TTL_SECONDS: int = Field(300, ge=1)

    # ===========================================
    # Scheduler
    # ===========================================
    SCHEDULER_TICK_SECONDS: int = Field(30, ge=1)
    TREND_INTERVAL_SECONDS: int = Field(60 * 60, ge=1)
    ALERT_SWEEP_INTERVAL_SECONDS: int = Field(60, ge=1)
    INSIGHT_INTERVAL_SECONDS: int = Field(2 * 60 * 60, ge=1)
    TREND_LOOKBACK: str = "30d"
    INSIGHT_LOOKBACK: str = "7d"
    MAX_CONCURRENT_KPIS: int = Field(4, ge=1)

    # ===========================================
    # Timeouts (seconds)
    # ===========================================
    QUERY_TIMEOUT_SECONDS: float = Field(10.0, gt=0)
    NOTIFY_TIMEOUT_SECONDS: float = Field(10.0, gt=0)

    # ===========================================
    # Trend analysis and insights
    # ===========================================
    ANOMALY_Z_THRESHOLD: float = Field(2.0, gt=0)
    FORECAST_PERIODS: int = Field(3, ge=0)
    INSIGHT_TTL_HOURS: int = Field(24 * 7, ge=1)

    # ===========================================
    # Notification transports
    # ===========================================
    # Webhook channel target; empty disables the "webhook" channel
    WEBHOOK_URL: str = ""
    # Optional HMAC secret for the X-KPI-Signature header
    WEBHOOK_SECRET: str = ""

    @property
    def source_database_url(self) -> str:
        """URL of the database aggregate queries run against."""
        return self.SOURCE_DATABASE_URL or self.DATABASE_URL

    @property
    def is_test(self) -> bool:
        """Check if running under the test environment."""
        return self.ENVIRONMENT == "test"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures settings are loaded only once.
    """
    return Settings()
