from datetime import time
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql://journal:journal@db:5432/journal"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Comma-separated allowed origins, or "*" to allow all.
    # Example: "https://myapp.com,https://api.myapp.com"
    CORS_ORIGINS: str = "*"

    # Every calendar date in the pipeline ("today", entry days) is read in this zone.
    SERVICE_TIMEZONE: str = "UTC"

    # --- Batch aggregator ---
    AGGREGATOR_ENABLED: bool = True
    AGGREGATOR_RUN_AT: str = "02:00"
    AGGREGATOR_RUN_ON_STARTUP: bool = True
    AGGREGATOR_WINDOW_DAYS: int = 7
    AGGREGATOR_LOCK_STALE_MINUTES: int = 120

    BACKFILL_DEFAULT_DAYS: int = 365
    BACKFILL_MAX_DAYS: int = 3660

    # --- Narrative insights ---
    AI_INSIGHTS_ENABLED: bool = False
    NLP_CLOUD_API_KEY: Optional[str] = None
    NLP_CLOUD_BASE_URL: str = "https://api.nlpcloud.io/v1"
    AI_INSIGHTS_MODEL: str = "flan-t5-base"
    INSIGHT_TIMEOUT_SECONDS: float = 15.0
    INSIGHT_MAX_LENGTH: int = 256
    INSIGHT_PROMPT_MAX_CHARS: int = 2000

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def aggregator_run_time(self) -> time:
        hour, _, minute = self.AGGREGATOR_RUN_AT.partition(":")
        return time(hour=int(hour), minute=int(minute or 0))


settings = Settings()
