from pydantic_settings import BaseSettings, NoDecode
from pydantic import field_validator
from typing import Annotated, Optional
from functools import lru_cache
import json


def _parse_list(v):
    """Accept a JSON array, a comma-separated string, or a list."""
    if isinstance(v, str):
        if not v.strip():
            return []
        try:
            return json.loads(v)
        except json.JSONDecodeError:
            return [item.strip() for item in v.split(',') if item.strip()]
    return v


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./loyalty.db"

    # Database Connection Pool Settings (ignored for SQLite)
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # App Settings
    APP_NAME: str = "Loyalty Backend"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"  # development | production | test
    LOG_LEVEL: str = "INFO"

    # Accepts a JSON array or a comma-separated string
    CORS_ORIGINS: Annotated[list[str], NoDecode] = [
        "http://localhost:3000",
        "http://localhost:3001",
    ]

    # Background Jobs
    # None means jobs run only in production
    JOBS_ENABLED: Optional[bool] = None
    JOBS_ISOLATE_FAILURES: bool = False  # Keep starting other jobs when one starter fails
    JOBS_TIMEZONE: str = "UTC"
    # Modules that register job bodies with @job_body, imported before jobs start
    JOB_BODY_MODULES: Annotated[list[str], NoDecode] = []

    RFM_JOB_CRON: str = "0 2 * * *"  # Daily at 2:00 AM
    BIRTHDAY_MESSAGES_CRON: str = "0 9 * * *"  # Daily at 9:00 AM
    INACTIVITY_MESSAGES_CRON: str = "0 10 * * 1"  # Mondays at 10:00 AM
    RECURRING_TASKS_CRON: str = "0 6 * * *"  # Daily at 6:00 AM
    INACTIVITY_DAYS: int = 60  # Days without an order before a customer counts as inactive

    # Message Queue Worker
    MESSAGE_WORKER_POLL_SECONDS: int = 10
    MESSAGE_WORKER_BATCH_SIZE: int = 10
    MESSAGE_WORKER_MAX_RETRIES: int = 3
    MESSAGE_WORKER_SEND_DELAY: float = 0.5  # Seconds between sends to avoid provider rate limits

    # SMS Gateway
    SMS_PROVIDER: str = "mock"  # mock | twilio | kavenegar
    SMS_API_KEY: str = ""  # Twilio account SID or Kavenegar API key
    SMS_API_SECRET: str = ""  # Twilio auth token
    SMS_FROM_NUMBER: str = ""  # Twilio sender number or Kavenegar line number
    SMS_TIMEOUT_SECONDS: float = 15.0
    SMS_MOCK_FAILURE_RATE: float = 0.1

    @field_validator('CORS_ORIGINS', 'JOB_BODY_MODULES', mode='before')
    @classmethod
    def parse_list_values(cls, v):
        return _parse_list(v)

    @property
    def jobs_enabled(self) -> bool:
        """Background jobs run when explicitly enabled, otherwise only in production."""
        if self.JOBS_ENABLED is not None:
            return self.JOBS_ENABLED
        return self.ENVIRONMENT.lower() == "production"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
