"""
Application configuration management
"""

from datetime import timedelta
from typing import List
from pydantic_settings import BaseSettings
from pydantic import field_validator


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "GymBook"
    APP_VERSION: str = "1.0.0"
    APP_ENV: str = "development"
    DEBUG: bool = False
    API_PREFIX: str = "/api/v1"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database
    DATABASE_URL: str  # Must be provided via environment

    @field_validator('DATABASE_URL')
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        if v.startswith('postgresql://'):
            v = v.replace('postgresql://', 'postgresql+asyncpg://', 1)
        return v
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 40
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 3600
    DB_ECHO: bool = False

    # Redis (only used when LOCK_BACKEND == "redis")
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_MAX_CONNECTIONS: int = 50

    # Schedule locking
    LOCK_BACKEND: str = "local"
    LOCK_TIMEOUT_SECONDS: float = 10.0
    LOCK_TTL_SECONDS: int = 30
    LOCK_RETRY_ATTEMPTS: int = 3
    LOCK_RETRY_BACKOFF_SECONDS: float = 0.05

    @field_validator('LOCK_BACKEND')
    @classmethod
    def validate_lock_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in ("local", "redis"):
            raise ValueError("LOCK_BACKEND must be 'local' or 'redis'")
        return v

    # Booking policy
    CANCELLATION_WINDOW_HOURS: float = 2
    LATE_CANCELLATION_HOURS: float = 24

    # Waiting list
    WAITLIST_CONFIRMATION_WINDOW_HOURS: float = 24
    WAITLIST_SWEEP_ENABLED: bool = False
    WAITLIST_SWEEP_INTERVAL_SECONDS: int = 300
    WAITLIST_REPROMOTE_ON_EXPIRY: bool = False

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Monitoring
    PROMETHEUS_ENABLED: bool = True
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"

    # Messages
    DEFAULT_LANGUAGE: str = "en"

    @field_validator("CORS_ORIGINS", mode="before")
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    @property
    def cancellation_window(self) -> timedelta:
        return timedelta(hours=self.CANCELLATION_WINDOW_HOURS)

    @property
    def late_cancellation_threshold(self) -> timedelta:
        return timedelta(hours=self.LATE_CANCELLATION_HOURS)

    @property
    def confirmation_window(self) -> timedelta:
        return timedelta(hours=self.WAITLIST_CONFIRMATION_WINDOW_HOURS)

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    @property
    def is_development(self) -> bool:
        return self.APP_ENV == "development"

    @property
    def is_testing(self) -> bool:
        return self.APP_ENV == "testing"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


# Create global settings instance
settings = Settings()
