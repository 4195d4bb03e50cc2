"""Application configuration."""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings."""

    # App
    APP_NAME: str = "PM_Engine"
    ENV: str = "development"
    DEBUG: bool = True
    ALLOWED_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Database
    DATABASE_URL: str = "sqlite:///./pm_engine.db"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10

    # Redis (fleet overview cache)
    REDIS_URL: str = "redis://localhost:6379/0"
    OVERVIEW_CACHE_PREFIX: str = "pm:overview"
    OVERVIEW_CACHE_TTL_SECONDS: int = 300

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"

    # Execution / resources
    # Upper bound for ad-hoc resource lines (no reservation to bound them).
    AD_HOC_QUANTITY_CEILING: int = 9999

    # Compliance
    # A completion up to this many days after the scheduled date counts as on time.
    COMPLIANCE_GRACE_DAYS: int = 1
    DEDUPE_BY_DEFAULT: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS origins as list."""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
