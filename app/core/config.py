# app/core/config.py

from pathlib import Path
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Get the project root directory (where .env should be located)
BASE_DIR = Path(__file__).resolve().parent.parent.parent

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(BASE_DIR / ".env"),
        env_file_encoding='utf-8',
        case_sensitive=True,
        extra="ignore"
    )

    # App Configuration
    APP_NAME: str = "CashControl API"
    DEBUG: bool = False
    VERSION: str = "1.0.0"

    # Database Configuration
    DATABASE_URL: str = f"sqlite+aiosqlite:///{BASE_DIR / 'cashcontrol.db'}"

    # JWT / Security Configuration
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 10080

    # CORS Configuration
    FRONTEND_URL: str = "http://localhost:3000"

    # Recurring expense scheduler
    RUN_SCHEDULER: bool = True
    RECURRING_SWEEP_INTERVAL_HOURS: float = 24.0
    RECURRING_SWEEP_CONCURRENCY: int = 1
    # Commit the materialized expense and the reschedule together
    RECURRING_SINGLE_TRANSACTION: bool = False

    # Optional: Environment
    ENVIRONMENT: str = "development"

    @field_validator("RECURRING_SWEEP_CONCURRENCY")
    @classmethod
    def _positive_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("RECURRING_SWEEP_CONCURRENCY must be at least 1")
        return v

    @field_validator("RECURRING_SWEEP_INTERVAL_HOURS")
    @classmethod
    def _positive_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("RECURRING_SWEEP_INTERVAL_HOURS must be positive")
        return v

    @property
    def is_postgres(self) -> bool:
        """Check if we're talking to PostgreSQL (pool settings only apply there)"""
        return self.DATABASE_URL.startswith("postgresql")

# Create a global settings instance
settings = Settings()
