"""
Environment configuration for the field attendance engine.
Uses Pydantic's settings management to handle environment variables
with proper type validation and default values.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

# Load environment variables from .env file if it exists
env_path = Path('.') / '.env'
load_dotenv(dotenv_path=env_path)


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Application configuration
    APP_NAME: str = Field(default="FieldClock Attendance Engine", alias="PROJECT_NAME")
    API_VERSION: str = Field(default="v1", alias="PROJECT_VERSION")
    API_V1_STR: str = "/api/v1"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    TIMEZONE: str = "UTC"

    # Database configuration
    DATABASE_URL: str = "sqlite:///./fieldclock.db"
    DATABASE_ECHO: bool = False
    DB_POOL_SIZE: int = 10
    DB_POOL_OVERFLOW: int = 5

    # Monitoring and logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_TO_FILE: bool = False

    # Geofence
    GEOFENCE_TOLERANCE_METERS: float = 20.0
    AUTO_REGISTER_BUFFER_METERS: float = 20.0
    DEFAULT_LOCATION_RADIUS_METERS: float = 100.0
    LOCATION_CHECK_INTERVAL_SECONDS: float = 30.0
    LOCATION_ACQUIRE_TIMEOUT_SECONDS: float = 10.0

    # Schedule matching
    SCHEDULE_GRACE_MINUTES: int = 15
    SCHEDULE_CONFIDENCE_PENALTY: float = 2.0
    SCHEDULE_MATCH_THRESHOLD: float = 70.0
    SCHEDULE_ON_TIME_MINUTES: int = 15

    # Time accounting
    OVERTIME_THRESHOLD_HOURS: float = 8.0
    MANAGER_REVIEW_HOURS: float = 10.0

    # Special cases
    MEAL_BREAK_MIN_MINUTES: int = 1
    MEAL_BREAK_MAX_MINUTES: int = 120
    MEAL_BREAK_DEFAULT_MINUTES: int = 30
    NO_STUDENTS_WAIT_MINUTES: int = 15

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "populate_by_name": True,
        "extra": "ignore",
    }

    @field_validator('ENVIRONMENT', mode='before')
    @classmethod
    def normalize_environment(cls, v: Optional[str]) -> str:
        """Lower-case the environment name so comparisons stay simple"""
        return (v or "development").strip().lower()

    @field_validator('LOG_LEVEL', mode='before')
    @classmethod
    def normalize_log_level(cls, v: Optional[str]) -> str:
        return (v or "INFO").strip().upper()

    @field_validator('MEAL_BREAK_MAX_MINUTES')
    @classmethod
    def validate_meal_break_bounds(cls, v: int, info) -> int:
        """Upper meal break bound must not undercut the lower one"""
        lower = info.data.get('MEAL_BREAK_MIN_MINUTES', 1)
        if v < lower:
            raise ValueError("MEAL_BREAK_MAX_MINUTES must be >= MEAL_BREAK_MIN_MINUTES")
        return v

    def get_database_url(self) -> str:
        """Database URL used by the engine factory"""
        return self.DATABASE_URL

    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    def is_production(self) -> bool:
        """Check if running in production environment"""
        return self.ENVIRONMENT == "production"

    def is_development(self) -> bool:
        """Check if running in development environment"""
        return self.ENVIRONMENT == "development"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
