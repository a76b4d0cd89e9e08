"""Application configuration using pydantic-settings."""

from datetime import time
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SCHEDULING_",
        case_sensitive=False,
        extra="ignore",
    )

    # Application environment
    env: Literal["dev", "test", "staging", "prod"] = "dev"

    # Logging
    log_level: str = "INFO"

    # Wall-clock zone that business hours are expressed in
    clinic_timezone: str = "Europe/London"

    # Business hours (Monday-Friday)
    business_day_start: time = time(8, 0)
    business_day_end: time = time(17, 0)

    # Direct booking duration bounds
    min_appointment_minutes: int = 15
    max_booking_minutes: int = 180

    # Availability search duration bound (wider than direct booking)
    max_search_minutes: int = 480

    # Slot search
    slot_increment_minutes: int = 15
    max_search_days: int = 30
    max_alternative_suggestions: int = 3

    # Room assignment
    min_room_number: int = 1
    max_room_number: int = 999

    @property
    def is_dev(self) -> bool:
        """Check if running in development mode."""
        return self.env == "dev"

    @property
    def is_prod(self) -> bool:
        """Check if running in production mode."""
        return self.env == "prod"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
