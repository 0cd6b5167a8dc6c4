"""Settings for the tenancy subsystem, loaded from environment variables and .env."""

import logging
from typing import Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Runtime configuration.

    Pydantic loads values from:
    1. OS environment variables (at instantiation time)
    2. .env file in the working directory
    3. The defaults below
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    database_url: str = "sqlite:///./tenancy.db"
    locale: str = "en_PH"

    log_level: str = "INFO"
    log_file: str = "logs/tenancy.log"

    # Daily automation runs only from this local hour onwards
    automation_start_hour: int = 8

    # Bookings cannot be cancelled or rescheduled closer than this to the appointment
    modification_window_hours: int = 12

    min_contract_months: int = 3
    renewal_min_days: int = 29
    last_month_window_days: int = 28
    last_month_bill_lookback_days: int = 40

    def validate_ranges(self) -> None:
        """Reject settings that would break the scheduling rules."""
        if not 0 <= self.automation_start_hour <= 23:
            raise ValueError("AUTOMATION_START_HOUR must be between 0 and 23")
        if self.modification_window_hours < 0:
            raise ValueError("MODIFICATION_WINDOW_HOURS must not be negative")
        if self.min_contract_months < 1:
            raise ValueError("MIN_CONTRACT_MONTHS must be at least 1")
        if self.last_month_bill_lookback_days < self.last_month_window_days:
            raise ValueError(
                "LAST_MONTH_BILL_LOOKBACK_DAYS must cover LAST_MONTH_WINDOW_DAYS"
            )


_settings_instance: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the settings instance.

    Lazy so that .env is loaded into the process environment before the
    first read.
    """
    global _settings_instance
    if _settings_instance is None:
        load_dotenv()
        settings = Settings()
        settings.validate_ranges()
        _settings_instance = settings
        logger.debug("Settings loaded (database=%s)", _settings_instance.database_url.split("@")[-1])
    return _settings_instance


def reset_settings() -> None:
    """Drop the cached instance so the next get_settings() re-reads the environment."""
    global _settings_instance
    _settings_instance = None


__all__ = ["Settings", "get_settings", "reset_settings"]
