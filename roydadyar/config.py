"""Configuration management from environment variables."""

import os
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from roydadyar.utils.constants import DEFAULT_DAILY_HOUR, DEFAULT_TIMEZONE

# Load .env file if it exists
load_dotenv()


class Config:
    """Application configuration loaded from environment variables."""

    # Database
    DATABASE_PATH: Path = Path(os.getenv("DATABASE_PATH", "./data/roydadyar.db"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # HTTP server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))
    ADMIN_TOKEN: str = os.getenv("ADMIN_TOKEN", "")

    # Scheduler
    SCHEDULER_ENABLED: bool = os.getenv("SCHEDULER_ENABLED", "true").lower() == "true"
    SCHEDULER_TIMEZONE: str = os.getenv("SCHEDULER_TIMEZONE", DEFAULT_TIMEZONE)
    DAILY_HOUR: int = int(os.getenv("DAILY_HOUR", str(DEFAULT_DAILY_HOUR)))

    @classmethod
    def validate(cls) -> None:
        """Validate required configuration."""
        if not cls.ADMIN_TOKEN:
            raise ValueError("ADMIN_TOKEN environment variable is required")

        if not 0 <= cls.DAILY_HOUR <= 23:
            raise ValueError("DAILY_HOUR must be between 0 and 23")

        try:
            ZoneInfo(cls.SCHEDULER_TIMEZONE)
        except ZoneInfoNotFoundError:
            raise ValueError(f"Unknown SCHEDULER_TIMEZONE: {cls.SCHEDULER_TIMEZONE}")

        # Ensure database directory exists
        cls.DATABASE_PATH.parent.mkdir(parents=True, exist_ok=True)
