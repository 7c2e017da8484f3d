"""Project configuration."""

import sys
from functools import lru_cache
from pathlib import Path

from loguru import logger
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings, read from ``PICKPICK_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PICKPICK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    log_level: str = "INFO"

    # Containers
    seed: int | None = None  # Reproducible container picks (tests, simulations)
    experiments_file: Path | None = None

    # HTTP integration
    request_state_attr: str = "pickpick"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings."""
    return Settings()


def configure_logging(level: str | None = None) -> None:
    """Send loguru output to stderr at the given (or configured) level."""
    logger.remove()
    logger.add(sys.stderr, level=(level or get_settings().log_level).upper())
