"""Application configuration module.

Reads settings from environment variables (and an optional ``.env`` file)
with defaults suitable for a single-node deployment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from core.constants import CacheDefaults, DatabaseDefaults, RaffleDefaults

load_dotenv()


def _get_bool(name: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "on"}


def _get_int(name: str, default: int) -> int:
    """Get integer from environment variable with fallback."""
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_str(name: str, default: str = "") -> str:
    """Get string from environment variable."""
    return os.getenv(name, default)


@dataclass(frozen=True)
class Config:
    environment: str
    debug: bool
    log_level: str
    log_folder: str
    database_path: str
    db_pool_size: int
    db_busy_timeout: int
    current_raffle_ttl: int
    # Seed values for an empty settings table; the engine never falls back to them
    default_participants_limit: int
    default_bet_amount: int
    default_winner_percentage: int
    # Loaded for operators, not enforced by the engine
    max_raffle_duration_hours: int
    bot_token: str
    webapp_url: str

    @property
    def log_file(self) -> str:
        return os.path.join(self.log_folder, "raffle.log")


def load_config() -> Config:
    """Load application configuration from environment variables.

    Returns:
        Config: Application configuration
    """
    return Config(
        environment=_get_str("ENVIRONMENT", "development"),
        debug=_get_bool("DEBUG", False),
        log_level=_get_str("LOG_LEVEL", "info"),
        log_folder=_get_str("LOG_FOLDER", "logs"),
        database_path=_get_str("DATABASE_PATH", "data/raffle.sqlite"),
        db_pool_size=_get_int("DB_POOL_SIZE", DatabaseDefaults.POOL_SIZE),
        db_busy_timeout=_get_int("DB_BUSY_TIMEOUT", DatabaseDefaults.BUSY_TIMEOUT),
        current_raffle_ttl=_get_int("CURRENT_RAFFLE_TTL", CacheDefaults.CURRENT_RAFFLE_TTL),
        default_participants_limit=_get_int(
            "DEFAULT_PARTICIPANTS_LIMIT", RaffleDefaults.DEFAULT_PARTICIPANTS
        ),
        default_bet_amount=_get_int("DEFAULT_BET_AMOUNT", RaffleDefaults.DEFAULT_BET),
        default_winner_percentage=_get_int(
            "DEFAULT_WINNER_PERCENTAGE", RaffleDefaults.DEFAULT_WINNER_PERCENT
        ),
        max_raffle_duration_hours=_get_int(
            "MAX_RAFFLE_DURATION_HOURS", RaffleDefaults.MAX_DURATION_HOURS
        ),
        bot_token=_get_str("TELEGRAM_BOT_TOKEN", ""),
        webapp_url=_get_str("WEBAPP_URL", ""),
    )
