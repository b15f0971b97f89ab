"""Database package public API."""

from .connection import OptimizedSQLitePool, init_db_pool
from .migrations import run_migrations
from .ledger import LedgerRepository
from .settings_repository import SettingsRepository
from .raffle_repository import RaffleRepository

__all__ = [
    "OptimizedSQLitePool",
    "init_db_pool",
    "run_migrations",
    "LedgerRepository",
    "SettingsRepository",
    "RaffleRepository",
]
