"""Pytest configuration and fixtures."""

from typing import List

import pytest

from database.connection import OptimizedSQLitePool
from database.ledger import LedgerRepository
from database.migrations import run_migrations
from database.raffle_repository import RaffleRepository
from database.settings_repository import SettingsRepository
from services.cache import CurrentRaffleCache
from services.events import RaffleEvent
from services.raffle_service import RaffleService


class RecordingNotifier:
    """Notification sink that remembers every event it receives."""

    def __init__(self):
        self.events: List[RaffleEvent] = []

    async def publish(self, event: RaffleEvent) -> None:
        self.events.append(event)


class FailingNotifier:
    """Notification sink that always blows up."""

    def __init__(self):
        self.calls = 0

    async def publish(self, event: RaffleEvent) -> None:
        self.calls += 1
        raise RuntimeError("telegram is down")


@pytest.fixture
async def pool(tmp_path):
    """Migrated database in a temporary file."""
    db_pool = OptimizedSQLitePool(str(tmp_path / "raffle_test.sqlite"), pool_size=8, busy_timeout_ms=10000)
    await db_pool.init_pool()
    await run_migrations(db_pool)
    yield db_pool
    await db_pool.close()


@pytest.fixture
def ledger(pool):
    return LedgerRepository(pool)


@pytest.fixture
def raffles(pool, ledger):
    return RaffleRepository(pool, ledger=ledger)


@pytest.fixture
async def settings_repo(pool):
    repo = SettingsRepository(pool)
    await repo.ensure_defaults(participants_limit=3, bet_amount=1, winner_percentage=70)
    return repo


@pytest.fixture
def cache():
    return CurrentRaffleCache(ttl=30)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def service(raffles, settings_repo, cache, notifier):
    return RaffleService(raffles, settings_repo, cache=cache, notifier=notifier)


@pytest.fixture
def failing_notifier():
    return FailingNotifier()
