"""Application initialization orchestrator."""

from __future__ import annotations

from contextlib import suppress
from typing import Optional

from config import Config, load_config
from core.logger import get_logger
from database.connection import OptimizedSQLitePool, init_db_pool
from database.ledger import LedgerRepository
from database.migrations import run_migrations
from database.raffle_repository import RaffleRepository
from database.settings_repository import SettingsRepository
from services.cache import CurrentRaffleCache
from services.notification_service import NotificationService
from services.raffle_service import RaffleService

logger = get_logger(__name__)


class ApplicationInitializer:
    """Builds the raffle engine and owns the resources it needs."""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or load_config()
        self.db_pool: Optional[OptimizedSQLitePool] = None
        self.cache: Optional[CurrentRaffleCache] = None
        self.bot = None
        self.notifier: Optional[NotificationService] = None
        self.raffle_service: Optional[RaffleService] = None

    async def initialize(self) -> RaffleService:
        """Initialize all application components."""
        await self._init_database()

        self.cache = CurrentRaffleCache(ttl=self.config.current_raffle_ttl)
        logger.info("✅ Cache initialized")

        if self._should_enable_bot():
            self._init_bot()
        else:
            logger.info("Telegram token not set, raffle notifications disabled")

        ledger = LedgerRepository(self.db_pool)
        self.raffle_service = RaffleService(
            raffles=RaffleRepository(self.db_pool, ledger=ledger),
            settings=SettingsRepository(self.db_pool),
            cache=self.cache,
            notifier=self.notifier,
        )
        pending = await self.raffle_service.recover_pending_draw()
        if pending:
            logger.info(f"Finished interrupted draw of raffle {pending.id}")
        return self.raffle_service

    async def cleanup(self) -> None:
        """Cleanup resources."""
        with suppress(Exception):
            if self.bot:
                await self.bot.session.close()
        if self.db_pool:
            await self.db_pool.close()
            logger.debug("Database pool closed")

    async def _init_database(self) -> None:
        """Initialize database pool, run migrations and seed settings."""
        self.db_pool = await init_db_pool(
            database_path=self.config.database_path,
            pool_size=self.config.db_pool_size,
            busy_timeout_ms=self.config.db_busy_timeout,
        )
        await run_migrations(self.db_pool)
        await SettingsRepository(self.db_pool).ensure_defaults(
            participants_limit=self.config.default_participants_limit,
            bet_amount=self.config.default_bet_amount,
            winner_percentage=self.config.default_winner_percentage,
        )
        logger.info("✅ Database initialized")

    def _should_enable_bot(self) -> bool:
        return bool(self.config.bot_token) and self.config.bot_token != "your_bot_token_here"

    def _init_bot(self) -> None:
        from aiogram import Bot

        self.bot = Bot(token=self.config.bot_token)
        self.notifier = NotificationService(self.bot, webapp_url=self.config.webapp_url or None)
        logger.info("✅ Notification bot initialized")
