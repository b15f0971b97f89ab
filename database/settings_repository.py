"""Raffle settings persistence."""

from __future__ import annotations

from typing import Optional

from core.logger import get_logger
from database.base_repository import BaseRepository
from database.models import RaffleSettings
from utils.timeutils import now_db
from utils.validators import validate_settings

logger = get_logger(__name__)


class SettingsRepository(BaseRepository):
    """Versioned settings rows; exactly one is active after any update."""

    async def get_active(self) -> Optional[RaffleSettings]:
        row = await self.fetch_one(
            """
            SELECT * FROM raffle_settings
            WHERE is_active = 1
            ORDER BY id DESC
            LIMIT 1
            """
        )
        return RaffleSettings.from_row(row) if row else None

    async def update(
        self,
        participants_limit: int,
        bet_amount: int,
        winner_percentage: int,
        organizer_percentage: int,
    ) -> RaffleSettings:
        """Replace the active settings.

        Raises:
            ConfigurationError: If the values are out of range
        """
        validate_settings(participants_limit, bet_amount, winner_percentage, organizer_percentage)

        async with self.pool.transaction() as conn:
            await conn.execute("UPDATE raffle_settings SET is_active = 0 WHERE is_active = 1")
            row = await self.fetch_one_in(
                conn,
                """
                INSERT INTO raffle_settings
                    (participants_limit, bet_amount, winner_percentage, organizer_percentage, is_active, created_at)
                VALUES (?, ?, ?, ?, 1, ?)
                RETURNING *
                """,
                (participants_limit, bet_amount, winner_percentage, organizer_percentage, now_db()),
            )
        settings = RaffleSettings.from_row(row)
        logger.info(
            f"Raffle settings updated: {settings.participants_limit} participants, "
            f"bet {settings.bet_amount}, split {settings.winner_percentage}/{settings.organizer_percentage}"
        )
        return settings

    async def ensure_defaults(
        self, participants_limit: int, bet_amount: int, winner_percentage: int
    ) -> Optional[RaffleSettings]:
        """Seed the first settings row; returns it, or ``None`` if rows already exist."""
        organizer_percentage = 100 - winner_percentage
        validate_settings(participants_limit, bet_amount, winner_percentage, organizer_percentage)

        async with self.pool.transaction() as conn:
            existing = await self.fetch_one_in(conn, "SELECT 1 FROM raffle_settings LIMIT 1")
            if existing:
                return None
            row = await self.fetch_one_in(
                conn,
                """
                INSERT INTO raffle_settings
                    (participants_limit, bet_amount, winner_percentage, organizer_percentage, is_active, created_at)
                VALUES (?, ?, ?, ?, 1, ?)
                RETURNING *
                """,
                (participants_limit, bet_amount, winner_percentage, organizer_percentage, now_db()),
            )
        logger.info("Seeded default raffle settings")
        return RaffleSettings.from_row(row)
