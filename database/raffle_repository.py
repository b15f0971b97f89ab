"""Raffle and participation persistence.

Every mutating method runs inside ``pool.transaction()``: the raffle row is
re-read after the write lock is taken, checked, and written before commit.
Checks made outside that scope are never trusted.
"""

from __future__ import annotations

import uuid
from typing import Callable, Dict, Iterable, List, Optional, Union

import aiosqlite

from core.constants import LedgerKind, RaffleStatus
from core.exceptions import (
    AlreadyParticipatedError,
    RaffleAlreadyActiveError,
    RaffleAlreadyTerminalError,
    RaffleFullError,
    RaffleNotActiveError,
    RaffleNotFoundError,
    RepositoryError,
    ValidationError,
)
from core.logger import get_logger
from database.base_repository import BaseRepository
from database.connection import OptimizedSQLitePool
from database.ledger import LedgerRepository
from database.models import AdmitResult, Participation, Raffle, UserRaffleRecord
from utils.timeutils import now_db
from utils.validators import validate_settings

logger = get_logger(__name__)

ChangeListener = Callable[[], None]


class RaffleRepository(BaseRepository):
    """Owns writes to raffles, participations and their ledger entries."""

    def __init__(
        self,
        pool: OptimizedSQLitePool,
        ledger: Optional[LedgerRepository] = None,
        on_change: Iterable[ChangeListener] = (),
    ) -> None:
        super().__init__(pool)
        self.ledger = ledger or LedgerRepository(pool)
        self._listeners: List[ChangeListener] = list(on_change)

    def add_change_listener(self, listener: ChangeListener) -> None:
        """Register a callback fired after every committed mutation."""
        self._listeners.append(listener)

    def _changed(self) -> None:
        for listener in self._listeners:
            listener()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_active_raffle(self) -> Optional[Raffle]:
        row = await self.fetch_one(
            "SELECT * FROM raffles WHERE status = ? ORDER BY created_at ASC LIMIT 1",
            (RaffleStatus.ACTIVE.value,),
        )
        return Raffle.from_row(row) if row else None

    async def get_raffle(self, raffle_id: str) -> Optional[Raffle]:
        row = await self.fetch_one("SELECT * FROM raffles WHERE id = ?", (raffle_id,))
        return Raffle.from_row(row) if row else None

    async def get_participants(self, raffle_id: str) -> List[Participation]:
        """Participants in draw order: ``placed_at`` then insertion id."""
        rows = await self.fetch_all(
            """
            SELECT * FROM participations
            WHERE raffle_id = ? AND status = 'confirmed'
            ORDER BY placed_at ASC, id ASC
            """,
            (raffle_id,),
        )
        return [Participation.from_row(row) for row in rows]

    async def has_participation(self, raffle_id: str, user_id: int) -> bool:
        value = await self.fetch_value(
            "SELECT 1 FROM participations WHERE raffle_id = ? AND user_id = ?",
            (raffle_id, user_id),
        )
        return value is not None

    async def get_history(self, limit: int, offset: int) -> List[Raffle]:
        rows = await self.fetch_all(
            """
            SELECT * FROM raffles
            WHERE status IN ('completed', 'cancelled')
            ORDER BY completed_at DESC, id
            LIMIT ? OFFSET ?
            """,
            (limit, offset),
        )
        return [Raffle.from_row(row) for row in rows]

    async def get_user_history(self, user_id: int, limit: int, offset: int) -> List[UserRaffleRecord]:
        rows = await self.fetch_all(
            """
            SELECT r.*, p.amount AS stake, p.placed_at AS stake_placed_at
            FROM participations p
            JOIN raffles r ON r.id = p.raffle_id
            WHERE p.user_id = ? AND p.status = 'confirmed'
            ORDER BY r.created_at DESC, p.id DESC
            LIMIT ? OFFSET ?
            """,
            (user_id, limit, offset),
        )
        return [UserRaffleRecord.from_row(row, user_id) for row in rows]

    async def get_aggregate_stats(self) -> Dict[str, Union[int, float]]:
        row = await self.fetch_one(
            """
            SELECT
                COUNT(*) AS total_raffles,
                COALESCE(SUM(CASE WHEN status = 'completed' THEN 1 ELSE 0 END), 0) AS completed_raffles,
                COALESCE(SUM(CASE WHEN status = 'cancelled' THEN 1 ELSE 0 END), 0) AS cancelled_raffles,
                COALESCE(SUM(CASE WHEN status = 'active' THEN 1 ELSE 0 END), 0) AS active_raffles,
                COALESCE(SUM(total_pot), 0) AS total_volume,
                COALESCE(SUM(organizer_amount), 0) AS total_fees,
                COALESCE(AVG(current_participants), 0) AS avg_participants,
                COALESCE(AVG(CASE WHEN status = 'completed'
                    THEN (julianday(completed_at) - julianday(created_at)) * 1440 END), 0)
                    AS avg_completion_time_minutes,
                COALESCE(SUM(CASE WHEN status = 'completed'
                    AND julianday(completed_at) >= julianday('now', 'start of day') THEN 1 ELSE 0 END), 0)
                    AS completed_today,
                COALESCE(SUM(CASE WHEN status = 'completed'
                    AND julianday(completed_at) >= julianday('now', 'start of day') THEN total_pot ELSE 0 END), 0)
                    AS volume_today
            FROM raffles
            """
        )
        unique_participants = await self.fetch_value(
            "SELECT COUNT(DISTINCT user_id) FROM participations WHERE status = 'confirmed'"
        )
        return {
            "total_raffles": int(row["total_raffles"]),
            "completed_raffles": int(row["completed_raffles"]),
            "cancelled_raffles": int(row["cancelled_raffles"]),
            "active_raffles": int(row["active_raffles"]),
            "total_volume": int(row["total_volume"]),
            "total_fees": int(row["total_fees"]),
            "avg_participants": round(float(row["avg_participants"]), 2),
            "unique_participants": int(unique_participants or 0),
            "avg_completion_time_minutes": round(float(row["avg_completion_time_minutes"]), 2),
            "completed_today": int(row["completed_today"]),
            "volume_today": int(row["volume_today"]),
        }

    # ------------------------------------------------------------------
    # Atomic mutations
    # ------------------------------------------------------------------

    async def create_raffle(
        self, required_participants: int, bet_amount: int, winner_share_percent: int
    ) -> Raffle:
        """Insert a new active raffle with zero participants.

        Raises:
            ConfigurationError: If the settings snapshot is invalid
            RaffleAlreadyActiveError: If another raffle is still active
        """
        validate_settings(
            required_participants, bet_amount, winner_share_percent, 100 - winner_share_percent
        )
        raffle_id = uuid.uuid4().hex
        try:
            async with self.pool.transaction() as conn:
                active = await self.fetch_one_in(
                    conn, "SELECT id FROM raffles WHERE status = 'active' LIMIT 1"
                )
                if active:
                    raise RaffleAlreadyActiveError(f"Raffle {active['id']} is still active")
                row = await self.fetch_one_in(
                    conn,
                    """
                    INSERT INTO raffles
                        (id, required_participants, bet_amount, winner_share_percent, status, created_at)
                    VALUES (?, ?, ?, ?, 'active', ?)
                    RETURNING *
                    """,
                    (raffle_id, required_participants, bet_amount, winner_share_percent, now_db()),
                )
        except aiosqlite.IntegrityError as e:
            # The partial unique index is the last line against a second active raffle
            raise RaffleAlreadyActiveError("Another raffle is already active") from e

        raffle = Raffle.from_row(row)
        self._changed()
        logger.info(
            f"New raffle created: {raffle.id} "
            f"({raffle.required_participants} x {raffle.bet_amount}, winner {raffle.winner_share_percent}%)"
        )
        return raffle

    async def try_admit(self, raffle_id: str, user_id: int, amount: int) -> AdmitResult:
        """Record a stake; the capacity check and the increment share one lock scope.

        Raises:
            RaffleNotFoundError, RaffleNotActiveError, AlreadyParticipatedError, RaffleFullError
        """
        async with self.pool.transaction() as conn:
            raffle = await self._load_locked(conn, raffle_id)
            if raffle.status is not RaffleStatus.ACTIVE:
                raise RaffleNotActiveError(f"Raffle {raffle_id} is {raffle.status.value}", raffle_id)
            existing = await self.fetch_one_in(
                conn,
                "SELECT id FROM participations WHERE raffle_id = ? AND user_id = ?",
                (raffle_id, user_id),
            )
            if existing:
                raise AlreadyParticipatedError(
                    f"User {user_id} already participated in raffle {raffle_id}", raffle_id
                )
            if raffle.is_full:
                raise RaffleFullError(f"Raffle {raffle_id} is full", raffle_id)
            if amount != raffle.bet_amount:
                raise ValidationError(f"Stake must be {raffle.bet_amount}, got {amount}")

            row = await self.fetch_one_in(
                conn,
                """
                INSERT INTO participations (raffle_id, user_id, amount, status, placed_at)
                VALUES (?, ?, ?, 'confirmed', ?)
                RETURNING *
                """,
                (raffle_id, user_id, amount, now_db()),
            )
            participation = Participation.from_row(row)
            row = await self.fetch_one_in(
                conn,
                """
                UPDATE raffles
                SET current_participants = current_participants + 1,
                    total_pot = total_pot + ?
                WHERE id = ?
                RETURNING *
                """,
                (amount, raffle_id),
            )
            updated = Raffle.from_row(row)
            await self.ledger.append(
                conn, user_id, -amount, LedgerKind.BET, raffle_id, participation.id
            )

        self._changed()
        logger.debug(
            f"User {user_id} joined raffle {raffle_id} "
            f"({updated.current_participants}/{updated.required_participants})"
        )
        return AdmitResult(
            raffle=updated,
            participation=participation,
            now_full=updated.current_participants == updated.required_participants,
        )

    async def try_complete(
        self,
        raffle_id: str,
        winner_id: int,
        winner_amount: int,
        organizer_amount: int,
        random_seed: str,
    ) -> Raffle:
        """Mark the raffle completed and write the payout entries exactly once.

        Raises:
            RaffleNotFoundError: If the raffle does not exist
            RaffleAlreadyTerminalError: If another path already completed or cancelled it
            RepositoryError: If the winner or the split is inconsistent with the raffle
        """
        async with self.pool.transaction() as conn:
            raffle = await self._load_locked(conn, raffle_id)
            self._ensure_transition(raffle, RaffleStatus.COMPLETED)
            if winner_amount < 0 or organizer_amount < 0:
                raise RepositoryError("Payout amounts must not be negative")
            if winner_amount + organizer_amount != raffle.total_pot:
                raise RepositoryError(
                    f"Payout {winner_amount}+{organizer_amount} does not match pot {raffle.total_pot}"
                )
            winner_row = await self.fetch_one_in(
                conn,
                "SELECT id FROM participations WHERE raffle_id = ? AND user_id = ?",
                (raffle_id, winner_id),
            )
            if not winner_row:
                raise RepositoryError(f"Winner {winner_id} is not a participant of raffle {raffle_id}")

            row = await self.fetch_one_in(
                conn,
                """
                UPDATE raffles
                SET status = 'completed',
                    winner_id = ?,
                    winner_amount = ?,
                    organizer_amount = ?,
                    random_seed = ?,
                    completed_at = ?
                WHERE id = ?
                RETURNING *
                """,
                (winner_id, winner_amount, organizer_amount, random_seed, now_db(), raffle_id),
            )
            completed = Raffle.from_row(row)
            await self.ledger.append(
                conn, winner_id, winner_amount, LedgerKind.WIN, raffle_id, winner_row["id"]
            )
            await self.ledger.append(conn, None, organizer_amount, LedgerKind.FEE, raffle_id)

        self._changed()
        return completed

    async def cancel(self, raffle_id: str, reason: str) -> List[Participation]:
        """Cancel the raffle and refund every stake in full.

        Raises:
            RaffleNotFoundError: If the raffle does not exist
            RaffleAlreadyTerminalError: If the raffle is already completed or cancelled
        """
        async with self.pool.transaction() as conn:
            raffle = await self._load_locked(conn, raffle_id)
            self._ensure_transition(raffle, RaffleStatus.CANCELLED)

            rows = await self.fetch_all_in(
                conn,
                """
                SELECT * FROM participations
                WHERE raffle_id = ? AND status = 'confirmed'
                ORDER BY placed_at ASC, id ASC
                """,
                (raffle_id,),
            )
            participations = [Participation.from_row(row) for row in rows]

            await conn.execute(
                """
                UPDATE raffles
                SET status = 'cancelled', cancel_reason = ?, completed_at = ?
                WHERE id = ?
                """,
                (reason, now_db(), raffle_id),
            )
            for participation in participations:
                await self.ledger.append(
                    conn,
                    participation.user_id,
                    participation.amount,
                    LedgerKind.REFUND,
                    raffle_id,
                    participation.id,
                )

        self._changed()
        return participations

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _load_locked(self, conn: aiosqlite.Connection, raffle_id: str) -> Raffle:
        """Read the raffle row on a connection holding the write lock."""
        row = await self.fetch_one_in(conn, "SELECT * FROM raffles WHERE id = ?", (raffle_id,))
        if not row:
            raise RaffleNotFoundError(f"Raffle {raffle_id} not found", raffle_id)
        return Raffle.from_row(row)

    @staticmethod
    def _ensure_transition(raffle: Raffle, target: RaffleStatus) -> None:
        if not raffle.status.can_transition_to(target):
            raise RaffleAlreadyTerminalError(
                f"Raffle {raffle.id} is already {raffle.status.value}", raffle.id
            )
