"""Raffle lifecycle engine.

Admits bets into the current raffle, completes it exactly once when the last
slot fills, and refunds it on cancellation. All state changes go through
``RaffleRepository``; this module only orchestrates them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import aiosqlite

from core.constants import HistoryDefaults, RaffleDefaults, RaffleStatus
from core.exceptions import (
    ConfigurationError,
    DatabaseError,
    RaffleAlreadyActiveError,
    RaffleAlreadyTerminalError,
    RaffleError,
    RaffleFullError,
    RaffleNotActiveError,
    RaffleNotFoundError,
    RaffleSystemError,
    ValidationError,
)
from core.logger import get_logger
from database.models import Participation, Raffle, RaffleSettings, UserRaffleRecord
from database.raffle_repository import RaffleRepository
from database.settings_repository import SettingsRepository
from services.cache import CurrentRaffleCache
from services.events import NotificationSink, RaffleEvent
from services.winner_selector import generate_seed, select_winner_index, verify_draw
from utils.validators import validate_pagination, validate_user_id

logger = get_logger(__name__)

_STORAGE_ERRORS = (DatabaseError, aiosqlite.Error)


@dataclass(slots=True)
class BetResult:
    raffle: Raffle
    participation: Participation
    completed: bool = False
    winner: Optional[Participation] = None
    participants: List[Participation] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "raffle": self.raffle.to_dict(),
            "participation": self.participation.to_dict(),
            "completed": self.completed,
        }
        if self.completed:
            data["winner"] = self.winner.to_dict() if self.winner else None
            data["participants"] = [p.to_dict() for p in self.participants]
        return data


@dataclass(slots=True)
class Eligibility:
    can_participate: bool
    reason: Optional[str] = None
    raffle: Optional[Raffle] = None


class RaffleService:
    """Orchestrates get-or-create, admission, completion and cancellation."""

    def __init__(
        self,
        raffles: RaffleRepository,
        settings: SettingsRepository,
        cache: Optional[CurrentRaffleCache] = None,
        notifier: Optional[NotificationSink] = None,
        seed_factory: Callable[[], str] = generate_seed,
    ) -> None:
        self.raffles = raffles
        self.settings = settings
        self.cache = cache or CurrentRaffleCache()
        self.notifier = notifier
        self._seed_factory = seed_factory
        self.raffles.add_change_listener(self.cache.invalidate)

    # ------------------------------------------------------------------
    # Bets
    # ------------------------------------------------------------------

    async def place_bet(self, user_id: int, raffle_id: Optional[str] = None) -> BetResult:
        """Place the user's stake in the current raffle (or ``raffle_id``).

        Returns:
            BetResult; ``completed`` is set when this bet filled the raffle and
            the draw went through. A failed draw is retried by the next bet.

        Raises:
            AlreadyParticipatedError, RaffleFullError, RaffleNotActiveError,
            RaffleNotFoundError: expected outcomes, the bet was not recorded
            ConfigurationError: If no valid settings exist to create a raffle
            RaffleSystemError: If storage failed before the stake was committed
        """
        validate_user_id(user_id)
        try:
            return await self._place_bet(user_id, raffle_id)
        except (RaffleError, ConfigurationError, ValidationError):
            raise
        except _STORAGE_ERRORS as e:
            logger.error(f"Bet of user {user_id} failed: {e}", exc_info=True)
            raise RaffleSystemError(f"Could not place bet: {e}") from e

    async def _place_bet(self, user_id: int, raffle_id: Optional[str]) -> BetResult:
        # A raffle we picked ourselves may finish before our admission lands;
        # then the next raffle is the right one. An explicit id is never swapped.
        attempts = 1 if raffle_id else RaffleDefaults.MAX_ADMIT_ATTEMPTS
        for attempt in range(1, attempts + 1):
            raffle = await self._resolve_raffle(raffle_id)
            try:
                admitted = await self.raffles.try_admit(raffle.id, user_id, raffle.bet_amount)
                break
            except (RaffleFullError, RaffleNotActiveError) as e:
                closed = await self._settle_full(raffle.id)
                if attempt == attempts:
                    if closed.status is RaffleStatus.COMPLETED:
                        raise RaffleFullError(f"Raffle {raffle.id} is full", raffle.id) from e
                    raise
                logger.debug(f"Raffle {raffle.id} closed before user {user_id} joined; retrying")

        if not admitted.now_full:
            return BetResult(raffle=admitted.raffle, participation=admitted.participation)
        return await self._complete(admitted.raffle, admitted.participation)

    async def _resolve_raffle(self, raffle_id: Optional[str]) -> Raffle:
        if raffle_id:
            raffle = await self.raffles.get_raffle(raffle_id)
            if raffle is None:
                raise RaffleNotFoundError(f"Raffle {raffle_id} not found", raffle_id)
            return raffle
        return await self._get_or_create_active()

    async def _get_or_create_active(self) -> Raffle:
        for _ in range(RaffleDefaults.MAX_ADMIT_ATTEMPTS):
            raffle = await self.raffles.get_active_raffle()
            if raffle:
                return raffle

            settings = await self.settings.get_active()
            if settings is None:
                raise ConfigurationError("No active raffle settings found")
            try:
                return await self.raffles.create_raffle(
                    settings.participants_limit,
                    settings.bet_amount,
                    settings.winner_percentage,
                )
            except RaffleAlreadyActiveError:
                logger.debug("Another caller created the raffle first; re-reading")

        raise RaffleSystemError("Could not resolve an active raffle")

    async def _complete(self, raffle: Raffle, participation: Participation) -> BetResult:
        try:
            drawn = await self._draw_and_complete(raffle)
        except _STORAGE_ERRORS as e:
            # The stake is committed; the next bet or a restart finishes the draw
            logger.error(f"Raffle {raffle.id} is full but its draw failed: {e}", exc_info=True)
            return BetResult(raffle=raffle, participation=participation)

        if drawn is None:
            logger.warning(f"Raffle {raffle.id} was already finished elsewhere; draw skipped")
            return await self._terminal_result(raffle.id, participation)

        completed, winner, participants = drawn
        return BetResult(
            raffle=completed,
            participation=participation,
            completed=True,
            winner=winner,
            participants=participants,
        )

    async def _draw_and_complete(
        self, raffle: Raffle
    ) -> Optional[Tuple[Raffle, Participation, List[Participation]]]:
        """Draw and record the winner; ``None`` if the raffle is already terminal."""
        participants = await self.raffles.get_participants(raffle.id)
        random_seed = self._seed_factory()
        winner = participants[select_winner_index(participants, random_seed, raffle.id)]

        # Floor for the winner, remainder to the organizer: the pot is always fully paid out
        winner_amount = raffle.total_pot * raffle.winner_share_percent // 100
        organizer_amount = raffle.total_pot - winner_amount

        try:
            completed = await self.raffles.try_complete(
                raffle.id, winner.user_id, winner_amount, organizer_amount, random_seed
            )
        except RaffleAlreadyTerminalError:
            return None

        logger.info(
            f"Raffle completed: {completed.id}, winner {winner.user_id} "
            f"gets {winner_amount}, organizer {organizer_amount} of {completed.total_pot}"
        )
        await self._publish(RaffleEvent.completed(completed, winner, participants))
        return completed, winner, participants

    async def _settle_full(self, raffle_id: str) -> Raffle:
        """Complete ``raffle_id`` if it is full but still active, and return its current state."""
        raffle = await self.raffles.get_raffle(raffle_id)
        if raffle.status is RaffleStatus.ACTIVE and raffle.is_full:
            logger.info(f"Raffle {raffle_id} is full but not drawn yet; completing it")
            drawn = await self._draw_and_complete(raffle)
            raffle = drawn[0] if drawn else await self.raffles.get_raffle(raffle_id)
        return raffle

    async def recover_pending_draw(self) -> Optional[Raffle]:
        """Finish an active raffle left full by an interrupted draw.

        Returns:
            The raffle in its terminal state, or ``None`` if nothing was pending
        """
        raffle = await self.raffles.get_active_raffle()
        if raffle is None or not raffle.is_full:
            return None
        return await self._settle_full(raffle.id)

    async def _terminal_result(self, raffle_id: str, participation: Participation) -> BetResult:
        raffle = await self.raffles.get_raffle(raffle_id)
        if raffle.status is RaffleStatus.COMPLETED:
            participants = await self.raffles.get_participants(raffle_id)
            winner = next((p for p in participants if p.user_id == raffle.winner_id), None)
            return BetResult(raffle, participation, True, winner, participants)
        return BetResult(raffle, participation)

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    async def cancel_raffle(
        self, raffle_id: str, reason: str = RaffleDefaults.CANCEL_REASON
    ) -> List[Participation]:
        """Cancel an active raffle and refund every stake.

        Returns:
            The refunded participations

        Raises:
            RaffleNotFoundError: If the raffle does not exist
            RaffleAlreadyTerminalError: If it is already completed or cancelled
            RaffleSystemError: If storage failed; nothing was committed
        """
        try:
            refunded = await self.raffles.cancel(raffle_id, reason)
        except RaffleError:
            raise
        except _STORAGE_ERRORS as e:
            logger.error(f"Cancelling raffle {raffle_id} failed: {e}", exc_info=True)
            raise RaffleSystemError(f"Could not cancel raffle: {e}") from e

        logger.info(f"Raffle cancelled: {raffle_id}, reason: {reason}, refunded {len(refunded)} participants")
        if self.notifier is not None:
            try:
                raffle = await self.raffles.get_raffle(raffle_id)
            except _STORAGE_ERRORS as e:
                logger.error(f"Could not load raffle {raffle_id} for cancellation notice: {e}")
            else:
                await self._publish(RaffleEvent.cancelled(raffle, refunded, reason))
        return refunded

    async def _publish(self, event: RaffleEvent) -> None:
        if self.notifier is None:
            return
        try:
            await self.notifier.publish(event)
        except Exception as e:
            logger.error(
                f"Failed to notify participants of {event.type.value} for raffle {event.raffle.id}: {e}",
                exc_info=True,
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_active_raffle(self) -> Optional[Raffle]:
        """Active raffle for display; may be up to one cache TTL stale."""
        return await self.cache.get_or_load(self.raffles.get_active_raffle)

    async def get_current_raffle(self) -> Raffle:
        """Active raffle for display, creating one from settings if none exists."""
        raffle = await self.get_active_raffle()
        if raffle is None:
            raffle = await self._get_or_create_active()
        return raffle

    async def get_raffle(self, raffle_id: str) -> Raffle:
        raffle = await self.raffles.get_raffle(raffle_id)
        if raffle is None:
            raise RaffleNotFoundError(f"Raffle {raffle_id} not found", raffle_id)
        return raffle

    async def get_participants(self, raffle_id: str) -> List[Participation]:
        return await self.raffles.get_participants(raffle_id)

    async def get_history(self, limit: int = HistoryDefaults.LIMIT, offset: int = 0) -> List[Raffle]:
        limit, offset = validate_pagination(limit, offset)
        return await self.raffles.get_history(limit, offset)

    async def get_user_history(
        self, user_id: int, limit: int = HistoryDefaults.LIMIT, offset: int = 0
    ) -> List[UserRaffleRecord]:
        validate_user_id(user_id)
        limit, offset = validate_pagination(limit, offset)
        return await self.raffles.get_user_history(user_id, limit, offset)

    async def get_aggregate_stats(self) -> Dict[str, Any]:
        return await self.raffles.get_aggregate_stats()

    async def verify_raffle(self, raffle_id: str) -> bool:
        """Replay the stored seed against the stored participant order."""
        raffle = await self.get_raffle(raffle_id)
        if raffle.status is not RaffleStatus.COMPLETED:
            return False
        participants = await self.raffles.get_participants(raffle_id)
        return verify_draw(participants, raffle.random_seed, raffle.id, raffle.winner_id)

    async def can_user_participate(self, user_id: int) -> Eligibility:
        """Advisory pre-check for the UI; ``place_bet`` decides for real."""
        try:
            raffle = await self.get_active_raffle()
            if raffle is None or raffle.status is not RaffleStatus.ACTIVE:
                return Eligibility(False, "No active raffle")
            if raffle.is_full:
                return Eligibility(False, "Raffle is full", raffle)
            if await self.raffles.has_participation(raffle.id, user_id):
                return Eligibility(False, "Already participated", raffle)
            return Eligibility(True, raffle=raffle)
        except _STORAGE_ERRORS as e:
            logger.error(f"Eligibility check for user {user_id} failed: {e}", exc_info=True)
            return Eligibility(False, "System error")

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    async def get_current_settings(self) -> Optional[RaffleSettings]:
        return await self.settings.get_active()

    async def update_settings(
        self,
        participants_limit: int,
        bet_amount: int,
        winner_percentage: int,
        organizer_percentage: int,
    ) -> RaffleSettings:
        """Store new settings; raffles already running keep their snapshot."""
        return await self.settings.update(
            participants_limit, bet_amount, winner_percentage, organizer_percentage
        )

    async def health_check(self) -> Dict[str, Any]:
        try:
            raffle = await self.get_active_raffle()
            settings = await self.settings.get_active()
        except _STORAGE_ERRORS as e:
            logger.error(f"Raffle service health check failed: {e}", exc_info=True)
            return {"status": "unhealthy", "error": str(e)}

        return {
            "status": "healthy",
            "current_raffle": {
                "id": raffle.id,
                "participants": raffle.current_participants,
                "required": raffle.required_participants,
                "status": raffle.status.value,
            } if raffle else None,
            "settings": {
                "participants_limit": settings.participants_limit,
                "bet_amount": settings.bet_amount,
                "winner_percentage": settings.winner_percentage,
            } if settings else None,
            "cache_status": self.cache.stats(),
        }
