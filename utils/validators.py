"""Input validation helpers."""

from __future__ import annotations

from typing import Tuple

from core.constants import HistoryDefaults, RaffleDefaults
from core.exceptions import ConfigurationError, ValidationError


def validate_settings(
    participants_limit: int,
    bet_amount: int,
    winner_percentage: int,
    organizer_percentage: int,
) -> None:
    """Validate a raffle settings snapshot.

    Raises:
        ConfigurationError: If any value is out of range
    """
    if not RaffleDefaults.MIN_PARTICIPANTS <= participants_limit <= RaffleDefaults.MAX_PARTICIPANTS:
        raise ConfigurationError(
            f"Participants limit must be between {RaffleDefaults.MIN_PARTICIPANTS} "
            f"and {RaffleDefaults.MAX_PARTICIPANTS}"
        )
    if not RaffleDefaults.MIN_BET <= bet_amount <= RaffleDefaults.MAX_BET:
        raise ConfigurationError(
            f"Bet amount must be between {RaffleDefaults.MIN_BET} and {RaffleDefaults.MAX_BET} stars"
        )
    if not (0 <= winner_percentage <= 100 and 0 <= organizer_percentage <= 100):
        raise ConfigurationError("Percentages must be between 0 and 100")
    if winner_percentage + organizer_percentage != 100:
        raise ConfigurationError("Winner and organizer percentages must sum to 100")


def validate_user_id(user_id: int) -> int:
    # bool is an int subclass, reject it explicitly
    if isinstance(user_id, bool) or not isinstance(user_id, int) or user_id <= 0:
        raise ValidationError(f"Invalid user id: {user_id!r}")
    return user_id


def validate_pagination(limit: int, offset: int) -> Tuple[int, int]:
    """Check history pagination arguments."""
    if limit < 1 or limit > HistoryDefaults.MAX_LIMIT:
        raise ValidationError(f"Limit must be between 1 and {HistoryDefaults.MAX_LIMIT}")
    if offset < 0:
        raise ValidationError("Offset must not be negative")
    return limit, offset
