"""Application-wide constants and configuration values."""

from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet


# Cache constants
class CacheDefaults:
    """Default cache configuration."""
    CURRENT_RAFFLE_TTL = 30  # seconds
    CURRENT_RAFFLE_KEY = "raffle:current"


# Database constants
class DatabaseDefaults:
    """Default database configuration."""
    POOL_SIZE = 10
    BUSY_TIMEOUT = 5000  # milliseconds


# Raffle constants
class RaffleDefaults:
    """Raffle game rules."""
    SEED_RANDOM_BYTES = 32
    MIN_PARTICIPANTS = 2
    MAX_PARTICIPANTS = 1000
    MIN_BET = 1
    MAX_BET = 100
    DEFAULT_PARTICIPANTS = 10
    DEFAULT_BET = 1
    DEFAULT_WINNER_PERCENT = 70
    MAX_DURATION_HOURS = 24
    # Re-resolve the current raffle this many times when it terminates under us
    MAX_ADMIT_ATTEMPTS = 3
    CANCEL_REASON = "Cancelled by admin"


class HistoryDefaults:
    """Pagination for history reads."""
    LIMIT = 10
    MAX_LIMIT = 100


# Status enums
class RaffleStatus(str, Enum):
    """Raffle lifecycle status."""
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    def can_transition_to(self, target: "RaffleStatus") -> bool:
        return target in _TRANSITIONS[self]


_TRANSITIONS: Dict[RaffleStatus, FrozenSet[RaffleStatus]] = {
    RaffleStatus.ACTIVE: frozenset({RaffleStatus.COMPLETED, RaffleStatus.CANCELLED}),
    RaffleStatus.COMPLETED: frozenset(),
    RaffleStatus.CANCELLED: frozenset(),
}


class ParticipationStatus(str, Enum):
    """Participation status. Failed attempts are never stored."""
    CONFIRMED = "confirmed"


class LedgerKind(str, Enum):
    """Balance-affecting event kinds."""
    BET = "bet"
    WIN = "win"
    REFUND = "refund"
    FEE = "fee"


class RaffleEventType(str, Enum):
    """Events delivered to the notification sink."""
    COMPLETED = "raffle_completed"
    CANCELLED = "raffle_cancelled"


# Notification settings
class NotificationDefaults:
    """Notification service defaults."""
    SEND_DELAY = 0.1  # seconds between messages
    PLAY_BUTTON_TEXT = "🎮 Play Again"
    WEBAPP_URL = "https://t.me/your_bot_username"
