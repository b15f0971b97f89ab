"""Services package."""

from .cache import CurrentRaffleCache
from .events import NotificationSink, RaffleEvent
from .notification_service import NotificationService
from .raffle_service import BetResult, Eligibility, RaffleService
from .winner_selector import generate_seed, select_winner_index, verify_draw

__all__ = [
    "CurrentRaffleCache",
    "NotificationSink",
    "RaffleEvent",
    "NotificationService",
    "BetResult",
    "Eligibility",
    "RaffleService",
    "generate_seed",
    "select_winner_index",
    "verify_draw",
]
