"""Raffle lifecycle events handed to notification sinks."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Protocol

from core.constants import RaffleEventType
from database.models import Participation, Raffle


@dataclass(slots=True)
class RaffleEvent:
    type: RaffleEventType
    raffle: Raffle
    participants: List[Participation] = field(default_factory=list)
    winner: Optional[Participation] = None
    reason: Optional[str] = None

    @classmethod
    def completed(
        cls, raffle: Raffle, winner: Participation, participants: List[Participation]
    ) -> "RaffleEvent":
        return cls(RaffleEventType.COMPLETED, raffle, list(participants), winner=winner)

    @classmethod
    def cancelled(cls, raffle: Raffle, participants: List[Participation], reason: str) -> "RaffleEvent":
        return cls(RaffleEventType.CANCELLED, raffle, list(participants), reason=reason)


class NotificationSink(Protocol):
    """Receives events after the raffle state is committed.

    Delivery is best-effort and at most once; a failing sink never undoes
    the committed raffle.
    """

    async def publish(self, event: RaffleEvent) -> None:
        ...
