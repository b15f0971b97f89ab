"""Data access layer models implemented with handcrafted queries."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

from core.constants import LedgerKind, ParticipationStatus, RaffleStatus
from utils.timeutils import from_db


@dataclass(slots=True)
class RaffleSettings:
    id: int
    participants_limit: int
    bet_amount: int
    winner_percentage: int
    organizer_percentage: int
    is_active: bool
    created_at: datetime

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "RaffleSettings":
        return cls(
            id=row["id"],
            participants_limit=row["participants_limit"],
            bet_amount=row["bet_amount"],
            winner_percentage=row["winner_percentage"],
            organizer_percentage=row["organizer_percentage"],
            is_active=bool(row["is_active"]),
            created_at=from_db(row["created_at"]),
        )


@dataclass(slots=True)
class Raffle:
    id: str
    required_participants: int
    bet_amount: int
    winner_share_percent: int
    current_participants: int
    total_pot: int
    status: RaffleStatus
    created_at: datetime
    winner_id: Optional[int] = None
    winner_amount: Optional[int] = None
    organizer_amount: Optional[int] = None
    random_seed: Optional[str] = None
    cancel_reason: Optional[str] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Raffle":
        return cls(
            id=row["id"],
            required_participants=row["required_participants"],
            bet_amount=row["bet_amount"],
            winner_share_percent=row["winner_share_percent"],
            current_participants=row["current_participants"],
            total_pot=row["total_pot"],
            status=RaffleStatus(row["status"]),
            created_at=from_db(row["created_at"]),
            winner_id=row["winner_id"],
            winner_amount=row["winner_amount"],
            organizer_amount=row["organizer_amount"],
            random_seed=row["random_seed"],
            cancel_reason=row["cancel_reason"],
            completed_at=from_db(row["completed_at"]),
        )

    @property
    def is_full(self) -> bool:
        return self.current_participants >= self.required_participants

    @property
    def progress_percent(self) -> float:
        return round(self.current_participants / self.required_participants * 100, 1)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "required_participants": self.required_participants,
            "bet_amount": self.bet_amount,
            "current_participants": self.current_participants,
            "total_pot": self.total_pot,
            "status": self.status.value,
            "progress_percent": self.progress_percent,
            "winner_share_percent": self.winner_share_percent,
            "winner_id": self.winner_id,
            "winner_amount": self.winner_amount,
            "organizer_amount": self.organizer_amount,
            "random_seed": self.random_seed,
            "cancel_reason": self.cancel_reason,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


@dataclass(slots=True)
class Participation:
    id: int
    raffle_id: str
    user_id: int
    amount: int
    status: ParticipationStatus
    placed_at: datetime

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Participation":
        return cls(
            id=row["id"],
            raffle_id=row["raffle_id"],
            user_id=row["user_id"],
            amount=row["amount"],
            status=ParticipationStatus(row["status"]),
            placed_at=from_db(row["placed_at"]),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "raffle_id": self.raffle_id,
            "user_id": self.user_id,
            "amount": self.amount,
            "status": self.status.value,
            "placed_at": self.placed_at.isoformat(),
        }


@dataclass(slots=True)
class LedgerEntry:
    id: int
    user_id: Optional[int]  # None is the operator
    amount: int
    kind: LedgerKind
    raffle_id: Optional[str]
    participation_id: Optional[int]
    created_at: datetime

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "LedgerEntry":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            amount=row["amount"],
            kind=LedgerKind(row["kind"]),
            raffle_id=row["raffle_id"],
            participation_id=row["participation_id"],
            created_at=from_db(row["created_at"]),
        )


@dataclass(slots=True)
class AdmitResult:
    raffle: Raffle
    participation: Participation
    now_full: bool


@dataclass(slots=True)
class UserRaffleRecord:
    """One raffle a user took part in, with their own stake."""
    raffle: Raffle
    stake: int
    placed_at: datetime
    is_winner: bool

    @classmethod
    def from_row(cls, row: Mapping[str, Any], user_id: int) -> "UserRaffleRecord":
        raffle = Raffle.from_row(row)
        return cls(
            raffle=raffle,
            stake=row["stake"],
            placed_at=from_db(row["stake_placed_at"]),
            is_winner=raffle.winner_id == user_id,
        )
