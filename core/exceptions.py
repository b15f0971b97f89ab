"""Application-wide exception classes."""

from __future__ import annotations

from typing import Optional


class ApplicationError(Exception):
    """Base exception for all application errors."""
    pass


class ConfigurationError(ApplicationError):
    """Raised when raffle settings are missing or invalid."""
    pass


class ValidationError(ApplicationError):
    """Raised when caller input fails validation."""
    pass


class DatabaseError(ApplicationError):
    """Base exception for database-related errors."""
    pass


class ConnectionPoolError(DatabaseError):
    """Raised when database connection pool has issues."""
    pass


class RepositoryError(DatabaseError):
    """Raised when repository operation fails."""
    pass


class RaffleAlreadyActiveError(RepositoryError):
    """Raised when creating a raffle while another one is still active."""
    pass


class ServiceError(ApplicationError):
    """Base exception for service-level errors."""
    pass


class RaffleSystemError(ServiceError):
    """Raised when storage fails unexpectedly during a raffle operation.

    Nothing was committed; the caller may retry.
    """
    pass


class RaffleError(ServiceError):
    """Base class for expected raffle outcomes the caller must branch on."""

    def __init__(self, message: str, raffle_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.raffle_id = raffle_id


class RaffleNotFoundError(RaffleError):
    """Raised when the raffle does not exist."""
    pass


class AlreadyParticipatedError(RaffleError):
    """Raised when the user already has a stake in the raffle."""
    pass


class RaffleFullError(RaffleError):
    """Raised when the raffle has no free slots."""
    pass


class InsufficientParticipantsError(RaffleError):
    """Raised when there are no participants to draw from."""
    pass


class RaffleAlreadyTerminalError(RaffleError):
    """Raised when the raffle is already completed or cancelled."""
    pass


class RaffleNotActiveError(RaffleAlreadyTerminalError):
    """Raised when admitting into a raffle that no longer accepts bets."""
    pass
