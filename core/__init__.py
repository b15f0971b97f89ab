"""Core application components."""

# Import in correct order to avoid circular dependencies
from core.logger import setup_logger, get_logger
from core.constants import (
    CacheDefaults,
    DatabaseDefaults,
    RaffleDefaults,
    HistoryDefaults,
    NotificationDefaults,
    RaffleStatus,
    ParticipationStatus,
    LedgerKind,
    RaffleEventType,
)
from core.exceptions import (
    ApplicationError,
    ConfigurationError,
    ValidationError,
    DatabaseError,
    ConnectionPoolError,
    RepositoryError,
    RaffleAlreadyActiveError,
    ServiceError,
    RaffleSystemError,
    RaffleError,
    RaffleNotFoundError,
    AlreadyParticipatedError,
    RaffleFullError,
    InsufficientParticipantsError,
    RaffleAlreadyTerminalError,
    RaffleNotActiveError,
)

__all__ = [
    # Logging
    'setup_logger',
    'get_logger',
    # Constants
    'CacheDefaults',
    'DatabaseDefaults',
    'RaffleDefaults',
    'HistoryDefaults',
    'NotificationDefaults',
    'RaffleStatus',
    'ParticipationStatus',
    'LedgerKind',
    'RaffleEventType',
    # Exceptions
    'ApplicationError',
    'ConfigurationError',
    'ValidationError',
    'DatabaseError',
    'ConnectionPoolError',
    'RepositoryError',
    'RaffleAlreadyActiveError',
    'ServiceError',
    'RaffleSystemError',
    'RaffleError',
    'RaffleNotFoundError',
    'AlreadyParticipatedError',
    'RaffleFullError',
    'InsufficientParticipantsError',
    'RaffleAlreadyTerminalError',
    'RaffleNotActiveError',
]
