"""Timestamp helpers.

All timestamps are stored as ISO-8601 UTC strings with microseconds so that
lexical order in SQLite matches chronological order.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_db(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def now_db() -> str:
    """Current UTC time formatted for storage."""
    return to_db(utc_now())


def from_db(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
