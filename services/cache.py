"""Short-lived read-through cache for the current raffle."""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from cachetools import TTLCache

from core.constants import CacheDefaults
from database.models import Raffle

RaffleLoader = Callable[[], Awaitable[Optional[Raffle]]]

_MISSING = object()


class CurrentRaffleCache:
    """Advisory cache of ``get_active_raffle()`` results.

    Only display reads go through it. Admission, completion and cancellation
    always re-read the locked row, and the repository calls ``invalidate``
    after every commit.
    """

    def __init__(
        self,
        ttl: int = CacheDefaults.CURRENT_RAFFLE_TTL,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self._cache: TTLCache = TTLCache(maxsize=1, ttl=ttl, timer=timer)
        self._lock = asyncio.Lock()
        self._generation = 0
        self.hits = 0
        self.misses = 0

    async def get_or_load(self, loader: RaffleLoader) -> Optional[Raffle]:
        """Return the cached raffle, or load and cache it.

        Concurrent misses share a single load. ``None`` results are cached too
        so pollers do not hammer the database between raffles.
        """
        value = self._cache.get(CacheDefaults.CURRENT_RAFFLE_KEY, _MISSING)
        if value is not _MISSING:
            self.hits += 1
            return value

        async with self._lock:
            value = self._cache.get(CacheDefaults.CURRENT_RAFFLE_KEY, _MISSING)
            if value is not _MISSING:
                self.hits += 1
                return value

            self.misses += 1
            generation = self._generation
            value = await loader()
            # Drop the result if a mutation landed while it was loading
            if generation == self._generation:
                self._cache[CacheDefaults.CURRENT_RAFFLE_KEY] = value
            return value

    def peek(self) -> Optional[Raffle]:
        return self._cache.get(CacheDefaults.CURRENT_RAFFLE_KEY)

    def invalidate(self) -> None:
        self._generation += 1
        self._cache.pop(CacheDefaults.CURRENT_RAFFLE_KEY, None)

    def stats(self) -> Dict[str, Any]:
        return {
            "has_cache": CacheDefaults.CURRENT_RAFFLE_KEY in self._cache,
            "ttl": self.ttl,
            "hits": self.hits,
            "misses": self.misses,
        }
