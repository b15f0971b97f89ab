"""Base repository pattern for database operations."""

from __future__ import annotations

from typing import Any, List, Optional, Sequence

import aiosqlite

from database.connection import OptimizedSQLitePool


class BaseRepository:
    """Base repository with common read helpers bound to one pool."""

    def __init__(self, pool: OptimizedSQLitePool) -> None:
        self.pool = pool

    async def fetch_one(self, query: str, params: Sequence[Any] = ()) -> Optional[aiosqlite.Row]:
        """Fetch a single row."""
        async with self.pool.connection() as conn:
            async with conn.execute(query, params) as cursor:
                return await cursor.fetchone()

    async def fetch_all(self, query: str, params: Sequence[Any] = ()) -> List[aiosqlite.Row]:
        """Fetch all rows."""
        async with self.pool.connection() as conn:
            async with conn.execute(query, params) as cursor:
                return list(await cursor.fetchall())

    async def fetch_value(self, query: str, params: Sequence[Any] = ()) -> Optional[Any]:
        """Fetch a single value from a single row."""
        row = await self.fetch_one(query, params)
        return row[0] if row else None

    @staticmethod
    async def fetch_one_in(
        conn: aiosqlite.Connection, query: str, params: Sequence[Any] = ()
    ) -> Optional[aiosqlite.Row]:
        """Fetch a single row on a connection that already holds a transaction."""
        async with conn.execute(query, params) as cursor:
            return await cursor.fetchone()

    @staticmethod
    async def fetch_all_in(
        conn: aiosqlite.Connection, query: str, params: Sequence[Any] = ()
    ) -> List[aiosqlite.Row]:
        async with conn.execute(query, params) as cursor:
            return list(await cursor.fetchall())
