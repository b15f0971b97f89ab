"""SQLite connection pool with serialized write transactions."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager, suppress
from pathlib import Path
from typing import AsyncIterator, List

import aiosqlite

from core.exceptions import ConnectionPoolError
from core.logger import get_logger

logger = get_logger(__name__)


class OptimizedSQLitePool:
    """Fixed-size pool of aiosqlite connections.

    Write transactions open with ``BEGIN IMMEDIATE`` which takes the database
    write lock up front. Every mutating repository call therefore holds an
    exclusive lock from its first read to its commit, across tasks, threads
    and processes sharing the same file. WAL mode keeps plain reads from
    blocking on that lock.
    """

    def __init__(self, database_path: str, pool_size: int = 10, busy_timeout_ms: int = 5000) -> None:
        if pool_size < 1:
            raise ConnectionPoolError("Pool size must be at least 1")
        self.database_path = Path(database_path)
        self.pool_size = pool_size
        self.busy_timeout_ms = busy_timeout_ms
        self._connections: List[aiosqlite.Connection] = []
        self._idle: asyncio.Queue[aiosqlite.Connection] = asyncio.Queue()
        self._init_lock = asyncio.Lock()
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def init_pool(self) -> None:
        async with self._init_lock:
            if self._initialized:
                return

            if not self.database_path.parent.exists():
                self.database_path.parent.mkdir(parents=True, exist_ok=True)

            for _ in range(self.pool_size):
                # Autocommit mode: transactions are opened explicitly
                conn = await aiosqlite.connect(self.database_path.as_posix(), isolation_level=None)
                conn.row_factory = aiosqlite.Row
                await self._apply_pragma(conn)
                self._connections.append(conn)
                self._idle.put_nowait(conn)

            self._initialized = True
            logger.debug(f"SQLite pool ready: {self.database_path} ({self.pool_size} connections)")

    async def close(self) -> None:
        async with self._init_lock:
            while self._connections:
                conn = self._connections.pop()
                await conn.close()
            self._idle = asyncio.Queue()
            self._initialized = False

    async def _apply_pragma(self, conn: aiosqlite.Connection) -> None:
        await conn.execute(f"PRAGMA busy_timeout={self.busy_timeout_ms}")
        await conn.execute("PRAGMA journal_mode=WAL")
        await conn.execute("PRAGMA synchronous=NORMAL")
        await conn.execute("PRAGMA foreign_keys=ON")
        await conn.execute("PRAGMA temp_store=MEMORY")

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        if not self._initialized:
            await self.init_pool()
        conn = await self._idle.get()
        try:
            yield conn
        finally:
            self._idle.put_nowait(conn)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Run the block as one atomic unit under the database write lock."""
        async with self.connection() as conn:
            await conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                await conn.rollback()
                raise
            else:
                try:
                    await conn.commit()
                except BaseException:
                    # Never hand a connection with an open transaction back to the pool
                    with suppress(Exception):
                        await conn.rollback()
                    raise


async def init_db_pool(database_path: str, pool_size: int, busy_timeout_ms: int) -> OptimizedSQLitePool:
    pool = OptimizedSQLitePool(database_path=database_path, pool_size=pool_size, busy_timeout_ms=busy_timeout_ms)
    await pool.init_pool()
    return pool
