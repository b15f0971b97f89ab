"""Append-only ledger of balance-affecting events."""

from __future__ import annotations

from typing import Iterable, List, Optional

import aiosqlite

from core.constants import LedgerKind
from database.base_repository import BaseRepository
from database.models import LedgerEntry
from utils.timeutils import now_db


class LedgerRepository(BaseRepository):
    """Writes happen only through ``append`` inside a caller's transaction.

    Amounts are signed from the user's point of view: a stake is negative,
    a payout or refund positive. The operator is recorded with a NULL user.
    """

    @staticmethod
    async def append(
        conn: aiosqlite.Connection,
        user_id: Optional[int],
        amount: int,
        kind: LedgerKind,
        raffle_id: Optional[str] = None,
        participation_id: Optional[int] = None,
    ) -> LedgerEntry:
        async with conn.execute(
            """
            INSERT INTO ledger_entries (user_id, amount, kind, raffle_id, participation_id, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            RETURNING *
            """,
            (user_id, amount, kind.value, raffle_id, participation_id, now_db()),
        ) as cursor:
            row = await cursor.fetchone()
        return LedgerEntry.from_row(row)

    async def entries_for_raffle(self, raffle_id: str) -> List[LedgerEntry]:
        rows = await self.fetch_all(
            "SELECT * FROM ledger_entries WHERE raffle_id = ? ORDER BY id",
            (raffle_id,),
        )
        return [LedgerEntry.from_row(row) for row in rows]

    async def sum_for_raffle(self, raffle_id: str, kinds: Optional[Iterable[LedgerKind]] = None) -> int:
        query = "SELECT COALESCE(SUM(amount), 0) FROM ledger_entries WHERE raffle_id = ?"
        params: list = [raffle_id]
        if kinds is not None:
            kind_values = [kind.value for kind in kinds]
            if not kind_values:
                return 0
            query += f" AND kind IN ({','.join('?' * len(kind_values))})"
            params.extend(kind_values)
        return await self.fetch_value(query, params)

    async def user_balance(self, user_id: Optional[int]) -> int:
        """Net ledger balance of a user; ``None`` returns the operator's."""
        if user_id is None:
            return await self.fetch_value(
                "SELECT COALESCE(SUM(amount), 0) FROM ledger_entries WHERE user_id IS NULL"
            )
        return await self.fetch_value(
            "SELECT COALESCE(SUM(amount), 0) FROM ledger_entries WHERE user_id = ?",
            (user_id,),
        )
