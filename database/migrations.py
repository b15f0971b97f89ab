"""Database schema migrations."""

from __future__ import annotations

from .connection import OptimizedSQLitePool


SCHEMA_SQL: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS raffle_settings (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        participants_limit INTEGER NOT NULL CHECK (participants_limit >= 2),
        bet_amount INTEGER NOT NULL CHECK (bet_amount >= 1),
        winner_percentage INTEGER NOT NULL,
        organizer_percentage INTEGER NOT NULL,
        is_active BOOLEAN NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL,
        CHECK (winner_percentage + organizer_percentage = 100)
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_raffle_settings_active ON raffle_settings(is_active, id);",
    """
    CREATE TABLE IF NOT EXISTS raffles (
        id TEXT PRIMARY KEY,
        required_participants INTEGER NOT NULL CHECK (required_participants >= 2),
        bet_amount INTEGER NOT NULL CHECK (bet_amount >= 1),
        winner_share_percent INTEGER NOT NULL,
        current_participants INTEGER NOT NULL DEFAULT 0,
        total_pot INTEGER NOT NULL DEFAULT 0,
        status TEXT NOT NULL DEFAULT 'active'
            CHECK (status IN ('active', 'completed', 'cancelled')),
        winner_id BIGINT,
        winner_amount INTEGER,
        organizer_amount INTEGER,
        random_seed TEXT,
        cancel_reason TEXT,
        created_at TEXT NOT NULL,
        completed_at TEXT,
        CHECK (current_participants <= required_participants),
        CHECK ((status = 'completed') = (winner_id IS NOT NULL AND random_seed IS NOT NULL))
    );
    """,
    # At most one raffle may be active at any time
    "CREATE UNIQUE INDEX IF NOT EXISTS uq_raffles_single_active ON raffles(status) WHERE status = 'active';",
    "CREATE INDEX IF NOT EXISTS idx_raffles_completed_at ON raffles(status, completed_at);",
    """
    CREATE TABLE IF NOT EXISTS participations (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        raffle_id TEXT NOT NULL,
        user_id BIGINT NOT NULL,
        amount INTEGER NOT NULL CHECK (amount >= 1),
        status TEXT NOT NULL DEFAULT 'confirmed',
        placed_at TEXT NOT NULL,
        UNIQUE (raffle_id, user_id),
        FOREIGN KEY(raffle_id) REFERENCES raffles(id)
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_participations_order ON participations(raffle_id, placed_at, id);",
    "CREATE INDEX IF NOT EXISTS idx_participations_user ON participations(user_id, placed_at);",
    """
    CREATE TABLE IF NOT EXISTS ledger_entries (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id BIGINT,
        amount INTEGER NOT NULL,
        kind TEXT NOT NULL CHECK (kind IN ('bet', 'win', 'refund', 'fee')),
        raffle_id TEXT,
        participation_id INTEGER,
        created_at TEXT NOT NULL,
        FOREIGN KEY(raffle_id) REFERENCES raffles(id),
        FOREIGN KEY(participation_id) REFERENCES participations(id)
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_ledger_raffle ON ledger_entries(raffle_id, kind);",
    "CREATE INDEX IF NOT EXISTS idx_ledger_user ON ledger_entries(user_id, created_at);",
    # The ledger is append-only
    """
    CREATE TRIGGER IF NOT EXISTS trg_ledger_no_update
    BEFORE UPDATE ON ledger_entries
    BEGIN
        SELECT RAISE(ABORT, 'ledger entries are immutable');
    END;
    """,
    """
    CREATE TRIGGER IF NOT EXISTS trg_ledger_no_delete
    BEFORE DELETE ON ledger_entries
    BEGIN
        SELECT RAISE(ABORT, 'ledger entries are immutable');
    END;
    """,
)


async def run_migrations(pool: OptimizedSQLitePool) -> None:
    async with pool.transaction() as conn:
        for statement in SCHEMA_SQL:
            await conn.execute(statement)
