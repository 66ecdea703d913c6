"""SQLite implementation of the StateStore protocol."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from bt_intercomm.models.attempts import AttemptState, RegistrationAttempt
from bt_intercomm.models.events import ChainEvent, EventIdentity, ProposedBrandedToken
from bt_intercomm.models.records import ActivityRecord, AttemptRecord
from bt_intercomm.models.tasks import PendingTask, TaskState

SCHEMA = """
-- Last utility chain block scanned for events
CREATE TABLE IF NOT EXISTS cursor (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    last_block INTEGER NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Confirmation-delay tasks
CREATE TABLE IF NOT EXISTS pending_tasks (
    block_number INTEGER NOT NULL,
    log_index INTEGER NOT NULL,
    uuid TEXT NOT NULL,
    transaction_hash TEXT NOT NULL DEFAULT '',
    symbol TEXT NOT NULL,
    name TEXT NOT NULL,
    conversion_rate TEXT NOT NULL,
    requester TEXT NOT NULL,
    token TEXT NOT NULL,
    ready_at_block INTEGER NOT NULL,
    seq INTEGER NOT NULL,
    state TEXT NOT NULL DEFAULT 'waiting',
    error TEXT,
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at TEXT NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (block_number, log_index, uuid)
);
CREATE INDEX IF NOT EXISTS idx_tasks_state ON pending_tasks(state);

-- Finished registration attempts
CREATE TABLE IF NOT EXISTS attempts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    uuid TEXT NOT NULL,
    symbol TEXT NOT NULL,
    state TEXT NOT NULL,
    step1_status TEXT NOT NULL,
    step1_tx_hash TEXT,
    step2_status TEXT NOT NULL,
    step2_tx_hash TEXT,
    reason TEXT,
    started_at TEXT NOT NULL,
    completed_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_attempts_uuid ON attempts(uuid);
CREATE INDEX IF NOT EXISTS idx_attempts_state ON attempts(state);

-- Activity log
CREATE TABLE IF NOT EXISTS activity_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    event_type TEXT NOT NULL,
    uuid TEXT,
    tx_hash TEXT,
    message TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_activity_created ON activity_log(created_at);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteStateStore:
    """SQLite-backed implementation of the StateStore protocol."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self._db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(SCHEMA)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        assert self._db is not None, "Store not initialized. Call initialize() first."
        return self._db

    # ── Cursor ─────────────────────────────────────────────

    async def get_cursor(self) -> int | None:
        async with self.db.execute("SELECT last_block FROM cursor WHERE id=1") as cur:
            row = await cur.fetchone()
            return row["last_block"] if row else None

    async def set_cursor(self, block: int) -> None:
        await self.db.execute(
            "INSERT INTO cursor (id, last_block, updated_at) VALUES (1, ?, ?)"
            " ON CONFLICT(id) DO UPDATE SET last_block=excluded.last_block,"
            " updated_at=excluded.updated_at",
            (block, _now()),
        )
        await self.db.commit()

    # ── Tasks ──────────────────────────────────────────────

    async def save_task(self, task: PendingTask) -> None:
        event = task.event
        p = event.payload
        now = _now()
        # conversion_rate is stored as text: uint256 overflows SQLite INTEGER
        await self.db.execute(
            "INSERT OR REPLACE INTO pending_tasks"
            " (block_number, log_index, uuid, transaction_hash, symbol, name,"
            "  conversion_rate, requester, token, ready_at_block, seq, state, error,"
            "  created_at, updated_at)"
            " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                event.block_number, event.log_index, p.uuid, event.transaction_hash,
                p.symbol, p.name, str(p.conversion_rate), p.requester, p.token,
                task.ready_at_block, task.seq, task.state.value, task.error,
                task.created_at or now, now,
            ),
        )
        await self.db.commit()

    async def update_task_state(
        self, identity: EventIdentity, state: TaskState, error: str | None = None,
    ) -> None:
        block_number, log_index, uuid = identity
        await self.db.execute(
            "UPDATE pending_tasks SET state=?, error=?, updated_at=?"
            " WHERE block_number=? AND log_index=? AND uuid=?",
            (state.value, error, _now(), block_number, log_index, uuid),
        )
        await self.db.commit()

    async def get_tasks(self, states: list[str] | None = None) -> list[PendingTask]:
        if states:
            placeholders = ",".join("?" for _ in states)
            query = f"SELECT * FROM pending_tasks WHERE state IN ({placeholders}) ORDER BY seq"
            params: tuple = tuple(states)
        else:
            query = "SELECT * FROM pending_tasks ORDER BY seq"
            params = ()
        async with self.db.execute(query, params) as cur:
            return [_row_to_task(row) async for row in cur]

    async def delete_tasks(self, identities: list[EventIdentity]) -> None:
        await self.db.executemany(
            "DELETE FROM pending_tasks WHERE block_number=? AND log_index=? AND uuid=?",
            identities,
        )
        await self.db.commit()

    # ── Attempts ───────────────────────────────────────────

    async def save_attempt(self, attempt: RegistrationAttempt) -> None:
        await self.db.execute(
            "INSERT INTO attempts"
            " (uuid, symbol, state, step1_status, step1_tx_hash, step2_status,"
            "  step2_tx_hash, reason, started_at, completed_at)"
            " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                attempt.uuid, attempt.symbol, attempt.state.value,
                attempt.step1.status.value, attempt.step1.tx_hash,
                attempt.step2.status.value, attempt.step2.tx_hash,
                attempt.failure_reason, attempt.started_at, attempt.completed_at,
            ),
        )
        await self.db.commit()

    async def get_attempts(
        self, limit: int = 50, state: str | None = None,
    ) -> list[AttemptRecord]:
        if state:
            AttemptState(state)  # reject unknown states early
            query = "SELECT * FROM attempts WHERE state=? ORDER BY id DESC LIMIT ?"
            params: tuple = (state, limit)
        else:
            query = "SELECT * FROM attempts ORDER BY id DESC LIMIT ?"
            params = (limit,)
        async with self.db.execute(query, params) as cur:
            return [
                AttemptRecord(
                    id=row["id"],
                    uuid=row["uuid"],
                    symbol=row["symbol"],
                    state=row["state"],
                    step1_status=row["step1_status"],
                    step1_tx_hash=row["step1_tx_hash"],
                    step2_status=row["step2_status"],
                    step2_tx_hash=row["step2_tx_hash"],
                    reason=row["reason"],
                    started_at=row["started_at"],
                    completed_at=row["completed_at"],
                )
                async for row in cur
            ]

    # ── Activity ───────────────────────────────────────────

    async def log_activity(
        self,
        event_type: str,
        message: str,
        uuid: str | None = None,
        tx_hash: str | None = None,
    ) -> None:
        await self.db.execute(
            "INSERT INTO activity_log (event_type, uuid, tx_hash, message, created_at)"
            " VALUES (?, ?, ?, ?, ?)",
            (event_type, uuid, tx_hash, message, _now()),
        )
        await self.db.commit()

    async def get_recent_activity(self, limit: int = 50) -> list[ActivityRecord]:
        async with self.db.execute(
            "SELECT * FROM activity_log ORDER BY id DESC LIMIT ?", (limit,)
        ) as cur:
            return [
                ActivityRecord(
                    id=row["id"],
                    event_type=row["event_type"],
                    uuid=row["uuid"],
                    tx_hash=row["tx_hash"],
                    message=row["message"],
                    created_at=row["created_at"],
                )
                async for row in cur
            ]


def _row_to_task(row: aiosqlite.Row) -> PendingTask:
    event = ChainEvent(
        block_number=row["block_number"],
        log_index=row["log_index"],
        payload=ProposedBrandedToken(
            symbol=row["symbol"],
            name=row["name"],
            conversion_rate=int(row["conversion_rate"]),
            requester=row["requester"],
            token=row["token"],
            uuid=row["uuid"],
        ),
        transaction_hash=row["transaction_hash"],
    )
    return PendingTask(
        event=event,
        ready_at_block=row["ready_at_block"],
        seq=row["seq"],
        state=TaskState(row["state"]),
        error=row["error"],
        created_at=row["created_at"],
    )
