"""
Database - Generic async query/execute access to the relational store.

The persistence layer only needs parameterized inserts, selects and flag
updates, so the store is reached through the small :class:`Database`
protocol. :class:`SQLiteDatabase` is the bundled backend; it runs the blocking
``sqlite3`` calls in a worker thread so the event loop is never blocked.

All table access goes through :class:`SoftDeleteTable`, which adds the
``is_delete = 0`` predicate to every read it builds. Call sites never filter
soft-deleted rows themselves.
"""

import asyncio
import logging
import re
import sqlite3
import threading
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

# Parameters use the qmark style ("?") shared by sqlite3 and most DB-API drivers.
Params = Sequence[Any]

SCHEMA = """
CREATE TABLE IF NOT EXISTS checkpoints (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    thread_id TEXT NOT NULL,
    checkpoint_ns TEXT NOT NULL DEFAULT 'default',
    checkpoint_id TEXT NOT NULL,
    checkpoint_json TEXT NOT NULL,
    metadata_json TEXT,
    parents_json TEXT,
    is_delete INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS uq_checkpoints_thread_ns_id
ON checkpoints(thread_id, checkpoint_ns, checkpoint_id) WHERE is_delete = 0;

CREATE INDEX IF NOT EXISTS idx_checkpoints_thread_ns_created
ON checkpoints(thread_id, checkpoint_ns, created_at DESC);

CREATE TABLE IF NOT EXISTS checkpoint_writes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    thread_id TEXT NOT NULL,
    checkpoint_ns TEXT NOT NULL DEFAULT 'default',
    checkpoint_id TEXT NOT NULL,
    task_id TEXT NOT NULL,
    idx INTEGER NOT NULL,
    channel TEXT NOT NULL,
    value_type TEXT NOT NULL,
    value_b64 TEXT NOT NULL,
    is_delete INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_checkpoint_writes_checkpoint
ON checkpoint_writes(thread_id, checkpoint_ns, checkpoint_id);

CREATE TABLE IF NOT EXISTS round_summaries (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id TEXT NOT NULL,
    round_number INTEGER NOT NULL,
    summary_content TEXT NOT NULL,
    is_delete INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS uq_round_summaries_session_round
ON round_summaries(session_id, round_number) WHERE is_delete = 0;
"""

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def utc_now() -> str:
    """Current UTC time as ISO 8601 (microsecond precision, sortable as text)."""
    return datetime.now(UTC).isoformat()


@runtime_checkable
class Database(Protocol):
    """Protocol for relational store backends."""

    async def initialize(self) -> None: ...

    async def execute(self, sql: str, params: Params = ()) -> int: ...

    async def fetch_one(self, sql: str, params: Params = ()) -> dict[str, Any] | None: ...

    async def fetch_all(self, sql: str, params: Params = ()) -> list[dict[str, Any]]: ...

    async def close(self) -> None: ...


class SQLiteDatabase:
    """
    SQLite-backed :class:`Database`.

    A single connection is shared; a lock serializes access because the
    blocking calls run on arbitrary worker threads.
    """

    def __init__(self, path: str | Path = ":memory:"):
        """
        Initialize the database.

        Args:
            path: Database file (parent directories are created), or ":memory:"
        """
        self.path = str(path) if str(path) == ":memory:" else Path(path).expanduser()
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            if isinstance(self.path, Path):
                self.path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    async def initialize(self) -> None:
        """Create tables and indexes if absent."""

        def _init():
            with self._lock:
                conn = self._connection()
                conn.executescript(SCHEMA)
                conn.commit()

        await asyncio.to_thread(_init)
        logger.debug(f"Initialized schema at {self.path}")

    async def execute(self, sql: str, params: Params = ()) -> int:
        """Run a statement and commit. Returns the affected row count."""

        def _execute() -> int:
            with self._lock:
                conn = self._connection()
                try:
                    cursor = conn.execute(sql, tuple(params))
                    conn.commit()
                except sqlite3.Error:
                    conn.rollback()
                    raise
                return cursor.rowcount

        return await asyncio.to_thread(_execute)

    async def fetch_one(self, sql: str, params: Params = ()) -> dict[str, Any] | None:
        def _fetch():
            with self._lock:
                row = self._connection().execute(sql, tuple(params)).fetchone()
            return dict(row) if row is not None else None

        return await asyncio.to_thread(_fetch)

    async def fetch_all(self, sql: str, params: Params = ()) -> list[dict[str, Any]]:
        def _fetch():
            with self._lock:
                rows = self._connection().execute(sql, tuple(params)).fetchall()
            return [dict(row) for row in rows]

        return await asyncio.to_thread(_fetch)

    async def close(self) -> None:
        def _close():
            with self._lock:
                if self._conn is not None:
                    self._conn.close()
                    self._conn = None

        await asyncio.to_thread(_close)


def _check_identifier(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


class SoftDeleteTable:
    """
    Table accessor that hides soft-deleted rows.

    Inserts stamp ``is_delete``/``created_at``/``updated_at``; every read adds
    ``is_delete = 0``; deletion only flips the flag.
    """

    def __init__(self, db: Database, name: str):
        self.db = db
        self.name = _check_identifier(name)

    def _where(self, where: dict[str, Any]) -> tuple[str, list[Any]]:
        clauses = ["is_delete = 0"]
        params: list[Any] = []
        for column, value in where.items():
            clauses.append(f"{_check_identifier(column)} = ?")
            params.append(value)
        return " AND ".join(clauses), params

    @staticmethod
    def _order(order_by: Sequence[tuple[str, str]] | None) -> str:
        if not order_by:
            return ""
        parts = []
        for column, direction in order_by:
            direction = direction.upper()
            if direction not in ("ASC", "DESC"):
                raise ValueError(f"Invalid sort direction: {direction!r}")
            parts.append(f"{_check_identifier(column)} {direction}")
        return " ORDER BY " + ", ".join(parts)

    async def insert(self, row: dict[str, Any]) -> None:
        now = utc_now()
        values = {**row, "is_delete": 0, "created_at": now, "updated_at": now}
        columns = ", ".join(_check_identifier(c) for c in values)
        placeholders = ", ".join("?" for _ in values)
        await self.db.execute(
            f"INSERT INTO {self.name} ({columns}) VALUES ({placeholders})",
            list(values.values()),
        )

    async def find(
        self,
        where: dict[str, Any],
        order_by: Sequence[tuple[str, str]] | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        clause, params = self._where(where)
        sql = f"SELECT * FROM {self.name} WHERE {clause}{self._order(order_by)}"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))
        return await self.db.fetch_all(sql, params)

    async def find_one(
        self,
        where: dict[str, Any],
        order_by: Sequence[tuple[str, str]] | None = None,
    ) -> dict[str, Any] | None:
        clause, params = self._where(where)
        sql = f"SELECT * FROM {self.name} WHERE {clause}{self._order(order_by)} LIMIT 1"
        return await self.db.fetch_one(sql, params)

    async def exists(self, where: dict[str, Any]) -> bool:
        clause, params = self._where(where)
        row = await self.db.fetch_one(f"SELECT 1 AS found FROM {self.name} WHERE {clause} LIMIT 1", params)
        return row is not None

    async def soft_delete(self, where: dict[str, Any]) -> int:
        """Flag matching live rows as deleted. Returns the number of rows flagged."""
        clause, params = self._where(where)
        return await self.db.execute(
            f"UPDATE {self.name} SET is_delete = 1, updated_at = ? WHERE {clause}",
            [utc_now(), *params],
        )
