from __future__ import annotations

import asyncio
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, AsyncIterator, Callable, TypeVar

import orjson
from pydantic import ValidationError

from ..core.entry import AuditEntry, IntegrityBlock
from ..core.errors import CorruptEntryError, StorageError
from .query import AuditQuery, AuditQueryResult

T = TypeVar("T")

_ITERATE_BATCH_SIZE = 500

_SCHEMA = """
CREATE TABLE IF NOT EXISTS audit_entries (
    id TEXT PRIMARY KEY,
    correlation_id TEXT,
    event TEXT NOT NULL,
    level TEXT NOT NULL,
    message TEXT NOT NULL,
    user_id TEXT,
    task_id TEXT,
    metadata TEXT,
    timestamp INTEGER NOT NULL,
    integrity_version TEXT NOT NULL,
    integrity_signature TEXT NOT NULL,
    integrity_previous_hash TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_entries(timestamp);
CREATE INDEX IF NOT EXISTS idx_audit_level ON audit_entries(level);
CREATE INDEX IF NOT EXISTS idx_audit_event ON audit_entries(event);
CREATE INDEX IF NOT EXISTS idx_audit_task_id ON audit_entries(task_id);
CREATE INDEX IF NOT EXISTS idx_audit_correlation_id ON audit_entries(correlation_id);
CREATE INDEX IF NOT EXISTS idx_audit_user_id ON audit_entries(user_id);
"""

_COLUMNS = (
    "id, correlation_id, event, level, message, user_id, task_id, metadata, "
    "timestamp, integrity_version, integrity_signature, integrity_previous_hash"
)


def _row_to_entry(row: sqlite3.Row) -> AuditEntry:
    try:
        return _decode_row(row)
    except (ValidationError, ValueError, TypeError) as e:
        # orjson.JSONDecodeError is a ValueError
        raise CorruptEntryError(
            f"Stored entry {row['id']} could not be decoded: {e}",
            entry_id=str(row["id"]),
            backend="sqlite",
            operation="decode",
            cause=e,
        ) from e


def _decode_row(row: sqlite3.Row) -> AuditEntry:
    metadata = orjson.loads(row["metadata"]) if row["metadata"] else None
    return AuditEntry(
        id=row["id"],
        correlation_id=row["correlation_id"],
        event=row["event"],
        level=row["level"],
        message=row["message"],
        user_id=row["user_id"],
        task_id=row["task_id"],
        metadata=metadata,
        timestamp=row["timestamp"],
        integrity=IntegrityBlock(
            version=row["integrity_version"],
            signature=row["integrity_signature"],
            previous_entry_hash=row["integrity_previous_hash"],
        ),
    )


def _entry_to_params(entry: AuditEntry) -> dict[str, Any]:
    return {
        "id": entry.id,
        "correlation_id": entry.correlation_id,
        "event": entry.event,
        "level": entry.level,
        "message": entry.message,
        "user_id": entry.user_id,
        "task_id": entry.task_id,
        "metadata": (
            orjson.dumps(entry.metadata).decode("utf-8")
            if entry.metadata is not None
            else None
        ),
        "timestamp": entry.timestamp,
        "integrity_version": entry.integrity.version,
        "integrity_signature": entry.integrity.signature,
        "integrity_previous_hash": entry.integrity.previous_entry_hash,
    }


class SQLiteAuditStorage:
    """SQLite-backed append-only storage.

    Append order is the table's rowid order. Blocking sqlite calls run in a
    worker thread via ``asyncio.to_thread``; a lock serializes access to the
    shared connection. WAL journaling allows concurrent readers (e.g. a
    verifier in another process) while a writer is active.
    """

    name = "sqlite"

    _logger = logging.getLogger("auditchain.storage.sqlite")

    def __init__(self, path: str | Path = ":memory:") -> None:
        self._path = str(path)
        self._conn: sqlite3.Connection | None = None
        self._conn_lock = threading.Lock()
        self._start_lock = asyncio.Lock()

    @property
    def path(self) -> str:
        return self._path

    async def start(self) -> None:
        async with self._start_lock:
            if self._conn is not None:
                return
            await self._run(self._open, operation="start")

    async def stop(self) -> None:
        conn = self._conn
        if conn is None:
            return
        self._conn = None
        await asyncio.to_thread(conn.close)

    async def __aenter__(self) -> SQLiteAuditStorage:
        await self.start()
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.stop()

    def _open(self) -> None:
        if self._path != ":memory:":
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        if self._path != ":memory:":
            conn.execute("PRAGMA journal_mode = WAL")
        conn.executescript(_SCHEMA)
        conn.commit()
        self._conn = conn
        self._logger.debug("opened audit database %s", self._path)

    async def _run(self, fn: Callable[[], T], *, operation: str) -> T:
        def _locked() -> T:
            with self._conn_lock:
                return fn()

        try:
            return await asyncio.to_thread(_locked)
        except sqlite3.Error as e:
            raise StorageError(
                f"SQLite {operation} failed: {e}",
                backend=self.name,
                operation=operation,
                cause=e,
            ) from e

    async def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            await self.start()
        assert self._conn is not None  # for type checkers
        return self._conn

    async def append(self, entry: AuditEntry) -> None:
        conn = await self._connection()
        params = _entry_to_params(entry)

        def _insert() -> None:
            with conn:
                conn.execute(
                    f"INSERT INTO audit_entries ({_COLUMNS}) VALUES ("
                    ":id, :correlation_id, :event, :level, :message, :user_id, "
                    ":task_id, :metadata, :timestamp, :integrity_version, "
                    ":integrity_signature, :integrity_previous_hash)",
                    params,
                )

        await self._run(_insert, operation="append")

    async def get_last(self) -> AuditEntry | None:
        conn = await self._connection()

        def _fetch() -> sqlite3.Row | None:
            return conn.execute(
                f"SELECT {_COLUMNS} FROM audit_entries ORDER BY rowid DESC LIMIT 1"
            ).fetchone()

        row = await self._run(_fetch, operation="get_last")
        return _row_to_entry(row) if row is not None else None

    async def iterate(self) -> AsyncIterator[AuditEntry]:
        conn = await self._connection()
        last_rowid = 0
        while True:

            def _batch(after: int = last_rowid) -> list[sqlite3.Row]:
                return conn.execute(
                    f"SELECT rowid AS _rowid, {_COLUMNS} FROM audit_entries "
                    "WHERE rowid > ? ORDER BY rowid ASC LIMIT ?",
                    (after, _ITERATE_BATCH_SIZE),
                ).fetchall()

            rows = await self._run(_batch, operation="iterate")
            if not rows:
                return
            for row in rows:
                yield _row_to_entry(row)
            last_rowid = rows[-1]["_rowid"]
            if len(rows) < _ITERATE_BATCH_SIZE:
                return

    async def count(self) -> int:
        conn = await self._connection()

        def _count() -> int:
            return int(conn.execute("SELECT COUNT(*) FROM audit_entries").fetchone()[0])

        return await self._run(_count, operation="count")

    async def get_by_id(self, entry_id: str) -> AuditEntry | None:
        conn = await self._connection()

        def _fetch() -> sqlite3.Row | None:
            return conn.execute(
                f"SELECT {_COLUMNS} FROM audit_entries WHERE id = ?", (entry_id,)
            ).fetchone()

        row = await self._run(_fetch, operation="get_by_id")
        return _row_to_entry(row) if row is not None else None

    async def query(self, query: AuditQuery | None = None) -> AuditQueryResult:
        query = query or AuditQuery()
        conditions: list[str] = []
        params: dict[str, Any] = {}
        if query.from_ts is not None:
            conditions.append("timestamp >= :from_ts")
            params["from_ts"] = query.from_ts
        if query.to_ts is not None:
            conditions.append("timestamp <= :to_ts")
            params["to_ts"] = query.to_ts
        if query.user_id is not None:
            conditions.append("user_id = :user_id")
            params["user_id"] = query.user_id
        if query.task_id is not None:
            conditions.append("task_id = :task_id")
            params["task_id"] = query.task_id
        if query.levels:
            names = [f":level_{i}" for i in range(len(query.levels))]
            conditions.append(f"level IN ({', '.join(names)})")
            params.update({f"level_{i}": v for i, v in enumerate(query.levels)})
        if query.events:
            names = [f":event_{i}" for i in range(len(query.events))]
            conditions.append(f"event IN ({', '.join(names)})")
            params.update({f"event_{i}": v for i, v in enumerate(query.events)})

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        order = "ASC" if query.order == "asc" else "DESC"
        conn = await self._connection()

        def _select() -> tuple[int, list[sqlite3.Row]]:
            total = conn.execute(
                f"SELECT COUNT(*) FROM audit_entries {where}", params
            ).fetchone()[0]
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM audit_entries {where} "
                f"ORDER BY rowid {order} LIMIT :limit OFFSET :offset",
                {**params, "limit": query.limit, "offset": query.offset},
            ).fetchall()
            return int(total), rows

        total, rows = await self._run(_select, operation="query")
        return AuditQueryResult(
            entries=[_row_to_entry(r) for r in rows],
            total=total,
            limit=query.limit,
            offset=query.offset,
        )

    async def get_by_task_id(self, task_id: str) -> list[AuditEntry]:
        return await self._select_where("task_id", task_id, "get_by_task_id")

    async def get_by_correlation_id(self, correlation_id: str) -> list[AuditEntry]:
        return await self._select_where(
            "correlation_id", correlation_id, "get_by_correlation_id"
        )

    async def _select_where(
        self, column: str, value: str, operation: str
    ) -> list[AuditEntry]:
        conn = await self._connection()

        def _select() -> list[sqlite3.Row]:
            return conn.execute(
                f"SELECT {_COLUMNS} FROM audit_entries WHERE {column} = ? "
                "ORDER BY rowid ASC",
                (value,),
            ).fetchall()

        rows = await self._run(_select, operation=operation)
        return [_row_to_entry(r) for r in rows]
