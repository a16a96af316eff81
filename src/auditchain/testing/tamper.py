"""
Helpers that rewrite persisted entries behind the engine's back.
"""

from __future__ import annotations

import asyncio
from typing import Any

import orjson

from ..core.entry import AuditEntry
from ..core.errors import StorageError
from ..storage.memory import InMemoryAuditStorage
from ..storage.sqlite import SQLiteAuditStorage

TEST_SIGNING_KEY = "k" * 64

_INTEGRITY_COLUMNS = {
    "version": "integrity_version",
    "signature": "integrity_signature",
    "previous_entry_hash": "integrity_previous_hash",
}


async def tamper_entry(
    storage: InMemoryAuditStorage | SQLiteAuditStorage,
    entry_id: str,
    *,
    integrity: dict[str, Any] | None = None,
    **changes: Any,
) -> None:
    """Overwrite fields of a stored entry in place, without re-sealing it."""
    if isinstance(storage, InMemoryAuditStorage):
        idx = storage._index[entry_id]  # noqa: SLF001
        entry = storage._entries[idx]  # noqa: SLF001
        update = dict(changes)
        if integrity:
            update["integrity"] = entry.integrity.model_copy(update=integrity)
        storage._entries[idx] = entry.model_copy(update=update)  # noqa: SLF001
        return

    if isinstance(storage, SQLiteAuditStorage):
        columns: dict[str, Any] = {}
        for key, value in changes.items():
            if key == "metadata" and value is not None:
                value = orjson.dumps(value).decode("utf-8")
            columns[key] = value
        for key, value in (integrity or {}).items():
            columns[_INTEGRITY_COLUMNS[key]] = value
        if not columns:
            return
        assignments = ", ".join(f"{col} = :{col}" for col in columns)
        conn = await storage._connection()  # noqa: SLF001

        def _update() -> None:
            with conn:
                conn.execute(
                    f"UPDATE audit_entries SET {assignments} WHERE id = :_id",
                    {**columns, "_id": entry_id},
                )

        await asyncio.to_thread(_update)
        return

    raise TypeError(f"Unsupported storage type: {type(storage).__name__}")


class FailingStorage(InMemoryAuditStorage):
    """In-memory storage whose next ``fail_appends`` appends raise."""

    name = "failing"

    def __init__(self, *, fail_appends: int = 1) -> None:
        super().__init__()
        self.fail_appends = fail_appends
        self.append_attempts = 0

    async def append(self, entry: AuditEntry) -> None:
        self.append_attempts += 1
        if self.fail_appends > 0:
            self.fail_appends -= 1
            raise StorageError(
                "simulated append failure", backend=self.name, operation="append"
            )
        await super().append(entry)
