"""
In-memory storage backend.

An ordered list of entries plus an id -> index map. Used by tests and
short-lived processes; it is a regular ``AuditStorage`` and is never
special-cased by the chain engine.
"""

from __future__ import annotations

from typing import AsyncIterator

from ..core.entry import AuditEntry
from ..core.errors import StorageError
from .query import AuditQuery, AuditQueryResult


def _detached(entry: AuditEntry) -> AuditEntry:
    # Frozen models still expose a mutable metadata dict
    return entry.model_copy(deep=True)


class InMemoryAuditStorage:
    """Append-only storage kept in process memory."""

    name = "memory"

    def __init__(self) -> None:
        self._entries: list[AuditEntry] = []
        self._index: dict[str, int] = {}

    async def append(self, entry: AuditEntry) -> None:
        if entry.id in self._index:
            raise StorageError(
                f"Duplicate entry id: {entry.id}",
                backend=self.name,
                operation="append",
            )
        self._index[entry.id] = len(self._entries)
        self._entries.append(_detached(entry))

    async def get_last(self) -> AuditEntry | None:
        return _detached(self._entries[-1]) if self._entries else None

    async def iterate(self) -> AsyncIterator[AuditEntry]:
        # Bound the pass to the entries present when it started
        end = len(self._entries)
        for i in range(end):
            yield _detached(self._entries[i])

    async def count(self) -> int:
        return len(self._entries)

    async def get_by_id(self, entry_id: str) -> AuditEntry | None:
        idx = self._index.get(entry_id)
        return None if idx is None else _detached(self._entries[idx])

    async def query(self, query: AuditQuery | None = None) -> AuditQueryResult:
        query = query or AuditQuery()
        matched = [e for e in self._entries if query.matches(e)]
        if query.order == "desc":
            matched.reverse()
        page = matched[query.offset : query.offset + query.limit]
        return AuditQueryResult(
            entries=[_detached(e) for e in page],
            total=len(matched),
            limit=query.limit,
            offset=query.offset,
        )

    async def get_by_task_id(self, task_id: str) -> list[AuditEntry]:
        return [_detached(e) for e in self._entries if e.task_id == task_id]

    async def get_by_correlation_id(self, correlation_id: str) -> list[AuditEntry]:
        return [
            _detached(e) for e in self._entries if e.correlation_id == correlation_id
        ]
