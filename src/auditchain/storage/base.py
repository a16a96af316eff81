"""
Storage protocol consumed by the chain engine.

Backends must persist full entries (including the integrity block), keyed by
id, and return them in strict append order. They never reorder, mutate or
remove entries, and raise ``StorageError`` on I/O failure.
"""

from __future__ import annotations

from typing import AsyncIterator, Protocol, runtime_checkable

from ..core.entry import AuditEntry


@runtime_checkable
class AuditStorage(Protocol):
    async def append(self, entry: AuditEntry) -> None:
        """Durably persist one sealed entry."""

    async def get_last(self) -> AuditEntry | None:
        """Most recently appended entry, or None when empty."""

    def iterate(self) -> AsyncIterator[AuditEntry]:
        """Entries oldest first; each call is an independent traversal."""

    async def count(self) -> int: ...

    async def get_by_id(self, entry_id: str) -> AuditEntry | None: ...
