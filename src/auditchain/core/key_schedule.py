"""
Key schedule: retired signing keys and the chain positions at which they
were rotated out.

A ``KeyRotationRecord(from_entry_id, key)`` states that ``key`` signed every
entry up to and including ``from_entry_id``; the entry after it is signed
with the next key in the schedule (or the currently active key once the
schedule is exhausted).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator

from .settings import validate_signing_key


@dataclass(frozen=True)
class KeyRotationRecord:
    """Boundary entry id and the key that was retired after it."""

    from_entry_id: str
    key: str = field(repr=False)

    def __post_init__(self) -> None:
        validate_signing_key(self.key)


class KeyCursor:
    """Single forward pass over a schedule during verification."""

    def __init__(self, records: tuple[KeyRotationRecord, ...], active_key: str) -> None:
        self._records = records
        self._active_key = active_key
        self._index = 0

    @property
    def key(self) -> str:
        """Key expected to have signed the next entry."""
        if self._index < len(self._records):
            return self._records[self._index].key
        return self._active_key

    @property
    def at_boundary(self) -> str | None:
        """Entry id of the next pending rotation boundary, if any."""
        if self._index < len(self._records):
            return self._records[self._index].from_entry_id
        return None

    def advance_after(self, entry_id: str) -> None:
        """Move to the next key if ``entry_id`` closes the current segment."""
        if self.at_boundary == entry_id:
            self._index += 1

    def pending(self) -> list[str]:
        """Boundary ids not reached by the pass."""
        return [r.from_entry_id for r in self._records[self._index :]]


class KeySchedule:
    """Ordered list of rotation records, oldest first."""

    def __init__(self, records: Iterable[KeyRotationRecord] = ()) -> None:
        self._records: list[KeyRotationRecord] = list(records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[KeyRotationRecord]:
        return iter(tuple(self._records))

    @property
    def records(self) -> tuple[KeyRotationRecord, ...]:
        return tuple(self._records)

    def append(self, record: KeyRotationRecord) -> None:
        self._records.append(record)

    def cursor(self, active_key: str) -> KeyCursor:
        return KeyCursor(tuple(self._records), active_key)

    def key_for_entry(self, entry_id: str, active_key: str) -> str:
        """Key for a rotation boundary entry, else ``active_key``.

        Used when reopening a chain whose tail is a boundary entry: that entry
        was signed with the retired key, not the one configured now.
        """
        for record in reversed(self._records):
            if record.from_entry_id == entry_id:
                return record.key
        return active_key
