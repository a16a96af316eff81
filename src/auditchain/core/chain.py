"""
Chain orchestrator: seals, persists and verifies audit entries.

Lifecycle: ``AuditChain(storage, key) -> initialize() -> record()/verify()
-> close()``, or ``async with AuditChain(...) as chain``. Each instance owns
its chain head exclusively; writes (``record``, ``update_signing_key``,
``initialize``) are serialized by a per-instance ``asyncio.Lock`` so two
concurrent records can never claim the same predecessor.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import time
import uuid
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Iterable, Mapping

from pydantic import ValidationError

from ..metrics.metrics import ChainMetrics
from . import diagnostics
from .canonical import compute_entry_hash, sign, verify_signature
from .entry import (
    CHAIN_VERSION,
    GENESIS_HASH,
    KEY_ROTATION_EVENT,
    AuditEntry,
    AuditLevel,
    IntegrityBlock,
)
from .errors import (
    ChainClosedError,
    CorruptEntryError,
    IntegrityCompromisedError,
    SchemaValidationError,
)
from .key_schedule import KeyRotationRecord, KeySchedule
from .settings import validate_signing_key
from .validation import SchemaValidator, run_validator, validate_record_fields

if TYPE_CHECKING:
    from ..storage.base import AuditStorage

LINK_BROKEN_ERROR = "Chain link broken: previous hash mismatch"
SIGNATURE_FAILED_ERROR = "Signature verification failed"
UNHASHABLE_ENTRY_ERROR = "Entry content could not be canonically serialized"
UNDECODABLE_ENTRY_ERROR = "Stored entry could not be decoded"

_RECORD_FIELDS = (
    "event",
    "level",
    "message",
    "user_id",
    "task_id",
    "correlation_id",
    "metadata",
)


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _copy_metadata(metadata: Any) -> Any:
    """Detach caller-owned metadata; non-mappings are left for the validator."""
    if not isinstance(metadata, Mapping):
        return metadata
    try:
        return copy.deepcopy(dict(metadata))
    except (TypeError, copy.Error) as e:
        raise SchemaValidationError(
            f"Invalid audit entry: metadata could not be copied: {e}",
            errors=[{"loc": "metadata", "msg": str(e)}],
            cause=e,
        ) from e


@dataclass(frozen=True)
class ChainHead:
    """Running head of the chain; replaced as a whole, never mutated."""

    last_hash: str = GENESIS_HASH
    signing_key: str = field(default="", repr=False)
    initialized: bool = False


@dataclass
class VerificationResult:
    valid: bool
    entries_checked: int
    broken_at: str | None = None
    error: str | None = None


@dataclass
class ChainStats:
    entries_count: int
    chain_valid: bool
    last_verification: int | None = None  # epoch ms


@dataclass
class ChainSnapshot:
    """Forensic capture taken before a remediation operation."""

    timestamp: int
    entries_count: int
    last_hash: str
    last_entry_id: str | None


class AuditChain:
    """Tamper-evident, append-only audit chain."""

    _logger = logging.getLogger("auditchain.chain")

    def __init__(
        self,
        storage: AuditStorage,
        signing_key: str,
        *,
        validator: SchemaValidator | None = None,
        key_history: Iterable[KeyRotationRecord] = (),
        metrics: ChainMetrics | None = None,
    ) -> None:
        validate_signing_key(signing_key)
        self._storage = storage
        self._head = ChainHead(signing_key=signing_key)
        self._schedule = KeySchedule(key_history)
        self._validator = validator or validate_record_fields
        self._metrics = metrics or ChainMetrics()
        self._lock = asyncio.Lock()
        self._compromised = False
        self._closed = False

    # Introspection -----------------------------------------------------

    @property
    def storage(self) -> AuditStorage:
        return self._storage

    @property
    def metrics(self) -> ChainMetrics:
        return self._metrics

    @property
    def last_hash(self) -> str:
        return self._head.last_hash

    @property
    def is_initialized(self) -> bool:
        return self._head.initialized

    @property
    def is_compromised(self) -> bool:
        return self._compromised

    @property
    def key_schedule(self) -> tuple[KeyRotationRecord, ...]:
        return self._schedule.records

    # Lifecycle ---------------------------------------------------------

    async def __aenter__(self) -> AuditChain:
        await self.initialize()
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.close()

    async def initialize(self) -> None:
        """Load and check the chain tail; no-op when already initialized."""
        async with self._lock:
            self._ensure_writable()
            await self._initialize_locked()

    async def close(self) -> None:
        """Refuse further writes and drop key material from the head."""
        async with self._lock:
            self._closed = True
            self._head = replace(self._head, signing_key="")

    async def _initialize_locked(self) -> None:
        if self._head.initialized:
            return

        try:
            last = await self._storage.get_last()
        except CorruptEntryError as e:
            self._compromised = True
            self._logger.error(
                "Audit chain integrity compromised at entry %s; writes disabled",
                e.entry_id,
            )
            raise IntegrityCompromisedError(
                "Audit chain integrity compromised: last entry is undecodable",
                entry_id=e.entry_id,
                cause=e,
            ) from e
        if last is None:
            self._head = replace(self._head, last_hash=GENESIS_HASH, initialized=True)
            self._logger.info("Audit chain initialized (empty chain)")
            return

        key = self._schedule.key_for_entry(last.id, self._head.signing_key)
        entry_hash = compute_entry_hash(last)
        expected = sign(entry_hash, last.integrity.previous_entry_hash, key)
        if not verify_signature(last.integrity.signature, expected):
            self._compromised = True
            self._logger.error(
                "Audit chain integrity compromised at entry %s; writes disabled",
                last.id,
            )
            raise IntegrityCompromisedError(
                "Audit chain integrity compromised: last entry signature invalid",
                entry_id=last.id,
            )

        self._head = replace(self._head, last_hash=entry_hash, initialized=True)
        self._logger.info(
            "Audit chain initialized (entries=%d, last_entry_id=%s)",
            await self._storage.count(),
            last.id,
        )

    def _ensure_writable(self) -> None:
        if self._closed:
            raise ChainClosedError("Audit chain is closed")
        if self._compromised:
            raise IntegrityCompromisedError(
                "Audit chain integrity compromised: writes refused"
            )

    # Writes ------------------------------------------------------------

    async def record(
        self,
        event: str,
        level: AuditLevel | str,
        message: str,
        *,
        user_id: str | None = None,
        task_id: str | None = None,
        correlation_id: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> AuditEntry:
        """Seal and persist a new entry; returns it as stored.

        The head only advances after ``storage.append`` succeeds, so a storage
        failure leaves the chain unchanged and the call can be retried.
        """
        fields = {
            "event": event,
            "level": level.value if isinstance(level, AuditLevel) else level,
            "message": message,
            "user_id": user_id,
            "task_id": task_id,
            "correlation_id": correlation_id,
            "metadata": _copy_metadata(metadata),
        }
        async with self._lock:
            return await self._record_locked(fields)

    async def _record_locked(self, fields: dict[str, Any]) -> AuditEntry:
        self._ensure_writable()
        if not self._head.initialized:
            await self._initialize_locked()

        started = time.perf_counter()
        try:
            validated = run_validator(self._validator, fields)
            head = self._head
            entry, entry_hash = self._seal(validated, head)
        except SchemaValidationError:
            await self._metrics.record_failure(reason="validation")
            raise

        try:
            await self._storage.append(entry)
        except Exception:
            await self._metrics.record_failure(reason="storage")
            raise

        self._head = replace(head, last_hash=entry_hash)
        await self._metrics.record_entry(duration_seconds=time.perf_counter() - started)
        return entry

    def _seal(
        self, fields: Mapping[str, Any], head: ChainHead
    ) -> tuple[AuditEntry, str]:
        content = {name: fields.get(name) for name in _RECORD_FIELDS}
        try:
            unsigned = AuditEntry(
                id=str(uuid.uuid4()),
                timestamp=_now_ms(),
                integrity=IntegrityBlock(
                    version=CHAIN_VERSION,
                    signature="",
                    previous_entry_hash=head.last_hash,
                ),
                **content,
            )
        except ValidationError as e:
            raise SchemaValidationError(f"Invalid audit entry: {e}", cause=e) from e

        entry_hash = compute_entry_hash(unsigned)
        sealed = unsigned.model_copy(
            update={
                "integrity": IntegrityBlock(
                    version=CHAIN_VERSION,
                    signature=sign(entry_hash, head.last_hash, head.signing_key),
                    previous_entry_hash=head.last_hash,
                )
            }
        )
        return sealed, entry_hash

    async def update_signing_key(self, new_key: str) -> AuditEntry:
        """Rotate the signing key.

        The rotation entry is recorded with the outgoing key first; only then
        is the outgoing key pushed onto the schedule and the head switched to
        ``new_key``. Returns the rotation entry.
        """
        validate_signing_key(new_key)
        async with self._lock:
            old_key = self._head.signing_key
            rotation = await self._record_locked(
                {
                    "event": KEY_ROTATION_EVENT,
                    "level": AuditLevel.SECURITY.value,
                    "message": "Audit signing key rotated",
                    "metadata": {"rotation_index": len(self._schedule) + 1},
                }
            )
            self._schedule.append(
                KeyRotationRecord(from_entry_id=rotation.id, key=old_key)
            )
            self._head = replace(self._head, signing_key=new_key)

        await self._metrics.record_key_rotation()
        self._logger.info("Audit signing key rotated at entry %s", rotation.id)
        return rotation

    # Reads -------------------------------------------------------------

    async def verify(self) -> VerificationResult:
        """Re-derive the whole chain from storage.

        Independent of the in-memory head. Tampering is reported in the
        result; only storage failures raise.
        """
        if self._closed:
            raise ChainClosedError("Audit chain is closed")
        cursor = self._schedule.cursor(self._head.signing_key)
        expected_previous = GENESIS_HASH
        entries_checked = 0
        result: VerificationResult | None = None

        try:
            async for entry in self._storage.iterate():
                entries_checked += 1
                if entry.integrity.previous_entry_hash != expected_previous:
                    result = VerificationResult(
                        False, entries_checked, entry.id, LINK_BROKEN_ERROR
                    )
                    break

                try:
                    entry_hash = compute_entry_hash(entry)
                except SchemaValidationError:
                    result = VerificationResult(
                        False, entries_checked, entry.id, UNHASHABLE_ENTRY_ERROR
                    )
                    break

                expected_sig = sign(
                    entry_hash, entry.integrity.previous_entry_hash, cursor.key
                )
                if not verify_signature(entry.integrity.signature, expected_sig):
                    if cursor.at_boundary == entry.id:
                        diagnostics.warn(
                            "chain",
                            "signature mismatch at key rotation boundary",
                            entry_id=entry.id,
                        )
                    result = VerificationResult(
                        False, entries_checked, entry.id, SIGNATURE_FAILED_ERROR
                    )
                    break

                cursor.advance_after(entry.id)
                expected_previous = entry_hash
        except CorruptEntryError as e:
            # The undecodable row counts as checked
            result = VerificationResult(
                False, entries_checked + 1, e.entry_id, UNDECODABLE_ENTRY_ERROR
            )

        if result is None:
            result = VerificationResult(True, entries_checked)
            pending = cursor.pending()
            if pending:
                diagnostics.warn(
                    "chain",
                    "key schedule boundaries not found in storage",
                    pending=pending,
                )
        else:
            self._logger.warning(
                "Audit chain verification failed at entry %s: %s",
                result.broken_at,
                result.error,
            )

        await self._metrics.record_verification(valid=result.valid)
        return result

    async def get_stats(self) -> ChainStats:
        """Entry count plus a full verification pass; O(n) in chain length."""
        count = await self._storage.count()
        verification = await self.verify()
        return ChainStats(
            entries_count=count,
            chain_valid=verification.valid,
            last_verification=_now_ms(),
        )

    async def create_snapshot(self) -> ChainSnapshot:
        """Capture head metadata without walking the chain."""
        last = await self._storage.get_last()
        return ChainSnapshot(
            timestamp=_now_ms(),
            entries_count=await self._storage.count(),
            last_hash=self._head.last_hash,
            last_entry_id=last.id if last is not None else None,
        )
