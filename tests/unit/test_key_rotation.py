"""
Key rotation: the chain stays verifiable across signing key changes.
"""

from __future__ import annotations

import logging

import pytest

from auditchain import (
    AuditChain,
    ConfigurationError,
    IntegrityCompromisedError,
    KeyRotationRecord,
    StorageError,
)
from auditchain.core import diagnostics
from auditchain.core.canonical import compute_entry_hash, sign
from auditchain.core.entry import KEY_ROTATION_EVENT
from auditchain.core.key_schedule import KeySchedule
from auditchain.storage.memory import InMemoryAuditStorage
from auditchain.testing import FailingStorage, tamper_entry

KEY_1 = "1" * 32
KEY_2 = "2" * 40
KEY_3 = "3" * 64


@pytest.mark.security
class TestRotation:
    @pytest.mark.asyncio
    async def test_rotation_is_transparent_to_verify(self) -> None:
        chain = AuditChain(InMemoryAuditStorage(), KEY_1)
        await chain.record("before", "info", "signed with key 1")
        await chain.update_signing_key(KEY_2)
        await chain.record("after", "info", "signed with key 2")

        result = await chain.verify()
        assert result.valid is True
        assert result.entries_checked == 3

    @pytest.mark.asyncio
    async def test_rotation_entry_signed_with_outgoing_key(self) -> None:
        chain = AuditChain(InMemoryAuditStorage(), KEY_1)
        await chain.record("before", "info", "m")
        rotation = await chain.update_signing_key(KEY_2)

        assert rotation.event == KEY_ROTATION_EVENT
        assert rotation.level == "security"
        assert rotation.metadata == {"rotation_index": 1}

        digest = compute_entry_hash(rotation)
        assert rotation.integrity.signature == sign(
            digest, rotation.integrity.previous_entry_hash, KEY_1
        )

        after = await chain.record("after", "info", "m")
        assert after.integrity.signature == sign(
            compute_entry_hash(after), digest, KEY_2
        )

    @pytest.mark.asyncio
    async def test_multiple_rotations(self) -> None:
        chain = AuditChain(InMemoryAuditStorage(), KEY_1)
        await chain.record("e0", "info", "k1")
        first = await chain.update_signing_key(KEY_2)
        await chain.record("e1", "info", "k2")
        second = await chain.update_signing_key(KEY_3)
        await chain.record("e2", "info", "k3")

        assert [r.from_entry_id for r in chain.key_schedule] == [first.id, second.id]
        assert [r.key for r in chain.key_schedule] == [KEY_1, KEY_2]
        assert second.metadata == {"rotation_index": 2}

        result = await chain.verify()
        assert result.valid is True
        assert result.entries_checked == 5

    @pytest.mark.asyncio
    async def test_rotation_on_empty_chain(self) -> None:
        chain = AuditChain(InMemoryAuditStorage(), KEY_1)
        await chain.update_signing_key(KEY_2)
        await chain.record("e", "info", "m")
        assert (await chain.verify()).valid is True

    @pytest.mark.asyncio
    async def test_short_new_key_rejected(self) -> None:
        storage = InMemoryAuditStorage()
        chain = AuditChain(storage, KEY_1)
        await chain.record("e", "info", "m")

        with pytest.raises(ConfigurationError):
            await chain.update_signing_key("short")

        assert await storage.count() == 1
        assert chain.key_schedule == ()
        entry = await chain.record("e", "info", "still key 1")
        assert (await chain.verify()).valid is True
        assert entry.integrity.signature == sign(
            compute_entry_hash(entry), entry.integrity.previous_entry_hash, KEY_1
        )

    @pytest.mark.asyncio
    async def test_failed_rotation_keeps_old_key(self) -> None:
        storage = FailingStorage(fail_appends=0)
        chain = AuditChain(storage, KEY_1)
        await chain.record("e", "info", "m")

        storage.fail_appends = 1
        with pytest.raises(StorageError):
            await chain.update_signing_key(KEY_2)

        assert chain.key_schedule == ()
        await chain.record("e", "info", "after failed rotation")
        assert (await chain.verify()).valid is True

    @pytest.mark.asyncio
    async def test_rotation_counted_in_metrics(self) -> None:
        chain = AuditChain(InMemoryAuditStorage(), KEY_1)
        await chain.update_signing_key(KEY_2)
        snap = await chain.metrics.snapshot()
        assert snap.key_rotations == 1
        assert snap.entries_recorded == 1


@pytest.mark.security
class TestReopenWithHistory:
    @pytest.mark.asyncio
    async def test_reopen_after_rotation(self) -> None:
        storage = InMemoryAuditStorage()
        writer = AuditChain(storage, KEY_1)
        await writer.record("e0", "info", "m")
        await writer.update_signing_key(KEY_2)
        await writer.record("e1", "info", "m")

        reopened = AuditChain(storage, KEY_2, key_history=writer.key_schedule)
        await reopened.initialize()
        assert reopened.last_hash == writer.last_hash

        await reopened.record("e2", "info", "m")
        result = await reopened.verify()
        assert result.valid is True
        assert result.entries_checked == 4

    @pytest.mark.asyncio
    async def test_reopen_when_tail_is_rotation_entry(self) -> None:
        storage = InMemoryAuditStorage()
        writer = AuditChain(storage, KEY_1)
        await writer.record("e0", "info", "m")
        await writer.update_signing_key(KEY_2)

        reopened = AuditChain(storage, KEY_2, key_history=writer.key_schedule)
        await reopened.initialize()
        await reopened.record("e1", "info", "signed with key 2")
        assert (await reopened.verify()).valid is True

    @pytest.mark.asyncio
    async def test_reopen_without_history_is_compromised(self) -> None:
        storage = InMemoryAuditStorage()
        writer = AuditChain(storage, KEY_1)
        await writer.update_signing_key(KEY_2)

        reopened = AuditChain(storage, KEY_2)
        with pytest.raises(IntegrityCompromisedError):
            await reopened.initialize()

    @pytest.mark.asyncio
    async def test_verify_without_history_fails_at_first_entry(self) -> None:
        storage = InMemoryAuditStorage()
        writer = AuditChain(storage, KEY_1)
        first = await writer.record("e0", "info", "m")
        await writer.update_signing_key(KEY_2)

        result = await AuditChain(storage, KEY_2).verify()
        assert result.valid is False
        assert result.broken_at == first.id


class TestRotationDiagnostics:
    @pytest.mark.asyncio
    async def test_tampered_boundary_warns(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        diagnostics.set_enabled(True)
        storage = InMemoryAuditStorage()
        chain = AuditChain(storage, KEY_1)
        rotation = await chain.update_signing_key(KEY_2)
        await tamper_entry(storage, rotation.id, message="edited")

        with caplog.at_level(logging.WARNING, logger="auditchain.diagnostics"):
            result = await chain.verify()

        assert result.valid is False
        assert result.broken_at == rotation.id
        assert any("rotation boundary" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_unreached_boundary_warns(
        self, caplog: pytest.LogCaptureFixture, signing_key: str
    ) -> None:
        diagnostics.set_enabled(True)
        history = [KeyRotationRecord(from_entry_id="not-in-storage", key=signing_key)]
        chain = AuditChain(InMemoryAuditStorage(), signing_key, key_history=history)
        await chain.record("e", "info", "m")

        with caplog.at_level(logging.WARNING, logger="auditchain.diagnostics"):
            result = await chain.verify()

        assert result.valid is True
        assert any("not found in storage" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_diagnostics_silent_when_disabled(
        self, caplog: pytest.LogCaptureFixture, signing_key: str
    ) -> None:
        diagnostics.set_enabled(False)
        history = [KeyRotationRecord(from_entry_id="not-in-storage", key=signing_key)]
        chain = AuditChain(InMemoryAuditStorage(), signing_key, key_history=history)

        with caplog.at_level(logging.DEBUG, logger="auditchain.diagnostics"):
            await chain.verify()

        assert not [r for r in caplog.records if r.name == "auditchain.diagnostics"]


class TestKeySchedule:
    def test_record_rejects_short_key(self) -> None:
        with pytest.raises(ConfigurationError):
            KeyRotationRecord(from_entry_id="e1", key="short")

    def test_record_repr_hides_key(self) -> None:
        record = KeyRotationRecord(from_entry_id="e1", key=KEY_1)
        assert KEY_1 not in repr(record)

    def test_cursor_walks_segments(self) -> None:
        schedule = KeySchedule(
            [
                KeyRotationRecord(from_entry_id="r1", key=KEY_1),
                KeyRotationRecord(from_entry_id="r2", key=KEY_2),
            ]
        )
        cursor = schedule.cursor(KEY_3)

        assert cursor.key == KEY_1
        cursor.advance_after("e0")
        assert cursor.key == KEY_1
        assert cursor.at_boundary == "r1"

        cursor.advance_after("r1")
        assert cursor.key == KEY_2
        cursor.advance_after("r2")
        assert cursor.key == KEY_3
        assert cursor.at_boundary is None
        assert cursor.pending() == []

    def test_cursor_reports_pending(self) -> None:
        schedule = KeySchedule([KeyRotationRecord(from_entry_id="r1", key=KEY_1)])
        cursor = schedule.cursor(KEY_2)
        assert cursor.pending() == ["r1"]

    def test_key_for_entry(self) -> None:
        schedule = KeySchedule()
        assert schedule.key_for_entry("anything", KEY_3) == KEY_3

        schedule.append(KeyRotationRecord(from_entry_id="r1", key=KEY_1))
        assert len(schedule) == 1
        assert schedule.key_for_entry("r1", KEY_3) == KEY_1
        assert schedule.key_for_entry("other", KEY_3) == KEY_3
