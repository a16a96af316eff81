"""
Testing utilities for code that records to or inspects an audit chain.

Pytest fixtures live in ``auditchain.testing.fixtures`` and are enabled with
``pytest_plugins = ("auditchain.testing.fixtures",)``.

Example:
    from auditchain.testing import tamper_entry

    async def test_detects_edit(audit_chain, memory_storage):
        entry = await audit_chain.record("login", "info", "ok")
        await tamper_entry(memory_storage, entry.id, message="TAMPERED")
        assert not (await audit_chain.verify()).valid
"""

from .tamper import FailingStorage, TEST_SIGNING_KEY, tamper_entry

__all__ = ["FailingStorage", "TEST_SIGNING_KEY", "tamper_entry"]
