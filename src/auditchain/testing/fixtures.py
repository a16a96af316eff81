"""
Pytest fixtures for auditchain.

Enable with ``pytest_plugins = ("auditchain.testing.fixtures",)``.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio

from ..core.chain import AuditChain
from ..storage.memory import InMemoryAuditStorage
from .tamper import TEST_SIGNING_KEY


@pytest.fixture
def signing_key() -> str:
    return TEST_SIGNING_KEY


@pytest.fixture
def memory_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest_asyncio.fixture
async def audit_chain(
    memory_storage: InMemoryAuditStorage, signing_key: str
) -> AsyncGenerator[AuditChain, None]:
    """Initialized chain over ``memory_storage``; closed after the test."""
    chain = AuditChain(memory_storage, signing_key)
    await chain.initialize()
    yield chain
    await chain.close()
