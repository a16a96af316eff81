"""
Assemble an ``AuditChain`` from settings.

Example:
    settings = AuditChainSettings()  # reads AUDITCHAIN_* env vars
    async with build_chain(settings) as chain:
        await chain.record("login", "info", "user logged in", user_id="u-1")
"""

from __future__ import annotations

from typing import Iterable

from .core import diagnostics
from .core.chain import AuditChain
from .core.key_schedule import KeyRotationRecord
from .core.settings import AuditChainSettings
from .core.validation import SchemaValidator
from .metrics.metrics import ChainMetrics
from .storage.base import AuditStorage
from .storage.memory import InMemoryAuditStorage
from .storage.sqlite import SQLiteAuditStorage


def build_storage(settings: AuditChainSettings) -> AuditStorage:
    """Create the storage backend selected by ``settings.storage``."""
    if settings.storage.backend == "sqlite":
        return SQLiteAuditStorage(settings.storage.sqlite_path)
    return InMemoryAuditStorage()


def build_chain(
    settings: AuditChainSettings | None = None,
    *,
    signing_key: str | None = None,
    storage: AuditStorage | None = None,
    validator: SchemaValidator | None = None,
    key_history: Iterable[KeyRotationRecord] = (),
) -> AuditChain:
    """Construct a chain; the caller initializes it (or uses ``async with``).

    ``signing_key`` defaults to the value of ``settings.signing_key_env``.
    """
    settings = settings or AuditChainSettings()
    diagnostics.set_enabled(settings.internal_logging_enabled)
    key = signing_key if signing_key is not None else settings.resolve_signing_key()
    return AuditChain(
        storage if storage is not None else build_storage(settings),
        key,
        validator=validator,
        key_history=key_history,
        metrics=ChainMetrics(enabled=settings.enable_metrics),
    )
