"""
auditchain: tamper-evident, append-only audit trail.

Every recorded entry is hashed, linked to its predecessor and HMAC-signed, so
any retroactive modification of history is detected by ``verify()``.

Example:
    from auditchain import AuditChain, InMemoryAuditStorage

    async with AuditChain(InMemoryAuditStorage(), signing_key) as chain:
        await chain.record("login", "info", "user logged in", user_id="u-1")
        result = await chain.verify()
        assert result.valid
"""

from __future__ import annotations

from ._version import __version__
from .builder import build_chain, build_storage
from .core import (
    GENESIS_HASH,
    AuditChain,
    AuditChainError,
    AuditChainSettings,
    AuditEntry,
    AuditLevel,
    ChainClosedError,
    ChainSnapshot,
    ChainStats,
    ConfigurationError,
    CorruptEntryError,
    IntegrityBlock,
    IntegrityCompromisedError,
    KeyRotationRecord,
    SchemaValidationError,
    StorageError,
    VerificationResult,
    compute_entry_hash,
    sign,
    verify_signature,
)
from .metrics import ChainMetrics
from .storage import (
    AuditQuery,
    AuditQueryResult,
    AuditStorage,
    InMemoryAuditStorage,
    SQLiteAuditStorage,
)

__all__ = [
    "AuditChain",
    "AuditChainSettings",
    "AuditEntry",
    "AuditLevel",
    "IntegrityBlock",
    "KeyRotationRecord",
    "VerificationResult",
    "ChainStats",
    "ChainSnapshot",
    "GENESIS_HASH",
    "compute_entry_hash",
    "sign",
    "verify_signature",
    "AuditStorage",
    "AuditQuery",
    "AuditQueryResult",
    "InMemoryAuditStorage",
    "SQLiteAuditStorage",
    "ChainMetrics",
    "build_chain",
    "build_storage",
    "AuditChainError",
    "ChainClosedError",
    "ConfigurationError",
    "CorruptEntryError",
    "IntegrityCompromisedError",
    "SchemaValidationError",
    "StorageError",
    "__version__",
    "VERSION",
]

VERSION = __version__
