"""
Core hash-chain integrity engine.
"""

from .canonical import canonicalize, compute_entry_hash, sign, verify_signature
from .chain import (
    LINK_BROKEN_ERROR,
    SIGNATURE_FAILED_ERROR,
    AuditChain,
    ChainHead,
    ChainSnapshot,
    ChainStats,
    VerificationResult,
)
from .entry import (
    CHAIN_VERSION,
    GENESIS_HASH,
    KEY_ROTATION_EVENT,
    AuditEntry,
    AuditLevel,
    AuditRecordFields,
    IntegrityBlock,
)
from .errors import (
    AuditChainError,
    ChainClosedError,
    ConfigurationError,
    CorruptEntryError,
    ErrorCategory,
    ErrorContext,
    ErrorRecoveryStrategy,
    ErrorSeverity,
    IntegrityCompromisedError,
    SchemaValidationError,
    StorageError,
)
from .key_schedule import KeyCursor, KeyRotationRecord, KeySchedule
from .settings import (
    MIN_SIGNING_KEY_LENGTH,
    AuditChainSettings,
    StorageSettings,
    validate_signing_key,
)
from .validation import SchemaValidator, validate_record_fields

__all__ = [
    # Engine
    "AuditChain",
    "ChainHead",
    "ChainSnapshot",
    "ChainStats",
    "VerificationResult",
    "LINK_BROKEN_ERROR",
    "SIGNATURE_FAILED_ERROR",
    # Primitives
    "canonicalize",
    "compute_entry_hash",
    "sign",
    "verify_signature",
    # Data model
    "AuditEntry",
    "AuditLevel",
    "AuditRecordFields",
    "IntegrityBlock",
    "CHAIN_VERSION",
    "GENESIS_HASH",
    "KEY_ROTATION_EVENT",
    # Key schedule
    "KeyCursor",
    "KeyRotationRecord",
    "KeySchedule",
    # Errors
    "AuditChainError",
    "ChainClosedError",
    "ConfigurationError",
    "CorruptEntryError",
    "ErrorCategory",
    "ErrorContext",
    "ErrorRecoveryStrategy",
    "ErrorSeverity",
    "IntegrityCompromisedError",
    "SchemaValidationError",
    "StorageError",
    # Configuration and validation
    "AuditChainSettings",
    "StorageSettings",
    "MIN_SIGNING_KEY_LENGTH",
    "validate_signing_key",
    "SchemaValidator",
    "validate_record_fields",
]
