"""
Standardized error hierarchy for the audit chain engine.

Every error raised by auditchain derives from ``AuditChainError`` and carries
an ``ErrorContext`` describing its category, severity and the recovery
strategy callers are expected to apply. Structural chain corruption found by
``AuditChain.verify()`` is *not* raised; it is reported as a
``VerificationResult``.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """High-level classification of failures."""

    CONFIGURATION = "configuration"
    INTEGRITY = "integrity"
    VALIDATION = "validation"
    STORAGE = "storage"
    LIFECYCLE = "lifecycle"
    SERIALIZATION = "serialization"
    SYSTEM = "system"


class ErrorSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorRecoveryStrategy(str, Enum):
    """What a caller should do after catching the error."""

    NONE = "none"  # Fatal; fix configuration or investigate
    RETRY = "retry"  # Safe to retry the same operation
    REJECT = "reject"  # Input was refused; correct it and resubmit
    STOP_WRITES = "stop_writes"  # Treat as data loss; stop and investigate


@dataclass
class ErrorContext:
    """Context captured when an error is created."""

    category: ErrorCategory = ErrorCategory.SYSTEM
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    recovery_strategy: ErrorRecoveryStrategy = ErrorRecoveryStrategy.NONE
    error_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    component_name: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_id": self.error_id,
            "timestamp": self.timestamp.isoformat(),
            "category": self.category.value,
            "severity": self.severity.value,
            "recovery_strategy": self.recovery_strategy.value,
            "component_name": self.component_name,
            "metadata": dict(self.metadata),
        }


def create_error_context(
    category: ErrorCategory,
    severity: ErrorSeverity = ErrorSeverity.MEDIUM,
    recovery_strategy: ErrorRecoveryStrategy = ErrorRecoveryStrategy.NONE,
    **metadata: Any,
) -> ErrorContext:
    """Build an ``ErrorContext`` with free-form metadata."""
    component_name = metadata.pop("component_name", None)
    return ErrorContext(
        category=category,
        severity=severity,
        recovery_strategy=recovery_strategy,
        component_name=component_name,
        metadata=metadata,
    )


class AuditChainError(Exception):
    """Base class for all auditchain errors."""

    default_category = ErrorCategory.SYSTEM
    default_severity = ErrorSeverity.MEDIUM
    default_recovery = ErrorRecoveryStrategy.NONE

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        severity: ErrorSeverity | None = None,
        recovery_strategy: ErrorRecoveryStrategy | None = None,
        error_context: ErrorContext | None = None,
        cause: BaseException | None = None,
        **metadata: Any,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_context is None:
            error_context = create_error_context(
                category or self.default_category,
                severity or self.default_severity,
                recovery_strategy or self.default_recovery,
                **metadata,
            )
        self.context = error_context
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for logging or persistence."""
        data: dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
            "context": self.context.to_dict(),
        }
        if self.__cause__ is not None:
            data["cause"] = f"{type(self.__cause__).__name__}: {self.__cause__}"
        return data


class ConfigurationError(AuditChainError):
    """Invalid configuration, e.g. a signing key shorter than 32 characters."""

    default_category = ErrorCategory.CONFIGURATION
    default_severity = ErrorSeverity.CRITICAL


class IntegrityCompromisedError(AuditChainError):
    """The persisted chain tail failed signature verification.

    Once raised by ``initialize()`` the chain instance refuses all writes.
    """

    default_category = ErrorCategory.INTEGRITY
    default_severity = ErrorSeverity.CRITICAL
    default_recovery = ErrorRecoveryStrategy.STOP_WRITES


class SchemaValidationError(AuditChainError):
    """Proposed entry fields were rejected before hashing."""

    default_category = ErrorCategory.VALIDATION
    default_severity = ErrorSeverity.LOW
    default_recovery = ErrorRecoveryStrategy.REJECT

    def __init__(
        self,
        message: str,
        *,
        errors: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.errors = list(errors or [])


class StorageError(AuditChainError):
    """A storage backend operation failed."""

    default_category = ErrorCategory.STORAGE
    default_severity = ErrorSeverity.HIGH
    default_recovery = ErrorRecoveryStrategy.RETRY

    def __init__(
        self,
        message: str,
        *,
        backend: str | None = None,
        operation: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, backend=backend, operation=operation, **kwargs)
        self.backend = backend
        self.operation = operation


class CorruptEntryError(StorageError):
    """A stored row could not be decoded into an ``AuditEntry``.

    Raised by backends that persist entries outside the process (SQLite);
    ``AuditChain.verify()`` reports it as a broken chain at ``entry_id``.
    """

    default_category = ErrorCategory.INTEGRITY
    default_severity = ErrorSeverity.CRITICAL
    default_recovery = ErrorRecoveryStrategy.STOP_WRITES

    def __init__(self, message: str, *, entry_id: str, **kwargs: Any) -> None:
        super().__init__(message, entry_id=entry_id, **kwargs)
        self.entry_id = entry_id


class ChainClosedError(AuditChainError):
    """Write attempted on a chain that has been closed."""

    default_category = ErrorCategory.LIFECYCLE
    default_severity = ErrorSeverity.MEDIUM


__all__ = [
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
    "create_error_context",
]
