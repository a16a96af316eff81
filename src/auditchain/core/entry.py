"""
Audit entry data model.

``AuditEntry`` is the sealed, immutable unit of the chain. ``IntegrityBlock``
carries the chain-linking metadata and is deliberately excluded from the
content hash. ``AuditRecordFields`` is the schema proposed entry fields are
validated against before anything is hashed.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

import orjson
from pydantic import BaseModel, ConfigDict, Field, field_validator

# 64 hex zeros; previous hash of the first entry in every chain
GENESIS_HASH = "0" * 64

# Format version written into every integrity block
CHAIN_VERSION = "1.0.0"

# Event recorded (with the outgoing key) when the signing key is rotated
KEY_ROTATION_EVENT = "signing_key_rotated"


class AuditLevel(str, Enum):
    """Audit entry levels."""

    TRACE = "trace"
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    SECURITY = "security"


class IntegrityBlock(BaseModel):
    """Chain-linking block produced by sealing an entry."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    version: str = CHAIN_VERSION
    signature: str
    previous_entry_hash: str


class AuditEntry(BaseModel):
    """A sealed audit entry as persisted by storage backends."""

    model_config = ConfigDict(frozen=True, extra="forbid", use_enum_values=True)

    id: str
    event: str
    level: AuditLevel
    message: str
    timestamp: int  # milliseconds since epoch
    user_id: str | None = None
    task_id: str | None = None
    correlation_id: str | None = None
    metadata: dict[str, Any] | None = None
    integrity: IntegrityBlock

    def content_fields(self) -> dict[str, Any]:
        """Return the hashed content fields, omitting unset optionals."""
        data: dict[str, Any] = {
            "id": self.id,
            "correlation_id": self.correlation_id,
            "event": self.event,
            "level": self.level,
            "message": self.message,
            "user_id": self.user_id,
            "task_id": self.task_id,
            "metadata": self.metadata,
            "timestamp": self.timestamp,
        }
        return {k: v for k, v in data.items() if v is not None}

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AuditEntry:
        return cls.model_validate(data)


class AuditRecordFields(BaseModel):
    """Schema for fields proposed to ``AuditChain.record()``."""

    model_config = ConfigDict(extra="forbid", use_enum_values=True)

    event: str = Field(min_length=1, max_length=256)
    level: AuditLevel
    message: str = Field(max_length=65_536)
    user_id: str | None = Field(default=None, min_length=1, max_length=256)
    task_id: str | None = Field(default=None, min_length=1, max_length=256)
    correlation_id: str | None = Field(default=None, min_length=1, max_length=256)
    metadata: dict[str, Any] | None = None

    @field_validator("event")
    @classmethod
    def _event_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("event must not be blank")
        return value

    @field_validator("metadata")
    @classmethod
    def _metadata_json_safe(cls, value: dict[str, Any] | None) -> dict[str, Any] | None:
        if value is None:
            return value
        try:
            orjson.dumps(value)
        except TypeError as exc:
            raise ValueError(f"metadata must be JSON-serializable: {exc}") from exc
        return value


__all__ = [
    "AuditEntry",
    "AuditLevel",
    "AuditRecordFields",
    "CHAIN_VERSION",
    "GENESIS_HASH",
    "IntegrityBlock",
    "KEY_ROTATION_EVENT",
]
