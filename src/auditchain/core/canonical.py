"""
Canonical serialization, entry hashing and HMAC signing.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Any, Mapping

import orjson

from .entry import AuditEntry
from .errors import ErrorCategory, ErrorSeverity, SchemaValidationError


def canonicalize(fields: Mapping[str, Any]) -> bytes:
    """
    Produce deterministic JSON bytes for ``fields``.

    - Sorts keys at every nesting level
    - Compact separators, UTF-8
    - Excludes any ``integrity`` field
    """
    payload = {k: v for k, v in fields.items() if k != "integrity"}
    try:
        return orjson.dumps(payload, option=orjson.OPT_SORT_KEYS)
    except TypeError as e:
        raise SchemaValidationError(
            "Entry content is not canonically serializable",
            category=ErrorCategory.SERIALIZATION,
            severity=ErrorSeverity.HIGH,
            cause=e,
        ) from e


def compute_entry_hash(entry: AuditEntry) -> str:
    """SHA-256 hex digest of the entry's content fields."""
    return hashlib.sha256(canonicalize(entry.content_fields())).hexdigest()


def sign(entry_hash: str, previous_hash: str, key: str) -> str:
    """HMAC-SHA256 hex signature over ``entry_hash:previous_hash``."""
    data = f"{entry_hash}:{previous_hash}".encode("utf-8")
    return hmac.new(key.encode("utf-8"), data, hashlib.sha256).hexdigest()


def verify_signature(candidate: str, expected: str) -> bool:
    """Constant-time signature comparison."""
    return hmac.compare_digest(candidate.encode("utf-8"), expected.encode("utf-8"))
