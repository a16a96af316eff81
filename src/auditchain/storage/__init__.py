"""
Storage backends for the audit chain.
"""

from .base import AuditStorage
from .memory import InMemoryAuditStorage
from .query import AuditQuery, AuditQueryResult
from .sqlite import SQLiteAuditStorage

__all__ = [
    "AuditStorage",
    "AuditQuery",
    "AuditQueryResult",
    "InMemoryAuditStorage",
    "SQLiteAuditStorage",
]
