"""
Query model shared by storage backends.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.entry import AuditEntry

DEFAULT_QUERY_LIMIT = 50
MAX_QUERY_LIMIT = 1000


class AuditQuery(BaseModel):
    """Filters for ``query()``; time bounds are inclusive, in epoch ms."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    from_ts: int | None = None
    to_ts: int | None = None
    levels: list[str] = Field(default_factory=list)
    events: list[str] = Field(default_factory=list)
    user_id: str | None = None
    task_id: str | None = None
    limit: int = Field(default=DEFAULT_QUERY_LIMIT, ge=1)
    offset: int = Field(default=0, ge=0)
    order: Literal["asc", "desc"] = "desc"

    @field_validator("limit")
    @classmethod
    def _cap_limit(cls, value: int) -> int:
        return min(value, MAX_QUERY_LIMIT)

    def matches(self, entry: AuditEntry) -> bool:
        if self.from_ts is not None and entry.timestamp < self.from_ts:
            return False
        if self.to_ts is not None and entry.timestamp > self.to_ts:
            return False
        if self.levels and entry.level not in self.levels:
            return False
        if self.events and entry.event not in self.events:
            return False
        if self.user_id is not None and entry.user_id != self.user_id:
            return False
        if self.task_id is not None and entry.task_id != self.task_id:
            return False
        return True


@dataclass
class AuditQueryResult:
    entries: list[AuditEntry] = field(default_factory=list)
    total: int = 0
    limit: int = DEFAULT_QUERY_LIMIT
    offset: int = 0
