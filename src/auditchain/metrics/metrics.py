"""
Async-first metrics for the audit chain.

Implements minimal Prometheus-compatible counters and a histogram for the
write and verification paths.

Design goals:
- Zero global state; instances are owned by one chain
- Isolated ``CollectorRegistry`` to avoid duplicate registration in tests
- Safe no-op Prometheus behavior when disabled, while still tracking
  in-memory counters for assertions
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from prometheus_client import CollectorRegistry, Counter, Histogram


@dataclass
class ChainMetricsSnapshot:
    """Captured counters for quick assertions in tests."""

    entries_recorded: int = 0
    record_failures: int = 0
    verifications: int = 0
    verification_failures: int = 0
    key_rotations: int = 0


class ChainMetrics:
    """Chain-scoped metrics collector."""

    def __init__(self, *, enabled: bool = False) -> None:
        self._enabled = bool(enabled)
        self._lock = asyncio.Lock()
        self._state = ChainMetricsSnapshot()

        self._c_recorded: Any | None = None
        self._c_record_failures: Any | None = None
        self._c_verifications: Any | None = None
        self._c_rotations: Any | None = None
        self._h_record_latency: Any | None = None
        self._registry: CollectorRegistry | None = None

        if self._enabled:
            self._registry = CollectorRegistry()
            self._c_recorded = Counter(
                "auditchain_entries_recorded_total",
                "Total number of entries sealed and persisted",
                registry=self._registry,
            )
            self._c_record_failures = Counter(
                "auditchain_record_failures_total",
                "Total number of record() calls that did not persist an entry",
                ["reason"],
                registry=self._registry,
            )
            self._c_verifications = Counter(
                "auditchain_verifications_total",
                "Total number of full-chain verification passes",
                ["result"],
                registry=self._registry,
            )
            self._c_rotations = Counter(
                "auditchain_key_rotations_total",
                "Total number of signing key rotations",
                registry=self._registry,
            )
            self._h_record_latency = Histogram(
                "auditchain_record_seconds",
                "Latency of a successful record() including storage append",
                buckets=(0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.5),
                registry=self._registry,
            )

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def registry(self) -> CollectorRegistry | None:
        """Expose the isolated Prometheus registry when enabled."""
        return self._registry

    async def record_entry(self, *, duration_seconds: float | None = None) -> None:
        async with self._lock:
            self._state.entries_recorded += 1
        if not self._enabled:
            return
        if self._c_recorded is not None:
            self._c_recorded.inc()
        if duration_seconds is not None and self._h_record_latency is not None:
            self._h_record_latency.observe(duration_seconds)

    async def record_failure(self, *, reason: str) -> None:
        async with self._lock:
            self._state.record_failures += 1
        if self._enabled and self._c_record_failures is not None:
            self._c_record_failures.labels(reason=reason).inc()

    async def record_verification(self, *, valid: bool) -> None:
        async with self._lock:
            self._state.verifications += 1
            if not valid:
                self._state.verification_failures += 1
        if self._enabled and self._c_verifications is not None:
            self._c_verifications.labels(result="valid" if valid else "broken").inc()

    async def record_key_rotation(self) -> None:
        async with self._lock:
            self._state.key_rotations += 1
        if self._enabled and self._c_rotations is not None:
            self._c_rotations.inc()

    async def snapshot(self) -> ChainMetricsSnapshot:
        async with self._lock:
            return ChainMetricsSnapshot(
                entries_recorded=self._state.entries_recorded,
                record_failures=self._state.record_failures,
                verifications=self._state.verifications,
                verification_failures=self._state.verification_failures,
                key_rotations=self._state.key_rotations,
            )
