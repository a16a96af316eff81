"""
Internal diagnostics for non-fatal conditions.

Diagnostics are structured WARN/DEBUG records routed to the
``auditchain.diagnostics`` logger. They are disabled unless
``internal_logging_enabled`` is set (settings or environment); the flag is
cached on first use and can be reset via ``_internal_logging_enabled = None``.
"""

from __future__ import annotations

import logging
from typing import Any

_logger = logging.getLogger("auditchain.diagnostics")

# Cached flag; None means "not resolved yet"
_internal_logging_enabled: bool | None = None


def _enabled() -> bool:
    global _internal_logging_enabled
    if _internal_logging_enabled is None:
        from .settings import AuditChainSettings

        try:
            _internal_logging_enabled = AuditChainSettings().internal_logging_enabled
        except Exception:
            # Invalid env configuration must not break diagnostics callers
            _internal_logging_enabled = False
    return _internal_logging_enabled


def set_enabled(enabled: bool) -> None:
    """Override the cached flag, e.g. from ``build_chain``."""
    global _internal_logging_enabled
    _internal_logging_enabled = bool(enabled)


def _emit(level: int, component: str, message: str, fields: dict[str, Any]) -> None:
    if not _enabled():
        return
    _logger.log(
        level,
        "[%s] %s",
        component,
        message,
        extra={"component": component, "diagnostic_fields": fields},
    )


def warn(component: str, message: str, **fields: Any) -> None:
    """Emit a WARN diagnostic for ``component``."""
    _emit(logging.WARNING, component, message, fields)


def debug(component: str, message: str, **fields: Any) -> None:
    _emit(logging.DEBUG, component, message, fields)
