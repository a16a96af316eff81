"""
Configuration models for auditchain using Pydantic v2 Settings.

Settings are read from ``AUDITCHAIN_*`` environment variables; nested groups
use ``__`` as delimiter (``AUDITCHAIN_STORAGE__BACKEND=sqlite``). The signing
key itself is never stored in settings: ``signing_key_env`` names the
variable that holds it and ``resolve_signing_key()`` reads it on demand.
"""

from __future__ import annotations

import os
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (  # type: ignore[import-not-found]
    BaseSettings,
    SettingsConfigDict,
)

from .errors import ConfigurationError

# Minimum signing key length in characters; not configurable
MIN_SIGNING_KEY_LENGTH = 32


def validate_signing_key(key: str) -> str:
    """Return ``key`` unchanged or raise ``ConfigurationError`` if too short."""
    if not isinstance(key, str) or len(key) < MIN_SIGNING_KEY_LENGTH:
        raise ConfigurationError(
            f"Signing key must be at least {MIN_SIGNING_KEY_LENGTH} characters",
            component_name="signer",
        )
    return key


class StorageSettings(BaseModel):
    """Storage backend selection."""

    backend: Literal["memory", "sqlite"] = Field(
        default="memory",
        description="Storage backend used by build_chain()",
    )
    sqlite_path: str = Field(
        default="audit.db",
        description="SQLite database path; ':memory:' for a private in-memory db",
    )

    @field_validator("sqlite_path")
    @classmethod
    def _ensure_path_non_empty(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("sqlite_path must not be empty")
        return value


class AuditChainSettings(BaseSettings):
    """Top-level configuration for an audit chain deployment."""

    signing_key_env: str = Field(
        default="AUDITCHAIN_SIGNING_KEY",
        description="Name of the environment variable holding the signing key",
    )
    storage: StorageSettings = Field(default_factory=StorageSettings)
    internal_logging_enabled: bool = Field(
        default=False,
        description="Emit WARN/DEBUG diagnostics for internal non-fatal conditions",
    )
    enable_metrics: bool = Field(
        default=False,
        description="Enable Prometheus-compatible chain metrics",
    )

    model_config = SettingsConfigDict(
        env_prefix="AUDITCHAIN_",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    def resolve_signing_key(self) -> str:
        """Read and validate the signing key from the configured env var."""
        value = os.getenv(self.signing_key_env)
        if not value:
            raise ConfigurationError(
                f"Signing key environment variable {self.signing_key_env} is not set",
                component_name="settings",
            )
        return validate_signing_key(value)
