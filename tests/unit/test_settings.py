"""
Settings, signing key resolution and chain assembly.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from auditchain import build_chain, build_storage
from auditchain.core import diagnostics
from auditchain.core.errors import ConfigurationError
from auditchain.core.settings import (
    MIN_SIGNING_KEY_LENGTH,
    AuditChainSettings,
    StorageSettings,
    validate_signing_key,
)
from auditchain.storage.memory import InMemoryAuditStorage
from auditchain.storage.sqlite import SQLiteAuditStorage


class TestSigningKeyValidation:
    def test_minimum_length(self) -> None:
        assert MIN_SIGNING_KEY_LENGTH == 32
        assert validate_signing_key("a" * 32) == "a" * 32

    @pytest.mark.parametrize("key", ["", "a" * 31, None, 12345])
    def test_rejects_invalid_keys(self, key: object) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            validate_signing_key(key)  # type: ignore[arg-type]
        assert exc_info.value.context.component_name == "signer"


class TestAuditChainSettings:
    def test_defaults(self) -> None:
        settings = AuditChainSettings()
        assert settings.signing_key_env == "AUDITCHAIN_SIGNING_KEY"
        assert settings.storage.backend == "memory"
        assert settings.internal_logging_enabled is False
        assert settings.enable_metrics is False

    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AUDITCHAIN_STORAGE__BACKEND", "sqlite")
        monkeypatch.setenv("AUDITCHAIN_STORAGE__SQLITE_PATH", "/var/lib/audit.db")
        monkeypatch.setenv("AUDITCHAIN_ENABLE_METRICS", "true")

        settings = AuditChainSettings()
        assert settings.storage.backend == "sqlite"
        assert settings.storage.sqlite_path == "/var/lib/audit.db"
        assert settings.enable_metrics is True

    def test_unknown_backend_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AUDITCHAIN_STORAGE__BACKEND", "postgres")
        with pytest.raises(ValidationError):
            AuditChainSettings()

    def test_blank_sqlite_path_rejected(self) -> None:
        with pytest.raises(ValidationError):
            StorageSettings(sqlite_path="   ")

    def test_resolve_signing_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AUDITCHAIN_SIGNING_KEY", "s" * 48)
        assert AuditChainSettings().resolve_signing_key() == "s" * 48

    def test_resolve_from_custom_variable(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MY_AUDIT_KEY", "m" * 32)
        settings = AuditChainSettings(signing_key_env="MY_AUDIT_KEY")
        assert settings.resolve_signing_key() == "m" * 32

    def test_missing_key_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("AUDITCHAIN_SIGNING_KEY", raising=False)
        with pytest.raises(ConfigurationError) as exc_info:
            AuditChainSettings().resolve_signing_key()
        assert "AUDITCHAIN_SIGNING_KEY" in exc_info.value.message

    def test_short_key_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AUDITCHAIN_SIGNING_KEY", "short")
        with pytest.raises(ConfigurationError):
            AuditChainSettings().resolve_signing_key()


class TestBuilder:
    def test_build_storage_selects_backend(self) -> None:
        memory = build_storage(AuditChainSettings())
        assert isinstance(memory, InMemoryAuditStorage)

        sqlite = build_storage(
            AuditChainSettings(storage=StorageSettings(backend="sqlite"))
        )
        assert isinstance(sqlite, SQLiteAuditStorage)
        assert sqlite.path == "audit.db"

    @pytest.mark.asyncio
    async def test_build_chain_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AUDITCHAIN_SIGNING_KEY", "e" * 32)
        monkeypatch.setenv("AUDITCHAIN_ENABLE_METRICS", "1")

        async with build_chain() as chain:
            await chain.record("e", "info", "m")
            assert isinstance(chain.storage, InMemoryAuditStorage)
            assert chain.metrics.is_enabled is True
            assert (await chain.verify()).valid is True

    def test_build_chain_explicit_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("AUDITCHAIN_SIGNING_KEY", raising=False)
        storage = InMemoryAuditStorage()
        chain = build_chain(AuditChainSettings(), signing_key="x" * 32, storage=storage)
        assert chain.storage is storage

    def test_build_chain_without_key_raises(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("AUDITCHAIN_SIGNING_KEY", raising=False)
        with pytest.raises(ConfigurationError):
            build_chain()

    def test_build_chain_applies_diagnostics_flag(self) -> None:
        build_chain(
            AuditChainSettings(internal_logging_enabled=True), signing_key="x" * 32
        )
        assert diagnostics._internal_logging_enabled is True  # noqa: SLF001
