"""
Command-line tools for inspecting a persisted audit chain.

    auditchain verify --db audit.db [--key-env AUDITCHAIN_SIGNING_KEY]
    auditchain stats --db audit.db --format json
    auditchain snapshot --db audit.db
    auditchain verify --db audit.db --retired-key <rotation-entry-id>=OLD_AUDIT_KEY

Exit codes: 0 chain valid, 1 chain invalid or compromised, 2 usage or
configuration error.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from dataclasses import asdict
from typing import Any

from pydantic import ValidationError

from .builder import build_chain
from .core.chain import AuditChain, VerificationResult
from .core.errors import (
    ConfigurationError,
    CorruptEntryError,
    IntegrityCompromisedError,
    StorageError,
)
from .core.key_schedule import KeyRotationRecord
from .core.settings import AuditChainSettings, StorageSettings
from .storage.sqlite import SQLiteAuditStorage


def _print_payload(payload: dict[str, Any], *, output_format: str) -> None:
    if output_format == "json":
        print(json.dumps(payload, indent=2))
        return
    for key, value in payload.items():
        print(f"{key}: {value}")


def _print_verification(
    result: VerificationResult, *, output_format: str, quiet: bool
) -> None:
    if output_format == "json":
        print(json.dumps(asdict(result), indent=2))
        return
    if quiet and result.valid:
        return
    status = "OK" if result.valid else "FAIL"
    print(f"[{status}] {result.entries_checked} entries checked")
    if not result.valid:
        print(f"- broken_at={result.broken_at} error={result.error}")


def _retired_keys(specs: list[str]) -> list[KeyRotationRecord]:
    """Parse repeated ``ENTRY_ID=ENV_VAR`` options into a key schedule."""
    records: list[KeyRotationRecord] = []
    for spec in specs:
        entry_id, sep, env_var = spec.partition("=")
        if not sep or not entry_id or not env_var:
            raise ConfigurationError(
                f"--retired-key expects ENTRY_ID=ENV_VAR, got {spec!r}",
                component_name="cli",
            )
        key = os.getenv(env_var)
        if not key:
            raise ConfigurationError(
                f"Retired key environment variable {env_var} is not set",
                component_name="cli",
            )
        records.append(KeyRotationRecord(from_entry_id=entry_id, key=key))
    return records


async def _run(args: argparse.Namespace, settings: AuditChainSettings) -> int:
    storage = SQLiteAuditStorage(settings.storage.sqlite_path)
    async with storage:
        chain: AuditChain = build_chain(
            settings, storage=storage, key_history=_retired_keys(args.retired_key)
        )
        if args.command == "verify":
            result = await chain.verify()
            _print_verification(
                result, output_format=args.output_format, quiet=args.quiet
            )
            return 0 if result.valid else 1
        if args.command == "stats":
            stats = await chain.get_stats()
            _print_payload(asdict(stats), output_format=args.output_format)
            return 0 if stats.chain_valid else 1
        if args.command == "snapshot":
            await chain.initialize()
            snapshot = await chain.create_snapshot()
            _print_payload(asdict(snapshot), output_format=args.output_format)
            return 0
    return 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="auditchain")
    sub = parser.add_subparsers(dest="command")
    for name, help_text in (
        ("verify", "Verify the full chain from genesis"),
        ("stats", "Entry count and chain validity"),
        ("snapshot", "Capture head metadata before a remediation"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--db", help="SQLite database path")
        p.add_argument(
            "--key-env", help="Environment variable holding the signing key"
        )
        p.add_argument(
            "--format", dest="output_format", choices=["text", "json"], default="text"
        )
        p.add_argument(
            "--retired-key",
            action="append",
            default=[],
            metavar="ENTRY_ID=ENV_VAR",
            help=(
                "Key retired after rotation entry ENTRY_ID, read from ENV_VAR; "
                "repeat oldest first"
            ),
        )
        p.add_argument("--quiet", action="store_true")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 2

    try:
        settings = AuditChainSettings()
        overrides: dict[str, Any] = {}
        if args.db:
            overrides["storage"] = StorageSettings(backend="sqlite", sqlite_path=args.db)
        if args.key_env:
            overrides["signing_key_env"] = args.key_env
        if overrides:
            settings = settings.model_copy(update=overrides)
        return asyncio.run(_run(args, settings))
    except ConfigurationError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 2
    except ValidationError as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        return 2
    except (IntegrityCompromisedError, CorruptEntryError) as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    except StorageError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
