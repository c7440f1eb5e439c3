"""
Backup CLI tool for OfficeVault.

Operator access to the same operations the HTTP API exposes, for use from
cron jobs and maintenance shells:

Usage:
    officevault-backup list
    officevault-backup create
    officevault-backup restore <snapshot-id>
    officevault-backup cleanup [--retention-days N]
    officevault-backup verify
    officevault-backup sync
    officevault-backup delete <snapshot-id>

Common options: --data-dir, --json, -v.

Exit codes:
    0  success (verify: catalog and directory consistent)
    1  operation failed, or verify found divergence
    2  invalid arguments or configuration
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from typing import Any

from ..config import ServerConfig
from ..errors import BackupError
from ..service import BackupService, open_backup_service

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="officevault-backup",
        description="Manage snapshots of the office manager database",
    )
    parser.add_argument("--data-dir", help="Base data directory (overrides DATA_DIR)")
    parser.add_argument("--json", action="store_true", help="Print results as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("list", help="List registered snapshots, newest first")
    sub.add_parser("create", help="Snapshot the live store")

    restore = sub.add_parser("restore", help="Replace the live store with a snapshot")
    restore.add_argument("snapshot_id")

    cleanup = sub.add_parser("cleanup", help="Delete snapshots older than the retention period")
    cleanup.add_argument("--retention-days", type=int, default=None)

    sub.add_parser("verify", help="Compare the snapshot directory with the catalog")
    sub.add_parser("sync", help="Register snapshot files missing from the catalog")

    delete = sub.add_parser("delete", help="Delete one snapshot and its record")
    delete.add_argument("snapshot_id")
    return parser


def load_config(args: argparse.Namespace) -> ServerConfig:
    config = ServerConfig.from_env()
    if args.data_dir:
        storage = dataclasses.replace(config.storage, data_dir=args.data_dir)
        config = dataclasses.replace(config, storage=storage)
        config.validate()
    return config


async def run_command(args: argparse.Namespace, config: ServerConfig) -> int:
    """Execute one subcommand against a freshly opened service."""
    service = await open_backup_service(config)
    try:
        return await _dispatch(service, args, config)
    finally:
        service.live_store.close()


async def _dispatch(service: BackupService, args: argparse.Namespace, config: ServerConfig) -> int:
    command = args.command

    if command == "list":
        records = await service.list()
        if args.json:
            _print_json([r.to_dict() for r in records])
        else:
            print(f"Registered snapshots: {len(records)}")
            for index, record in enumerate(records, start=1):
                print(f"{index}. {record.filename}")
                print(f"   id: {record.id}")
                print(f"   size: {record.size_bytes} bytes  kind: {record.kind.value}")
                print(f"   created: {record.to_dict()['createdAt']}")
        return 0

    if command == "create":
        record = await service.create()
        if args.json:
            _print_json(record.to_dict())
        else:
            print(f"Created snapshot {record.filename} ({record.size_bytes} bytes)")
            print(f"  id: {record.id}")
        return 0

    if command == "restore":
        result = await service.restore(args.snapshot_id)
        if args.json:
            _print_json(result.to_dict())
        else:
            print(f"Restored live store from {result.restored_from}")
            print(f"  Safety snapshot: {result.safety_snapshot or 'none'}")
            for warning in result.warnings:
                print(f"  Warning: {warning}")
            print("  Restart or reconnect any running application instances.")
        return 0

    if command == "cleanup":
        days = args.retention_days
        if days is None:
            days = config.retention.retention_days
        result = await service.cleanup(days)
        if args.json:
            _print_json(result.to_dict())
        else:
            print(f"Deleted {result.deleted_count} snapshot(s) older than {days} days")
            print(f"  Space freed: {result.bytes_freed_mb:.2f} MB")
            for filename in result.already_absent:
                print(f"  Record dropped, file was already missing: {filename}")
            for failure in result.errors:
                print(f"  Failed: {failure.filename}: {failure.reason}")
        return 1 if result.partial else 0

    if command == "verify":
        report = await service.verify()
        if args.json:
            _print_json(report.to_dict())
        else:
            _print_report(report.to_dict())
        return 0 if report.consistent else 1

    if command == "sync":
        result = await service.sync()
        if args.json:
            _print_json(result.to_dict())
        else:
            for filename in result.registered:
                print(f"Registered: {filename}")
            for error in result.errors:
                print(f"Failed: {error['filename']}: {error['reason']}")
            print(f"Sync completed: {len(result.registered)} snapshot(s) registered")
        return 1 if result.errors else 0

    if command == "delete":
        deleted = await service.delete(args.snapshot_id)
        if args.json:
            _print_json(deleted.to_dict())
        else:
            state = "file removed" if deleted.file_removed else "file was already missing"
            print(f"Deleted snapshot {deleted.record.filename} ({state})")
        return 0

    raise ValueError(f"Unknown command: {command}")


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2))


def _print_report(report: dict[str, Any]) -> None:
    print("=== SNAPSHOT CONSISTENCY CHECK ===")
    print(f"Catalog records: {report['totalRecords']}")
    print(f"  Regular: {report['regularCount']}")
    print(f"  Pre-restore safety: {report['safetyCount']}")
    print(f"  Total size: {report['totalBytes'] / 1024 / 1024:.2f} MB")
    if report["oldest"]:
        print(f"  Oldest: {report['oldest']['filename']} ({report['oldest']['createdAt']})")
        print(f"  Newest: {report['newest']['filename']} ({report['newest']['createdAt']})")

    if report["orphanFiles"]:
        print(f"Orphan files ({len(report['orphanFiles'])}):")
        for filename in report["orphanFiles"]:
            print(f"  - {filename}")
        print("  Run 'officevault-backup sync' to register them.")

    if report["orphanRecords"]:
        print(f"Orphan records ({len(report['orphanRecords'])}):")
        for record in report["orphanRecords"]:
            print(f"  - {record['filename']} (id: {record['id']})")
        print("  Remove them with 'officevault-backup delete <id>'.")

    if report["consistent"]:
        print("All snapshots are consistent.")


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the backup tool."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    try:
        config = load_config(args)
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(2)

    try:
        code = asyncio.run(run_command(args, config))
    except BackupError as e:
        print(f"Error [{e.code}]: {e.message}", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)

    sys.exit(code)


if __name__ == "__main__":
    main()
