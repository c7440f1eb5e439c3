"""
Catalog/file reconciliation for OfficeVault.

Snapshot files and catalog records are two independently mutable views of
the same facts. Files can be copied in or deleted by hand; records can
outlive their files. This module reports that divergence (verify) and heals
the one direction that can be healed automatically (sync): files on disk
with no catalog record.

Snapshot states:
    present + registered    consistent
    present + unregistered  orphan file, healed by sync()
    registered + absent     orphan record, reported only; removed by an
                            explicit delete of the record
    absent                  gone from both

Invariants:
    - verify() never mutates anything
    - sync() only inserts catalog records, never touches files
    - sync() is idempotent
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .catalog.index import CatalogIndex, SnapshotRecord, isoformat
from .errors import BackupError
from .snapshot.naming import SnapshotKind, kind_from_filename, parse_filename_timestamp
from .snapshot.store import SnapshotStore

logger = logging.getLogger(__name__)


@dataclass
class VerifyReport:
    """Result of comparing the snapshot directory with the catalog.

    Attributes:
        orphan_files: Files with no catalog record
        orphan_records: Records whose file is missing
        total_bytes: Sum of registered snapshot sizes
        total_records: Number of catalog records
        regular_count: Records of kind regular
        safety_count: Records of kind pre-restore-safety
        oldest: Oldest record, if any
        newest: Newest record, if any
    """

    orphan_files: list[str]
    orphan_records: list[SnapshotRecord]
    total_bytes: int
    total_records: int
    regular_count: int
    safety_count: int
    oldest: SnapshotRecord | None = None
    newest: SnapshotRecord | None = None

    @property
    def consistent(self) -> bool:
        return not self.orphan_files and not self.orphan_records

    def to_dict(self) -> dict[str, Any]:
        return {
            "orphanFiles": list(self.orphan_files),
            "orphanRecords": [{"id": r.id, "filename": r.filename} for r in self.orphan_records],
            "totalBytes": self.total_bytes,
            "totalRecords": self.total_records,
            "regularCount": self.regular_count,
            "safetyCount": self.safety_count,
            "oldest": self.oldest.to_dict() if self.oldest else None,
            "newest": self.newest.to_dict() if self.newest else None,
            "consistent": self.consistent,
        }


@dataclass
class SyncResult:
    """Result of registering orphan files.

    Attributes:
        registered: Filenames that received a new catalog record
        errors: Files that could not be registered, with the reason
    """

    registered: list[str] = field(default_factory=list)
    errors: list[dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"registered": list(self.registered), "errors": list(self.errors)}


class ReconciliationChecker:
    """Compares SnapshotStore contents with CatalogIndex contents.

    The checker shares BackupService's lock for sync(), which mutates the
    catalog. verify() takes no lock.

    Example:
        >>> checker = ReconciliationChecker(store, catalog)
        >>> report = await checker.verify()
        >>> if report.orphan_files:
        ...     await checker.sync()
    """

    def __init__(
        self,
        store: SnapshotStore,
        catalog: CatalogIndex,
        lock: asyncio.Lock | None = None,
    ) -> None:
        self.store = store
        self.catalog = catalog
        self._lock = lock or asyncio.Lock()

    async def verify(self) -> VerifyReport:
        """Report orphan files and orphan records.

        Raises:
            IOFailureError: If the snapshot directory cannot be read
        """
        files = await self.store.list()
        records = await self.catalog.list_descending_by_creation()

        file_set = set(files)
        registered = {r.filename for r in records}

        orphan_files = sorted(f for f in file_set if f not in registered)
        orphan_records = [r for r in records if r.filename not in file_set]

        report = VerifyReport(
            orphan_files=orphan_files,
            orphan_records=orphan_records,
            total_bytes=sum(r.size_bytes for r in records),
            total_records=len(records),
            regular_count=sum(1 for r in records if r.kind is SnapshotKind.REGULAR),
            safety_count=sum(1 for r in records if r.kind is SnapshotKind.PRE_RESTORE),
            oldest=records[-1] if records else None,
            newest=records[0] if records else None,
        )

        if report.consistent:
            logger.info(f"Snapshot catalog consistent: {len(records)} records")
        else:
            logger.warning(
                "Snapshot catalog diverges from snapshot directory",
                extra={
                    "orphan_files": len(orphan_files),
                    "orphan_records": len(orphan_records),
                },
            )
        return report

    async def sync(self) -> SyncResult:
        """Register every snapshot file that has no catalog record.

        Raises:
            IOFailureError: If the snapshot directory cannot be read
        """
        async with self._lock:
            files = await self.store.list()
            result = SyncResult()

            for filename in sorted(files):
                if await self.catalog.find_by_filename(filename) is not None:
                    continue
                try:
                    record = await self._register(filename)
                except BackupError as e:
                    logger.error(f"Failed to register {filename}: {e.message}")
                    result.errors.append({"filename": filename, "reason": e.message})
                    continue

                result.registered.append(filename)
                logger.info(
                    "Registered orphan snapshot",
                    extra={
                        "filename": filename,
                        "size_bytes": record.size_bytes,
                        "created_at": isoformat(record.created_at),
                    },
                )

        logger.info(f"Sync completed: {len(result.registered)} snapshot(s) registered")
        return result

    async def _register(self, filename: str) -> SnapshotRecord:
        stat = self.store.stat(filename)
        created_at = infer_created_at(filename, stat.st_mtime)
        record = SnapshotRecord(
            filename=filename,
            size_bytes=stat.st_size,
            created_at=created_at,
            kind=kind_from_filename(filename) or SnapshotKind.REGULAR,
        )
        return await self.catalog.insert(record)


def infer_created_at(filename: str, mtime: float) -> datetime:
    """Creation time from the filename, falling back to the modification time."""
    parsed = parse_filename_timestamp(filename)
    if parsed is not None:
        return parsed
    logger.debug(f"Unparseable snapshot timestamp in {filename}, using mtime")
    return datetime.fromtimestamp(mtime, tz=timezone.utc)
