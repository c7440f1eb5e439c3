"""
Backup orchestration for OfficeVault.

BackupService composes the SnapshotStore, the CatalogIndex and the
LiveStore handle into the operations the rest of the application uses:

    create   copy live -> snapshot, stat, insert record
    restore  lookup -> file check -> safety snapshot -> overwrite live
             -> discard stale journals -> refresh handle
    cleanup  query old records -> delete files -> delete records
    delete   remove one snapshot (file if present, then record)

Each step is a plain awaited call; an exception from any step stops the
sequence before the next one runs.

Invariants:
    - create/restore/cleanup/delete/sync are serialized by one asyncio.Lock
    - A record is inserted only after its copy succeeded
    - restore fails before touching the live store if the snapshot is unknown
      or its file is missing
    - A failed safety snapshot never blocks a restore; it is reported
    - cleanup removes a record only if its file was deleted or already absent

How to change safely:
    - Never mutate the live store outside restore()
    - Keep catalog writes after the file operation they describe
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from .catalog.index import CatalogIndex, SnapshotRecord, isoformat
from .config import ServerConfig
from .errors import BackupError, InconsistentError, NotFoundError
from .live_store import LiveStore
from .reconcile import ReconciliationChecker, SyncResult, VerifyReport
from .snapshot.naming import SnapshotKind, snapshot_filename
from .snapshot.store import SnapshotStore

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 15


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RestoreResult:
    """Result of a restore.

    Attributes:
        restored_from: Filename of the snapshot that was installed
        restored_at: When the live store was replaced
        requires_reload: Other holders of the live store must reconnect
        safety_snapshot: Filename of the pre-restore safety copy, if it succeeded
        warnings: Non-fatal problems (e.g. the safety copy failed)
    """

    restored_from: str
    restored_at: datetime
    requires_reload: bool = True
    safety_snapshot: str | None = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "restoredFrom": self.restored_from,
            "restoredAt": isoformat(self.restored_at),
            "requiresReload": self.requires_reload,
            "safetySnapshot": self.safety_snapshot,
            "warnings": list(self.warnings),
        }


@dataclass
class CleanupFailure:
    """A snapshot that cleanup could not delete."""

    filename: str
    reason: str

    def to_dict(self) -> dict[str, str]:
        return {"filename": self.filename, "reason": self.reason}


@dataclass
class CleanupResult:
    """Result of a retention cleanup.

    Attributes:
        deleted_count: Catalog records removed
        bytes_freed: Bytes of snapshot files actually deleted
        errors: Files whose deletion failed; their records are kept
        already_absent: Records removed whose file was already missing
    """

    deleted_count: int = 0
    bytes_freed: int = 0
    errors: list[CleanupFailure] = field(default_factory=list)
    already_absent: list[str] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.errors)

    @property
    def bytes_freed_mb(self) -> float:
        return round(self.bytes_freed / 1024 / 1024, 2)

    def to_dict(self) -> dict[str, Any]:
        return {
            "deletedCount": self.deleted_count,
            "bytesFreed": self.bytes_freed,
            "bytesFreedMB": self.bytes_freed_mb,
            "errors": [e.to_dict() for e in self.errors],
            "alreadyAbsent": list(self.already_absent),
        }


@dataclass
class DeleteResult:
    """Result of deleting one snapshot."""

    record: SnapshotRecord
    file_removed: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "deleted": self.record.id,
            "filename": self.record.filename,
            "fileRemoved": self.file_removed,
        }


class BackupService:
    """Creates, restores and expires snapshots of the live store.

    Attributes:
        store: Snapshot file store
        catalog: Snapshot catalog
        live_store: Handle on the live store
        reconciler: Verify/sync over the same store and catalog

    Example:
        >>> service = BackupService(store, catalog, live_store)
        >>> record = await service.create()
        >>> result = await service.restore(record.id)
        >>> result.requires_reload
        True
    """

    def __init__(
        self,
        store: SnapshotStore,
        catalog: CatalogIndex,
        live_store: LiveStore,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.catalog = catalog
        self.live_store = live_store
        self.clock = clock
        self._lock = asyncio.Lock()
        self.reconciler = ReconciliationChecker(store, catalog, lock=self._lock)

    async def create(self) -> SnapshotRecord:
        """Snapshot the live store.

        Returns:
            The new catalog record

        Raises:
            IOFailureError: If the copy failed (nothing is recorded)
        """
        async with self._lock:
            return await self._snapshot_live(SnapshotKind.REGULAR)

    async def restore(self, snapshot_id: str) -> RestoreResult:
        """Replace the live store with a snapshot.

        The service refreshes its own LiveStore handle. The returned
        ``requires_reload`` flag is for every other holder of the live store
        (other processes, client sessions), which must reconnect.

        Raises:
            NotFoundError: Unknown snapshot id
            InconsistentError: The catalog references a missing file
            IOFailureError: The overwrite failed (live store and its journals
                unchanged), or stale journals could not be removed afterwards
        """
        async with self._lock:
            record = await self.catalog.find_by_id(snapshot_id)
            if not self.store.exists(record.filename):
                raise InconsistentError(
                    f"Snapshot file missing for {snapshot_id}: {record.filename}",
                    snapshot_id=snapshot_id,
                    filename=record.filename,
                )

            start_time = time.time()
            warnings: list[str] = []
            safety_filename = None
            try:
                safety = await self._snapshot_live(SnapshotKind.PRE_RESTORE)
                safety_filename = safety.filename
            except BackupError as e:
                logger.warning(
                    f"Pre-restore safety snapshot failed, restoring anyway: {e.message}",
                    extra={"snapshot_id": snapshot_id},
                )
                warnings.append(f"Pre-restore safety snapshot failed: {e.message}")

            reopen = self.live_store.is_open
            self.live_store.close()
            stale_sidecars = False
            try:
                await self.store.overwrite_live(self.live_store.path, record.filename)
                # Journals left next to the live path belong to the replaced file.
                stale_sidecars = True
                self.live_store.discard_sidecars()
                stale_sidecars = False
            finally:
                if stale_sidecars:
                    logger.error(
                        "Live store left closed: stale journal files could not be removed",
                        extra={"path": str(self.live_store.path)},
                    )
                elif reopen:
                    self.live_store.open()

            result = RestoreResult(
                restored_from=record.filename,
                restored_at=self.clock(),
                safety_snapshot=safety_filename,
                warnings=warnings,
            )

            logger.info(
                "Restored live store",
                extra={
                    "snapshot_id": snapshot_id,
                    "filename": record.filename,
                    "safety_snapshot": safety_filename,
                    "duration_ms": int((time.time() - start_time) * 1000),
                },
            )
            return result

    async def cleanup(self, retention_days: int = DEFAULT_RETENTION_DAYS) -> CleanupResult:
        """Delete snapshots at least ``retention_days`` old.

        Files that are already gone are treated as deleted so their records do
        not linger, but they are listed in ``already_absent`` and logged.

        Raises:
            ValueError: If retention_days is negative
        """
        if retention_days < 0:
            raise ValueError("retention_days must be zero or positive")

        async with self._lock:
            cutoff = self.clock() - timedelta(days=retention_days)
            candidates = await self.catalog.query_older_than(cutoff)
            result = CleanupResult()
            removable: list[str] = []

            for record in candidates:
                try:
                    await self.store.delete(record.filename)
                except NotFoundError:
                    logger.warning(
                        f"Snapshot file already absent, dropping record: {record.filename}",
                        extra={"snapshot_id": record.id},
                    )
                    result.already_absent.append(record.filename)
                except BackupError as e:
                    logger.error(f"Failed to delete snapshot {record.filename}: {e.message}")
                    result.errors.append(CleanupFailure(record.filename, e.message))
                    continue
                else:
                    result.bytes_freed += record.size_bytes
                removable.append(record.id)

            result.deleted_count = await self.catalog.delete_many(removable)

        logger.info(
            "Cleanup completed",
            extra={
                "retention_days": retention_days,
                "cutoff": isoformat(cutoff),
                "deleted_count": result.deleted_count,
                "bytes_freed": result.bytes_freed,
                "failures": len(result.errors),
                "already_absent": len(result.already_absent),
            },
        )
        return result

    async def delete(self, snapshot_id: str) -> DeleteResult:
        """Delete one snapshot and its record.

        A missing file is tolerated, which makes this the way to drop orphan
        records reported by verify().

        Raises:
            NotFoundError: Unknown snapshot id
            IOFailureError: The file exists but could not be deleted (record kept)
        """
        async with self._lock:
            record = await self.catalog.find_by_id(snapshot_id)
            file_removed = True
            try:
                await self.store.delete(record.filename)
            except NotFoundError:
                file_removed = False
            await self.catalog.delete_many([record.id])

        logger.info(
            "Deleted snapshot",
            extra={"snapshot_id": snapshot_id, "filename": record.filename},
        )
        return DeleteResult(record=record, file_removed=file_removed)

    async def list(self) -> list[SnapshotRecord]:
        """Catalog records, newest first."""
        return await self.catalog.list_descending_by_creation()

    async def get(self, snapshot_id: str) -> SnapshotRecord:
        return await self.catalog.find_by_id(snapshot_id)

    async def verify(self) -> VerifyReport:
        return await self.reconciler.verify()

    async def sync(self) -> SyncResult:
        return await self.reconciler.sync()

    async def _snapshot_live(self, kind: SnapshotKind) -> SnapshotRecord:
        # Caller holds self._lock.
        moment = self.clock()
        filename = snapshot_filename(moment, kind)

        await self.store.copy(self.live_store.path, filename)
        try:
            size = self.store.stat(filename).st_size
            record = await self.catalog.insert(
                SnapshotRecord(
                    filename=filename,
                    size_bytes=size,
                    created_at=moment,
                    kind=kind,
                )
            )
        except Exception:
            # The copy is unregistered; remove it.
            try:
                await self.store.delete(filename)
            except BackupError as cleanup_error:
                logger.warning(f"Could not remove unregistered snapshot {filename}: {cleanup_error}")
            raise

        logger.info(
            "Created snapshot",
            extra={"snapshot_id": record.id, "filename": filename, "size_bytes": size},
        )
        return record


async def open_backup_service(config: ServerConfig) -> BackupService:
    """Build a BackupService from configuration.

    Creates the snapshot directory, initializes the catalog schema and opens
    the live store handle.
    """
    storage = config.storage

    store = SnapshotStore(storage.snapshot_path, chunk_size=config.retention.copy_chunk_bytes)
    store.ensure_directory()

    catalog = CatalogIndex(storage.catalog_path, busy_timeout_ms=storage.busy_timeout_ms)
    await catalog.initialize()

    live_store = LiveStore(storage.live_path, busy_timeout_ms=storage.busy_timeout_ms)
    live_store.open()

    return BackupService(store, catalog, live_store)
