"""
Snapshot catalog for OfficeVault.

The catalog is a small SQLite database, separate from the live store, that
describes every registered snapshot. It is deliberately kept out of the live
store: restoring a snapshot replaces the live store wholesale, and the
catalog must survive that.

Invariants:
    - One row per snapshot filename (UNIQUE)
    - Rows are never updated after insert
    - Operations never touch the snapshot directory

Table schema:
    snapshots:
        - id TEXT PRIMARY KEY (UUID)
        - filename TEXT UNIQUE
        - size_bytes INTEGER
        - created_at INTEGER (Unix microseconds, UTC)
        - kind TEXT ('regular' | 'pre-restore-safety')
        - status TEXT ('completed')
        - INDEX on (created_at)
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from ..errors import IOFailureError, NotFoundError
from ..snapshot.naming import SnapshotKind

logger = logging.getLogger(__name__)

STATUS_COMPLETED = "completed"
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def to_micros(moment: datetime) -> int:
    """UTC datetime to Unix microseconds (integer arithmetic, no float drift)."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (moment - _EPOCH) // timedelta(microseconds=1)


def from_micros(value: int) -> datetime:
    return _EPOCH + timedelta(microseconds=value)


def isoformat(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


@dataclass(frozen=True)
class SnapshotRecord:
    """A catalog entry describing one snapshot file.

    Attributes:
        filename: Snapshot filename in the snapshot directory
        size_bytes: File size at registration time
        created_at: Creation time (UTC)
        kind: Regular snapshot or pre-restore safety copy
        id: Opaque unique identifier
        status: Always "completed"; partial snapshots are never recorded
    """

    filename: str
    size_bytes: int
    created_at: datetime
    kind: SnapshotKind = SnapshotKind.REGULAR
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: str = STATUS_COMPLETED

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "filename": self.filename,
            "sizeBytes": self.size_bytes,
            "createdAt": isoformat(self.created_at),
            "kind": self.kind.value,
            "status": self.status,
        }


class CatalogIndex:
    """SQLite-backed index of snapshot records.

    Each operation opens its own connection, so the index can be shared by
    the HTTP app and CLI tools without holding a file handle open.

    Example:
        >>> catalog = CatalogIndex("/var/lib/office/backup_catalog.db")
        >>> await catalog.initialize()
        >>> await catalog.insert(record)
        >>> newest = (await catalog.list_descending_by_creation())[0]
    """

    def __init__(self, db_path: str | Path, busy_timeout_ms: int = 5000) -> None:
        self.db_path = Path(db_path)
        self.busy_timeout_ms = busy_timeout_ms

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=self.busy_timeout_ms / 1000.0,
            isolation_level=None,  # Autocommit by default, explicit transactions
        )
        conn.row_factory = sqlite3.Row
        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            yield conn
        finally:
            conn.close()

    async def initialize(self) -> None:
        """Create the catalog schema if it does not exist."""
        with self._get_connection() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS snapshots (
                    id TEXT PRIMARY KEY,
                    filename TEXT NOT NULL UNIQUE,
                    size_bytes INTEGER NOT NULL DEFAULT 0,
                    created_at INTEGER NOT NULL,
                    kind TEXT NOT NULL DEFAULT 'regular',
                    status TEXT NOT NULL DEFAULT 'completed'
                );

                CREATE INDEX IF NOT EXISTS idx_snapshots_created ON snapshots(created_at);
            """)
        logger.info(f"Initialized snapshot catalog: {self.db_path}")

    async def insert(self, record: SnapshotRecord) -> SnapshotRecord:
        """Insert a record.

        Raises:
            IOFailureError: If a record with the same id or filename exists
        """
        with self._get_connection() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO snapshots (id, filename, size_bytes, created_at, kind, status)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.id,
                        record.filename,
                        record.size_bytes,
                        to_micros(record.created_at),
                        record.kind.value,
                        record.status,
                    ),
                )
            except sqlite3.IntegrityError as e:
                raise IOFailureError(
                    f"Snapshot already registered: {record.filename}",
                    path=record.filename,
                    operation="catalog_insert",
                ) from e
        return record

    async def list_descending_by_creation(self) -> list[SnapshotRecord]:
        """All records, newest first."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM snapshots ORDER BY created_at DESC, rowid DESC"
            ).fetchall()
        return [self._row_to_record(row) for row in rows]

    async def find_by_id(self, snapshot_id: str) -> SnapshotRecord:
        """Look up a record by id.

        Raises:
            NotFoundError: If no record has that id
        """
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM snapshots WHERE id = ?", (snapshot_id,)).fetchone()
        if row is None:
            raise NotFoundError(
                f"Snapshot not found: {snapshot_id}", resource="snapshot", identifier=snapshot_id
            )
        return self._row_to_record(row)

    async def find_by_filename(self, filename: str) -> SnapshotRecord | None:
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM snapshots WHERE filename = ?", (filename,)).fetchone()
        return self._row_to_record(row) if row else None

    async def query_older_than(self, cutoff: datetime) -> list[SnapshotRecord]:
        """Records created at or before ``cutoff``, oldest first."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM snapshots WHERE created_at <= ? ORDER BY created_at, rowid",
                (to_micros(cutoff),),
            ).fetchall()
        return [self._row_to_record(row) for row in rows]

    async def delete_many(self, snapshot_ids: Iterable[str]) -> int:
        """Delete records by id.

        Returns:
            Number of records removed
        """
        ids = list(snapshot_ids)
        if not ids:
            return 0

        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                removed = 0
                for snapshot_id in ids:
                    cursor = conn.execute("DELETE FROM snapshots WHERE id = ?", (snapshot_id,))
                    removed += cursor.rowcount
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise
        return removed

    async def count(self) -> int:
        with self._get_connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM snapshots").fetchone()[0]

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> SnapshotRecord:
        return SnapshotRecord(
            id=row["id"],
            filename=row["filename"],
            size_bytes=row["size_bytes"],
            created_at=from_micros(row["created_at"]),
            kind=SnapshotKind(row["kind"]),
            status=row["status"],
        )
