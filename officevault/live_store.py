"""
Live store handle for OfficeVault.

The live store is the single SQLite file the rest of the office manager
reads and writes. Instead of a process-wide global connection, the
application holds one LiveStore and passes it to whoever needs it. Restore
closes the handle, swaps the file underneath, and reopens it; the
``generation`` counter lets long-lived holders notice that happened.

Invariants:
    - At most one connection is held per LiveStore
    - The connection uses a rollback journal (journal_mode=DELETE) so the
      main file alone is a complete copy of the database between transactions
    - Journal sidecars are discarded only while the handle is closed
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from .errors import IOFailureError

logger = logging.getLogger(__name__)

_SIDECAR_SUFFIXES = ("-journal", "-wal", "-shm")


class LiveStoreClosedError(RuntimeError):
    """The live store handle is not open."""


class LiveStore:
    """Explicit handle on the live SQLite store.

    Attributes:
        path: Live store file
        busy_timeout_ms: SQLite busy timeout
        generation: Incremented every time the handle is (re)opened

    Example:
        >>> live = LiveStore("/var/lib/office/office_manager.db")
        >>> conn = live.open()
        >>> live.refresh()  # after the file has been replaced
    """

    def __init__(self, path: str | Path, busy_timeout_ms: int = 5000) -> None:
        self.path = Path(path)
        self.busy_timeout_ms = busy_timeout_ms
        self.generation = 0
        self._conn: sqlite3.Connection | None = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def connection(self) -> sqlite3.Connection:
        """The open connection.

        Raises:
            LiveStoreClosedError: If the handle is closed (e.g. mid-restore)
        """
        if self._conn is None:
            raise LiveStoreClosedError(f"Live store is not open: {self.path}")
        return self._conn

    def open(self) -> sqlite3.Connection:
        """Open the handle, creating the database file if needed."""
        if self._conn is not None:
            return self._conn

        self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(
            str(self.path),
            timeout=self.busy_timeout_ms / 1000.0,
            check_same_thread=False,
        )
        conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
        conn.execute("PRAGMA journal_mode = DELETE")
        self._conn = conn
        self.generation += 1
        logger.info(
            "Opened live store", extra={"path": str(self.path), "generation": self.generation}
        )
        return conn

    def close(self) -> None:
        if self._conn is None:
            return
        self._conn.close()
        self._conn = None
        logger.info("Closed live store", extra={"path": str(self.path)})

    def refresh(self) -> sqlite3.Connection:
        """Close and reopen, picking up a replaced file."""
        self.close()
        return self.open()

    def discard_sidecars(self) -> list[Path]:
        """Remove leftover journal files next to a closed live store.

        A hot journal from an earlier crash would otherwise be replayed onto
        the restored file the next time it is opened.

        Returns:
            Paths that were removed

        Raises:
            IOFailureError: If a sidecar exists but cannot be removed
        """
        if self._conn is not None:
            raise RuntimeError("Cannot discard journal files while the live store is open")

        removed = []
        for suffix in _SIDECAR_SUFFIXES:
            sidecar = self.path.with_name(self.path.name + suffix)
            if not sidecar.exists():
                continue
            try:
                sidecar.unlink()
            except OSError as e:
                raise IOFailureError(
                    f"Cannot remove live store sidecar {sidecar.name}: {e}",
                    path=str(sidecar),
                    operation="discard_sidecars",
                ) from e
            removed.append(sidecar)
            logger.warning(f"Discarded stale live store sidecar: {sidecar.name}")
        return removed
