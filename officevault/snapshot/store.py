"""
Snapshot file store for OfficeVault.

The SnapshotStore owns the snapshot directory. It only moves bytes around:
it knows nothing about the catalog and never decides which files should
exist. BackupService composes it with the CatalogIndex.

Invariants:
    - copy() never overwrites an existing snapshot (exclusive create)
    - A failed copy removes whatever partial file it produced
    - overwrite_live() installs the new content with an atomic rename, so the
      live store is either entirely old or entirely new
    - Filenames never contain path components

How to change safely:
    - Keep blocking file work inside run_in_executor
    - Keep the temp file for overwrite_live in the live store's directory;
      os.replace is only atomic within one filesystem
"""

from __future__ import annotations

import asyncio
import errno
import logging
import os
import shutil
import tempfile
from pathlib import Path

from ..errors import IOFailureError, NotFoundError
from .naming import is_snapshot_filename

logger = logging.getLogger(__name__)


class SnapshotStore:
    """Physical snapshot files in a single directory.

    Attributes:
        snapshot_dir: Directory holding the snapshot files
        chunk_size: Copy buffer size in bytes

    Example:
        >>> store = SnapshotStore("/var/lib/office/backups")
        >>> store.ensure_directory()
        >>> size = await store.copy(live_path, "backup-2026-10-19T08-15-42-123456Z.snapshot")
    """

    def __init__(self, snapshot_dir: str | Path, chunk_size: int = 1024 * 1024) -> None:
        self.snapshot_dir = Path(snapshot_dir)
        self.chunk_size = chunk_size

    def ensure_directory(self) -> None:
        """Create the snapshot directory if it does not exist."""
        try:
            self.snapshot_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise IOFailureError(
                f"Cannot create snapshot directory: {e}",
                path=str(self.snapshot_dir),
                operation="mkdir",
            ) from e

    def path_for(self, filename: str) -> Path:
        """Resolve a snapshot filename inside the snapshot directory.

        Raises:
            ValueError: If the name contains path components
        """
        if not filename or filename in (".", "..") or Path(filename).name != filename:
            raise ValueError(f"Invalid snapshot filename: {filename!r}")
        return self.snapshot_dir / filename

    def exists(self, filename: str) -> bool:
        return self.path_for(filename).is_file()

    def stat(self, filename: str) -> os.stat_result:
        """Stat a snapshot file.

        Raises:
            NotFoundError: If the file does not exist
            IOFailureError: On any other filesystem error
        """
        path = self.path_for(filename)
        try:
            return path.stat()
        except FileNotFoundError as e:
            raise NotFoundError(
                f"Snapshot file not found: {filename}", resource="file", identifier=filename
            ) from e
        except OSError as e:
            raise IOFailureError(
                f"Cannot stat snapshot {filename}: {e}", path=str(path), operation="stat"
            ) from e

    async def copy(self, source_path: str | Path, dest_filename: str) -> int:
        """Copy the current bytes of ``source_path`` into a new snapshot file.

        Args:
            source_path: File to copy (normally the live store)
            dest_filename: Name of the snapshot file to create

        Returns:
            Number of bytes copied

        Raises:
            IOFailureError: If the source cannot be read, the destination
                already exists, or the write fails
        """
        dest = self.path_for(dest_filename)
        return await asyncio.get_event_loop().run_in_executor(
            None, self._copy_file, Path(source_path), dest
        )

    async def list(self) -> list[str]:
        """List snapshot filenames in the directory.

        Raises:
            IOFailureError: If the directory is missing or unreadable
        """
        return await asyncio.get_event_loop().run_in_executor(None, self._list_files)

    async def delete(self, filename: str) -> None:
        """Delete a snapshot file.

        Raises:
            NotFoundError: If the file is already absent
            IOFailureError: On any other filesystem error
        """
        path = self.path_for(filename)
        try:
            await asyncio.get_event_loop().run_in_executor(None, path.unlink)
        except FileNotFoundError as e:
            raise NotFoundError(
                f"Snapshot file not found: {filename}", resource="file", identifier=filename
            ) from e
        except OSError as e:
            raise IOFailureError(
                f"Cannot delete snapshot {filename}: {e}", path=str(path), operation="delete"
            ) from e

        logger.info("Deleted snapshot file", extra={"filename": filename})

    async def overwrite_live(self, live_path: str | Path, snapshot_filename: str) -> int:
        """Replace the live store's content with a snapshot's bytes.

        The snapshot is copied to a temporary file next to the live store,
        flushed to disk, then renamed over ``live_path``.

        Returns:
            Number of bytes written

        Raises:
            NotFoundError: If the snapshot file does not exist
            IOFailureError: If the copy or rename fails (live store untouched)
        """
        source = self.path_for(snapshot_filename)
        if not source.is_file():
            raise NotFoundError(
                f"Snapshot file not found: {snapshot_filename}",
                resource="file",
                identifier=snapshot_filename,
            )
        return await asyncio.get_event_loop().run_in_executor(
            None, self._atomic_replace, source, Path(live_path)
        )

    def _copy_file(self, source: Path, dest: Path) -> int:
        """Copy with exclusive create; remove the partial file on failure."""
        created = False
        try:
            with open(source, "rb") as f_in:
                with open(dest, "xb") as f_out:
                    created = True
                    shutil.copyfileobj(f_in, f_out, self.chunk_size)
                    f_out.flush()
                    os.fsync(f_out.fileno())
            return dest.stat().st_size
        except OSError as e:
            if created:
                self._discard(dest)
            if e.errno == errno.EEXIST:
                message = f"Snapshot already exists, refusing to overwrite: {dest.name}"
            else:
                message = f"Failed to copy {source} to {dest.name}: {e}"
            raise IOFailureError(message, path=str(dest), operation="copy") from e

    def _list_files(self) -> list[str]:
        try:
            with os.scandir(self.snapshot_dir) as entries:
                return [
                    entry.name
                    for entry in entries
                    if entry.is_file() and is_snapshot_filename(entry.name)
                ]
        except OSError as e:
            raise IOFailureError(
                f"Cannot read snapshot directory: {e}",
                path=str(self.snapshot_dir),
                operation="list",
            ) from e

    def _atomic_replace(self, source: Path, live_path: Path) -> int:
        live_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{live_path.name}.", suffix=".restore", dir=live_path.parent
        )
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as f_out, open(source, "rb") as f_in:
                shutil.copyfileobj(f_in, f_out, self.chunk_size)
                f_out.flush()
                os.fsync(f_out.fileno())
            written = tmp_path.stat().st_size
            os.replace(tmp_path, live_path)
        except OSError as e:
            self._discard(tmp_path)
            raise IOFailureError(
                f"Failed to overwrite live store from {source.name}: {e}",
                path=str(live_path),
                operation="overwrite_live",
            ) from e

        self._fsync_directory(live_path.parent)
        return written

    @staticmethod
    def _discard(path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove partial file {path}: {e}")

    @staticmethod
    def _fsync_directory(directory: Path) -> None:
        # Persists the rename; not supported on every platform.
        try:
            fd = os.open(directory, os.O_RDONLY)
        except OSError:
            return
        try:
            os.fsync(fd)
        except OSError:
            pass
        finally:
            os.close(fd)
