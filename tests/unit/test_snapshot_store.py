"""
Unit tests for the snapshot file store.

Tests cover:
- Byte-exact copies and refusal to overwrite
- Cleanup of partial files on failed copies
- Listing by naming convention
- Atomic overwrite of the live store
"""

import os

import pytest

from officevault.errors import IOFailureError, NotFoundError
from officevault.snapshot.store import SnapshotStore

NAME_A = "backup-2026-10-19T08-15-42-123456Z.snapshot"
NAME_B = "backup-before-restore-2026-10-19T08-16-00-000001Z.snapshot"


class TestSnapshotStore:
    """Tests for SnapshotStore."""

    @pytest.fixture
    def store(self, data_dir):
        store = SnapshotStore(data_dir / "backups", chunk_size=4096)
        store.ensure_directory()
        return store

    @pytest.fixture
    def live_path(self, data_dir):
        path = data_dir / "office_manager.db"
        path.write_bytes(os.urandom(20_000))
        return path

    @pytest.mark.asyncio
    async def test_copy_is_byte_identical(self, store, live_path):
        """Copy duplicates the source's current bytes."""
        copied = await store.copy(live_path, NAME_A)

        assert copied == 20_000
        assert store.path_for(NAME_A).read_bytes() == live_path.read_bytes()

    @pytest.mark.asyncio
    async def test_copy_refuses_to_overwrite(self, store, live_path):
        """An existing snapshot is never overwritten."""
        store.path_for(NAME_A).write_bytes(b"original")

        with pytest.raises(IOFailureError) as exc_info:
            await store.copy(live_path, NAME_A)

        assert exc_info.value.operation == "copy"
        assert store.path_for(NAME_A).read_bytes() == b"original"

    @pytest.mark.asyncio
    async def test_copy_missing_source_leaves_nothing(self, store, data_dir):
        """A failed copy leaves no partial file behind."""
        with pytest.raises(IOFailureError):
            await store.copy(data_dir / "missing.db", NAME_A)

        assert not store.exists(NAME_A)
        assert await store.list() == []

    @pytest.mark.asyncio
    async def test_copy_failure_mid_write_removes_partial(self, store, live_path, monkeypatch):
        """If the write fails after the file was created, the file is removed."""

        def failing_copy(src, dst, length=0):
            dst.write(b"partial")
            raise OSError(28, "No space left on device")

        monkeypatch.setattr("officevault.snapshot.store.shutil.copyfileobj", failing_copy)

        with pytest.raises(IOFailureError):
            await store.copy(live_path, NAME_A)

        assert not store.exists(NAME_A)

    @pytest.mark.asyncio
    async def test_list_filters_by_convention(self, store):
        """Only files following the naming convention are listed."""
        for name in (NAME_A, NAME_B, "notes.txt", "backup-old.db"):
            store.path_for(name).write_bytes(b"x")
        (store.snapshot_dir / "backup-dir.snapshot").mkdir()

        assert sorted(await store.list()) == sorted([NAME_A, NAME_B])

    @pytest.mark.asyncio
    async def test_list_missing_directory(self, data_dir):
        """An unmounted snapshot directory is an IO failure."""
        store = SnapshotStore(data_dir / "not-mounted")

        with pytest.raises(IOFailureError):
            await store.list()

    @pytest.mark.asyncio
    async def test_delete(self, store):
        store.path_for(NAME_A).write_bytes(b"x")

        await store.delete(NAME_A)

        assert not store.exists(NAME_A)

    @pytest.mark.asyncio
    async def test_delete_missing_raises_not_found(self, store):
        with pytest.raises(NotFoundError):
            await store.delete(NAME_A)

    def test_stat_missing_raises_not_found(self, store):
        with pytest.raises(NotFoundError):
            store.stat(NAME_A)

    @pytest.mark.parametrize("name", ["../escape.snapshot", "sub/backup.snapshot", "", ".."])
    def test_path_for_rejects_path_components(self, store, name):
        with pytest.raises(ValueError):
            store.path_for(name)

    @pytest.mark.asyncio
    async def test_overwrite_live_replaces_content(self, store, live_path):
        """The live store ends up byte-identical to the snapshot."""
        snapshot_bytes = os.urandom(12_345)
        store.path_for(NAME_A).write_bytes(snapshot_bytes)

        written = await store.overwrite_live(live_path, NAME_A)

        assert written == 12_345
        assert live_path.read_bytes() == snapshot_bytes
        # No temp files left next to the live store
        assert sorted(p.name for p in live_path.parent.iterdir()) == ["backups", live_path.name]

    @pytest.mark.asyncio
    async def test_overwrite_live_missing_snapshot(self, store, live_path):
        before = live_path.read_bytes()

        with pytest.raises(NotFoundError):
            await store.overwrite_live(live_path, NAME_A)

        assert live_path.read_bytes() == before

    @pytest.mark.asyncio
    async def test_overwrite_live_failed_rename_keeps_live(self, store, live_path, monkeypatch):
        """A failure before the rename leaves the live store untouched."""
        before = live_path.read_bytes()
        store.path_for(NAME_A).write_bytes(b"new content")

        def failing_replace(src, dst):
            raise OSError(5, "Input/output error")

        monkeypatch.setattr("officevault.snapshot.store.os.replace", failing_replace)

        with pytest.raises(IOFailureError) as exc_info:
            await store.overwrite_live(live_path, NAME_A)

        assert exc_info.value.operation == "overwrite_live"
        assert live_path.read_bytes() == before
        assert sorted(p.name for p in live_path.parent.iterdir()) == ["backups", live_path.name]
