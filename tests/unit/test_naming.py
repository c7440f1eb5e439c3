"""
Unit tests for the snapshot filename convention.

Tests cover:
- Filename generation for both snapshot kinds
- Timestamp parsing, including legacy millisecond names
- Rejection of names that do not follow the convention
"""

from datetime import datetime, timezone

import pytest

from officevault.snapshot.naming import (
    SnapshotKind,
    format_timestamp,
    is_snapshot_filename,
    kind_from_filename,
    parse_filename_timestamp,
    snapshot_filename,
)

MOMENT = datetime(2026, 10, 19, 8, 15, 42, 123456, tzinfo=timezone.utc)


class TestSnapshotFilename:
    """Tests for building snapshot filenames."""

    def test_regular_filename(self):
        """Regular snapshots use the backup- prefix and microsecond precision."""
        assert snapshot_filename(MOMENT) == "backup-2026-10-19T08-15-42-123456Z.snapshot"

    def test_safety_filename(self):
        """Safety copies use the backup-before-restore- prefix."""
        name = snapshot_filename(MOMENT, SnapshotKind.PRE_RESTORE)
        assert name == "backup-before-restore-2026-10-19T08-15-42-123456Z.snapshot"

    def test_timestamp_is_filesystem_safe(self):
        """No colons or dots in the timestamp part."""
        stamp = format_timestamp(MOMENT)
        assert ":" not in stamp
        assert "." not in stamp

    def test_naive_datetime_treated_as_utc(self):
        naive = MOMENT.replace(tzinfo=None)
        assert format_timestamp(naive) == format_timestamp(MOMENT)

    def test_distinct_microseconds_give_distinct_names(self):
        later = MOMENT.replace(microsecond=MOMENT.microsecond + 1)
        assert snapshot_filename(MOMENT) != snapshot_filename(later)


class TestParseFilenameTimestamp:
    """Tests for the pure timestamp parser used by sync."""

    def test_parses_generated_name(self):
        assert parse_filename_timestamp(snapshot_filename(MOMENT)) == MOMENT

    def test_parses_safety_name(self):
        name = snapshot_filename(MOMENT, SnapshotKind.PRE_RESTORE)
        assert parse_filename_timestamp(name) == MOMENT

    def test_parses_millisecond_precision(self):
        """Names with three fractional digits are read as milliseconds."""
        parsed = parse_filename_timestamp("backup-2025-07-22T10-15-30-123Z.snapshot")
        assert parsed == datetime(2025, 7, 22, 10, 15, 30, 123000, tzinfo=timezone.utc)

    def test_parses_without_fraction(self):
        parsed = parse_filename_timestamp("backup-2025-07-22T10-15-30Z.snapshot")
        assert parsed == datetime(2025, 7, 22, 10, 15, 30, tzinfo=timezone.utc)

    def test_result_is_timezone_aware(self):
        parsed = parse_filename_timestamp(snapshot_filename(MOMENT))
        assert parsed.tzinfo is not None

    @pytest.mark.parametrize(
        "name",
        [
            "backup-manual-copy.snapshot",
            "backup-2026-13-40T08-15-42-123456Z.snapshot",
            "backup-2026-10-19T25-15-42Z.snapshot",
            "backup-2026-10-19T08-15-42-123456Z.db",
            "snapshot-2026-10-19T08-15-42-123456Z.snapshot",
            "",
        ],
    )
    def test_unparseable_names_return_none(self, name):
        """Anything off-convention returns None so callers fall back to mtime."""
        assert parse_filename_timestamp(name) is None


class TestConventionMatching:
    """Tests for kind inference and convention checks."""

    def test_is_snapshot_filename(self):
        assert is_snapshot_filename("backup-2026-10-19T08-15-42-123456Z.snapshot")
        assert is_snapshot_filename("backup-manual-copy.snapshot")
        assert not is_snapshot_filename("office_manager.db")
        assert not is_snapshot_filename("backup-2026-10-19.snapshot.tmp")

    def test_kind_from_filename(self):
        assert kind_from_filename(snapshot_filename(MOMENT)) is SnapshotKind.REGULAR
        assert (
            kind_from_filename(snapshot_filename(MOMENT, SnapshotKind.PRE_RESTORE))
            is SnapshotKind.PRE_RESTORE
        )
        assert kind_from_filename("notes.txt") is None
