"""
Snapshot filename convention.

    backup-<ts>.snapshot                  regular snapshot
    backup-before-restore-<ts>.snapshot   safety copy taken by restore

<ts> is an ISO-8601 UTC timestamp with ':' and '.' replaced by '-', e.g.
2026-10-19T08-15-42-123456Z. Microsecond precision keeps names created in
quick succession distinct.

The parser is deliberately lenient: it also accepts between zero and six
fractional digits, so files written by older builds (millisecond precision)
are still dated correctly when they are synced into the catalog.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum

SNAPSHOT_SUFFIX = ".snapshot"
REGULAR_PREFIX = "backup-"
SAFETY_PREFIX = "backup-before-restore-"

_FILENAME_RE = re.compile(r"^backup-(?P<safety>before-restore-)?(?P<stamp>.+)\.snapshot$")
_STAMP_RE = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})T(?P<h>\d{2})-(?P<m>\d{2})-(?P<s>\d{2})(?:-(?P<frac>\d{1,6}))?Z$"
)


class SnapshotKind(Enum):
    """Why a snapshot was taken."""

    REGULAR = "regular"
    PRE_RESTORE = "pre-restore-safety"


def format_timestamp(moment: datetime) -> str:
    """Render a moment as a filesystem-safe timestamp."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%fZ")


def snapshot_filename(moment: datetime, kind: SnapshotKind = SnapshotKind.REGULAR) -> str:
    """Build the filename for a snapshot taken at ``moment``."""
    prefix = SAFETY_PREFIX if kind is SnapshotKind.PRE_RESTORE else REGULAR_PREFIX
    return f"{prefix}{format_timestamp(moment)}{SNAPSHOT_SUFFIX}"


def is_snapshot_filename(name: str) -> bool:
    """Whether ``name`` follows the snapshot naming convention."""
    return _FILENAME_RE.match(name) is not None


def kind_from_filename(name: str) -> SnapshotKind | None:
    """Infer the snapshot kind from its filename prefix."""
    match = _FILENAME_RE.match(name)
    if match is None:
        return None
    return SnapshotKind.PRE_RESTORE if match.group("safety") else SnapshotKind.REGULAR


def parse_filename_timestamp(name: str) -> datetime | None:
    """Extract the creation time embedded in a snapshot filename.

    Args:
        name: Snapshot filename (no directory component)

    Returns:
        Timezone-aware UTC datetime, or None when the name does not follow the
        convention or the timestamp is not a valid date. Callers fall back to
        the file's modification time in that case.
    """
    match = _FILENAME_RE.match(name)
    if match is None:
        return None

    stamp = _STAMP_RE.match(match.group("stamp"))
    if stamp is None:
        return None

    frac = (stamp.group("frac") or "").ljust(6, "0")
    try:
        return datetime.strptime(
            f"{stamp.group('date')}T{stamp.group('h')}:{stamp.group('m')}:{stamp.group('s')}"
            f".{frac}",
            "%Y-%m-%dT%H:%M:%S.%f",
        ).replace(tzinfo=timezone.utc)
    except ValueError:
        return None
