"""
Snapshot module for OfficeVault.

This module handles the physical snapshot files:
- Byte copies of the live store into the snapshot directory
- Atomic replacement of the live store from a snapshot
- The filename convention and its timestamp parser

Invariants:
    - Only complete copies are left behind in the snapshot directory
    - Snapshot files are never overwritten
"""

from .naming import SnapshotKind, parse_filename_timestamp, snapshot_filename
from .store import SnapshotStore

__all__ = ["SnapshotKind", "SnapshotStore", "parse_filename_timestamp", "snapshot_filename"]
