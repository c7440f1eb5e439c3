"""
OfficeVault - backup and restore for the office manager's SQLite store.

This package keeps point-in-time snapshots of the application's single
primary database (the live store) together with a separate catalog that
describes them:

    ┌──────────────┐     ┌──────────────────┐
    │  HTTP / CLI  │────▶│  BackupService   │
    └──────────────┘     └────────┬─────────┘
                                  │
         ┌──────────────┬─────────┴────┬─────────────────┐
         ▼              ▼              ▼                 ▼
  ┌─────────────┐ ┌─────────────┐ ┌───────────┐ ┌────────────────┐
  │SnapshotStore│ │CatalogIndex │ │ LiveStore │ │ Reconciliation │
  │  (files)    │ │  (SQLite)   │ │ (SQLite)  │ │    Checker     │
  └─────────────┘ └─────────────┘ └───────────┘ └────────────────┘

Invariants:
    - A catalog record exists only for a snapshot file whose copy completed
    - Snapshot filenames are never reused or overwritten
    - The live store is replaced atomically, never written in place
    - Catalog/file divergence is reported by verify, not silently repaired

How to change safely:
    - Keep the filename convention parseable by snapshot.naming
    - Route every mutating operation through BackupService's lock
"""

from ._version import __version__

__all__ = ["__version__"]
