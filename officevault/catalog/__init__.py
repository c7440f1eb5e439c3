"""
Catalog module for OfficeVault.

The catalog records which snapshots exist, independently of the files in
the snapshot directory. ReconciliationChecker compares the two.
"""

from .index import CatalogIndex, SnapshotRecord

__all__ = ["CatalogIndex", "SnapshotRecord"]
