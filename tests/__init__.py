"""
OfficeVault Test Suite.

This package contains:
- unit/: Unit tests for the leaf components (naming, store, catalog, live store, config)
- integration/: BackupService, reconciliation, HTTP API and CLI over real temp directories
"""
