"""
HTTP API for OfficeVault.

Exposes the backup operations to the office manager frontend:
- GET/POST /api/backups
- POST /api/backups/{id}/restore
- DELETE /api/backups/cleanup
- GET /api/backups/verify, POST /api/backups/sync

Invariants:
    - Handlers only call BackupService; no file or catalog access here
    - Error bodies are BackupError.to_dict()
"""

from .app import create_app
from .routes import router

__all__ = ["create_app", "router"]
