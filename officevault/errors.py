"""
Error types for OfficeVault.

This module defines the exceptions raised by the backup subsystem:
- BackupError: Base exception
- NotFoundError: Referenced snapshot id or file does not exist
- IOFailureError: Copy, delete or write failed at the filesystem level
- InconsistentError: Catalog references a snapshot file that is missing

A partially failed cleanup is not an exception; it is reported through
CleanupResult.errors and the batch carries on.

Invariants:
    - All errors inherit from BackupError
    - Every error carries a stable code for programmatic handling
    - to_dict() is the structured error body returned to callers
"""

from __future__ import annotations

from typing import Any


class BackupError(Exception):
    """Base exception for all backup subsystem errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "BACKUP_ERROR"
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Structured error body."""
        return {"error": self.message, "error_code": self.code, "details": self.details}


class NotFoundError(BackupError):
    """A snapshot record or snapshot file does not exist.

    Raised when:
    - restore/delete/get is called with an unknown id
    - SnapshotStore.delete or stat targets a missing file
    """

    def __init__(
        self,
        message: str,
        resource: str | None = None,
        identifier: str | None = None,
    ) -> None:
        super().__init__(
            message,
            code="NOT_FOUND",
            details={"resource": resource, "identifier": identifier},
        )
        self.resource = resource
        self.identifier = identifier


class IOFailureError(BackupError):
    """A filesystem operation failed.

    Raised when:
    - Copying the live store or a snapshot fails
    - Deleting a snapshot file fails for a reason other than absence
    - The snapshot directory is missing or unreadable
    - A snapshot filename would collide with an existing file
    """

    def __init__(
        self,
        message: str,
        path: str | None = None,
        operation: str | None = None,
    ) -> None:
        super().__init__(
            message,
            code="IO_FAILURE",
            details={"path": path, "operation": operation},
        )
        self.path = path
        self.operation = operation


class InconsistentError(BackupError):
    """The catalog references a snapshot file that does not exist."""

    def __init__(
        self,
        message: str,
        snapshot_id: str | None = None,
        filename: str | None = None,
    ) -> None:
        super().__init__(
            message,
            code="INCONSISTENT",
            details={"snapshot_id": snapshot_id, "filename": filename},
        )
        self.snapshot_id = snapshot_id
        self.filename = filename
