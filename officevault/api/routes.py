"""
Backup API routes.

Thin HTTP wrappers over BackupService. Bodies use the camelCase shapes the
office manager's frontend already consumes.

Routes with fixed segments (verify, sync, cleanup) are declared before the
``/{snapshot_id}`` routes so they are not captured as ids.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field

from ..service import BackupService

router = APIRouter(tags=["Backups"])


# =============================================================================
# Response Models
# =============================================================================


class SnapshotResponse(BaseModel):
    """One catalog record."""
    id: str
    filename: str
    sizeBytes: int
    createdAt: str = Field(..., description="ISO 8601, UTC, millisecond precision")
    kind: str = Field(..., description="'regular' or 'pre-restore-safety'")
    status: str


class OrphanRecordResponse(BaseModel):
    id: str
    filename: str


class FailureResponse(BaseModel):
    filename: str
    reason: str


class VerifyResponse(BaseModel):
    """Divergence between the snapshot directory and the catalog."""
    orphanFiles: list[str]
    orphanRecords: list[OrphanRecordResponse]
    totalBytes: int
    totalRecords: int
    regularCount: int
    safetyCount: int
    oldest: SnapshotResponse | None = None
    newest: SnapshotResponse | None = None
    consistent: bool


class SyncResponse(BaseModel):
    registered: list[str] = Field(default_factory=list)
    errors: list[FailureResponse] = Field(default_factory=list)


class CleanupResponse(BaseModel):
    """Result of a retention cleanup."""
    deletedCount: int
    bytesFreed: int
    bytesFreedMB: float
    errors: list[FailureResponse] = Field(default_factory=list)
    alreadyAbsent: list[str] = Field(default_factory=list)
    message: str | None = None


class RestoreResponse(BaseModel):
    """Result of a restore. Clients must reload when requiresReload is set."""
    success: bool = True
    restoredFrom: str
    restoredAt: str
    requiresReload: bool
    safetySnapshot: str | None = None
    warnings: list[str] = Field(default_factory=list)


class DeleteResponse(BaseModel):
    deleted: str
    filename: str
    fileRemoved: bool


# =============================================================================
# Dependencies
# =============================================================================


def get_backup_service(request: Request) -> BackupService:
    """Get the backup service from app state."""
    return request.app.state.backup_service


def get_default_retention(request: Request) -> int:
    return request.app.state.config.retention.retention_days


# =============================================================================
# Routes
# =============================================================================


@router.get("/backups", response_model=list[SnapshotResponse])
async def list_backups(
    service: BackupService = Depends(get_backup_service),
) -> list[dict[str, Any]]:
    """List snapshots, newest first."""
    return [record.to_dict() for record in await service.list()]


@router.post("/backups", response_model=SnapshotResponse, status_code=201)
async def create_backup(
    service: BackupService = Depends(get_backup_service),
) -> dict[str, Any]:
    """Snapshot the live store."""
    record = await service.create()
    return record.to_dict()


@router.get("/backups/verify", response_model=VerifyResponse)
async def verify_backups(
    service: BackupService = Depends(get_backup_service),
) -> dict[str, Any]:
    """Compare the snapshot directory with the catalog."""
    report = await service.verify()
    return report.to_dict()


@router.post("/backups/sync", response_model=SyncResponse)
async def sync_backups(
    service: BackupService = Depends(get_backup_service),
) -> dict[str, Any]:
    """Register snapshot files that have no catalog record."""
    result = await service.sync()
    return result.to_dict()


@router.delete(
    "/backups/cleanup", response_model=CleanupResponse, response_model_exclude_none=True
)
async def cleanup_backups(
    retention_days: int | None = Query(None, ge=0, description="Age threshold in days"),
    service: BackupService = Depends(get_backup_service),
    default_retention: int = Depends(get_default_retention),
) -> dict[str, Any]:
    """Delete snapshots older than the retention period."""
    days = default_retention if retention_days is None else retention_days
    result = await service.cleanup(days)

    body = result.to_dict()
    if result.deleted_count == 0:
        body["message"] = f"No backups older than {days} days"
    return body


@router.get("/backups/{snapshot_id}", response_model=SnapshotResponse)
async def get_backup(
    snapshot_id: str,
    service: BackupService = Depends(get_backup_service),
) -> dict[str, Any]:
    """Get one snapshot record."""
    record = await service.get(snapshot_id)
    return record.to_dict()


@router.post("/backups/{snapshot_id}/restore", response_model=RestoreResponse)
async def restore_backup(
    snapshot_id: str,
    service: BackupService = Depends(get_backup_service),
) -> dict[str, Any]:
    """Replace the live store with a snapshot."""
    result = await service.restore(snapshot_id)
    return result.to_dict()


@router.delete("/backups/{snapshot_id}", response_model=DeleteResponse)
async def delete_backup(
    snapshot_id: str,
    service: BackupService = Depends(get_backup_service),
) -> dict[str, Any]:
    """Delete one snapshot and its catalog record."""
    result = await service.delete(snapshot_id)
    return result.to_dict()
