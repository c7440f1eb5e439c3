"""
HTTP API tests.

Drives the FastAPI app through TestClient so the lifespan handler opens a
real service against a temporary data directory.
"""

import pytest
from fastapi.testclient import TestClient

from officevault.api import create_app
from officevault.config import ServerConfig, StorageConfig
from tests.conftest import make_office_db


@pytest.fixture
def config(data_dir):
    make_office_db(data_dir / "office_manager.db", ["standup", "planning"])
    return ServerConfig(storage=StorageConfig(data_dir=str(data_dir)))


@pytest.fixture
def client(config):
    with TestClient(create_app(config)) as client:
        yield client


class TestBackupsApi:
    """Tests for the /api/backups routes."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["liveStore"] is True
        assert body["liveStoreGeneration"] == 1
        assert body["snapshotDir"] is True

    def test_create_and_list(self, client):
        created = client.post("/api/backups")

        assert created.status_code == 201
        body = created.json()
        assert body["filename"].startswith("backup-")
        assert body["kind"] == "regular"
        assert body["status"] == "completed"
        assert body["sizeBytes"] > 0

        listed = client.get("/api/backups").json()
        assert [item["id"] for item in listed] == [body["id"]]

    def test_get_one(self, client):
        created = client.post("/api/backups").json()

        response = client.get(f"/api/backups/{created['id']}")

        assert response.status_code == 200
        assert response.json() == created

    def test_unknown_id_is_404(self, client):
        response = client.get("/api/backups/not-a-real-id")

        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"

    def test_restore(self, client):
        created = client.post("/api/backups").json()

        response = client.post(f"/api/backups/{created['id']}/restore")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["requiresReload"] is True
        assert body["restoredFrom"] == created["filename"]
        assert body["safetySnapshot"].startswith("backup-before-restore-")
        assert client.get("/health").json()["liveStoreGeneration"] == 2

    def test_restore_unknown_is_404(self, client):
        response = client.post("/api/backups/missing/restore")
        assert response.status_code == 404

    def test_restore_missing_file_is_409(self, client, data_dir):
        created = client.post("/api/backups").json()
        (data_dir / "backups" / created["filename"]).unlink()

        response = client.post(f"/api/backups/{created['id']}/restore")

        assert response.status_code == 409
        assert response.json()["error_code"] == "INCONSISTENT"

    def test_cleanup_nothing_old(self, client):
        client.post("/api/backups")

        response = client.delete("/api/backups/cleanup")

        assert response.status_code == 200
        body = response.json()
        assert body["deletedCount"] == 0
        assert body["bytesFreedMB"] == 0
        assert "message" in body
        assert len(client.get("/api/backups").json()) == 1

    def test_cleanup_zero_days(self, client):
        client.post("/api/backups")

        body = client.delete("/api/backups/cleanup", params={"retention_days": 0}).json()

        assert body["deletedCount"] == 1
        assert body["bytesFreed"] > 0
        assert client.get("/api/backups").json() == []

    def test_cleanup_negative_days_rejected(self, client):
        response = client.delete("/api/backups/cleanup", params={"retention_days": -1})
        assert response.status_code == 422

    def test_delete(self, client):
        created = client.post("/api/backups").json()

        response = client.delete(f"/api/backups/{created['id']}")

        assert response.status_code == 200
        assert response.json() == {
            "deleted": created["id"],
            "filename": created["filename"],
            "fileRemoved": True,
        }
        assert client.get(f"/api/backups/{created['id']}").status_code == 404

    def test_verify_and_sync(self, client, data_dir):
        orphan = "backup-2026-10-01T00-00-00-000000Z.snapshot"
        (data_dir / "backups" / orphan).write_bytes(b"copied in by hand")

        report = client.get("/api/backups/verify").json()
        assert report["orphanFiles"] == [orphan]
        assert report["consistent"] is False

        synced = client.post("/api/backups/sync").json()
        assert synced["registered"] == [orphan]

        assert client.get("/api/backups/verify").json()["consistent"] is True
