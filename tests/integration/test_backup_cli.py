"""
Tests for the officevault-backup command line tool.
"""

import json

import pytest

from officevault.tools.backup_cli import main
from tests.conftest import make_office_db


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("DATA_DIR", "LIVE_DB_PATH", "SNAPSHOT_DIR", "CATALOG_DB_PATH", "LOG_FORMAT"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def run(data_dir, capsys):
    """Run the CLI against the temp data dir; returns (exit code, stdout)."""
    make_office_db(data_dir / "office_manager.db", ["standup"])

    def _run(*argv):
        with pytest.raises(SystemExit) as exc_info:
            main(["--data-dir", str(data_dir), *argv])
        return exc_info.value.code, capsys.readouterr().out

    return _run


class TestBackupCli:
    """Tests for the backup CLI."""

    def test_create_and_list(self, run):
        code, out = run("--json", "create")
        assert code == 0
        created = json.loads(out)

        code, out = run("--json", "list")
        assert code == 0
        assert [item["id"] for item in json.loads(out)] == [created["id"]]

    def test_list_text_output(self, run):
        run("create")

        code, out = run("list")

        assert code == 0
        assert "Registered snapshots: 1" in out

    def test_restore(self, run):
        _, out = run("--json", "create")
        created = json.loads(out)

        code, out = run("--json", "restore", created["id"])

        assert code == 0
        assert json.loads(out)["restoredFrom"] == created["filename"]

    def test_restore_unknown_exits_1(self, run):
        code, _ = run("restore", "missing")
        assert code == 1

    def test_cleanup_zero_days(self, run):
        run("create")

        code, out = run("--json", "cleanup", "--retention-days", "0")

        assert code == 0
        assert json.loads(out)["deletedCount"] == 1

    def test_verify_exit_code_reflects_consistency(self, run, data_dir):
        code, out = run("verify")
        assert code == 0
        assert "All snapshots are consistent." in out

        (data_dir / "backups" / "backup-manual-copy.snapshot").write_bytes(b"x")
        code, _ = run("verify")
        assert code == 1

        code, out = run("sync")
        assert code == 0
        assert "Registered: backup-manual-copy.snapshot" in out

        code, _ = run("verify")
        assert code == 0

    def test_delete(self, run):
        _, out = run("--json", "create")
        created = json.loads(out)

        code, out = run("delete", created["id"])

        assert code == 0
        assert created["filename"] in out

    def test_invalid_configuration_exits_2(self, run, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "xml")

        code, _ = run("list")

        assert code == 2
