"""
Shared fixtures for OfficeVault tests.
"""

import sqlite3
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def data_dir():
    """Create temporary data directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 10, 19, 8, 15, 42, 123456, tzinfo=timezone.utc))


def make_office_db(path: Path, notes: list[str]) -> None:
    """Write a small SQLite database standing in for the office manager store."""
    conn = sqlite3.connect(str(path))
    try:
        conn.execute("PRAGMA journal_mode = DELETE")
        conn.execute("CREATE TABLE IF NOT EXISTS meetings (id INTEGER PRIMARY KEY, title TEXT)")
        conn.executemany("INSERT INTO meetings (title) VALUES (?)", [(n,) for n in notes])
        conn.commit()
    finally:
        conn.close()
