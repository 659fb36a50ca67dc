from __future__ import annotations

import pytest
import structlog
from sqlalchemy import create_engine
from structlog.testing import capture_logs

from maaser.services.records import RecordStore, create_tables

@pytest.fixture()
def sqlite_engine(tmp_path):
    # file-backed so every writer thread sees the same database
    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'maaser.db'}", future=True)
    create_tables(engine)
    yield engine
    engine.dispose()

@pytest.fixture()
def store(sqlite_engine):
    return RecordStore.from_engine(sqlite_engine)

@pytest.fixture()
def env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("OWNER_ID", "64b7f0c2a1e4d3b2c1a09f8e")
    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{tmp_path / 'cli.db'}")
    monkeypatch.setenv("WRITE_CONCURRENCY", "2")
    return tmp_path

@pytest.fixture()
def log_events():
    # default config logs every level, so debug events are captured too
    structlog.reset_defaults()
    with capture_logs() as events:
        yield events
    structlog.reset_defaults()
