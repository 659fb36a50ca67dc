from __future__ import annotations

import io
import json

import pytest
from openpyxl import Workbook
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session

from maaser import cli
from maaser.cli import EXIT_CONFIG, EXIT_FAILED, EXIT_OK, main, run_import
from maaser.core.config import load_settings
from maaser.core.errors import WorkbookError
from maaser.models.giving import Giving
from maaser.models.income import Income

def _write_workbook(path):
    wb = Workbook()
    ws = wb.active
    ws.title = "24"
    for r in [
        ["January '24"],
        [None, 500, "Salary", None],
        [None, None, None, None, None, None, "$50", "Food Bank", "3-Jan"],
        ["Total Earnings", 500],
    ]:
        ws.append(r)
    wb.save(path)
    return str(path)

def test_main_imports_workbook(env, capsys):
    path = _write_workbook(env / "maaser.xlsx")
    assert main([path, "--create-tables"]) == EXIT_OK
    summary = json.loads(capsys.readouterr().out)
    assert summary["income_extracted"] == 1
    assert summary["giving_extracted"] == 1
    assert summary["stored"] == 2 and summary["failed"] == 0
    assert summary["sheets"][0]["year"] == 2024

    engine = create_engine(f"sqlite+pysqlite:///{env / 'cli.db'}")
    with Session(engine) as s:
        (inc,) = s.execute(select(Income)).scalars().all()
        (giv,) = s.execute(select(Giving)).scalars().all()
        assert inc.owner_id == "64b7f0c2a1e4d3b2c1a09f8e"
        assert inc.date.date().isoformat() == "2024-01-01"
        assert giv.date.date().isoformat() == "2024-01-03"
    engine.dispose()

def test_dry_run_leaves_database_alone(env, capsys):
    path = _write_workbook(env / "maaser.xlsx")
    assert main([path, "--dry-run"]) == EXIT_OK
    summary = json.loads(capsys.readouterr().out)
    assert summary["dry_run"] is True
    assert summary["stored"] == 0
    assert not (env / "cli.db").exists()

def test_workbook_path_from_settings(env, monkeypatch, capsys):
    _write_workbook(env / "maaser-1.xlsx")
    monkeypatch.delenv("WORKBOOK_PATH", raising=False)
    assert main(["--dry-run"]) == EXIT_OK
    assert json.loads(capsys.readouterr().out)["workbook"] == "maaser-1.xlsx"

@pytest.mark.parametrize("missing", ["OWNER_ID", "DATABASE_URL"])
def test_missing_configuration_exits_before_work(env, monkeypatch, capsys, missing):
    path = _write_workbook(env / "maaser.xlsx")
    monkeypatch.delenv(missing)
    assert main([path]) == EXIT_CONFIG
    assert missing in capsys.readouterr().err
    assert not (env / "cli.db").exists()

def test_blank_owner_is_rejected(env, monkeypatch):
    monkeypatch.setenv("OWNER_ID", "   ")
    assert main(["--dry-run"]) == EXIT_CONFIG

def test_missing_workbook_fails(env):
    assert main([str(env / "nope.xlsx")]) == EXIT_FAILED

def test_run_import_with_injected_store(env):
    class ListStore:
        def __init__(self):
            self.records = []

        def create(self, record):
            self.records.append(record)
            return len(self.records)

    store = ListStore()
    settings = load_settings()
    summary = run_import(settings, _write_workbook(env / "maaser.xlsx"), store=store)
    assert summary.stored == 2
    assert [type(r).__name__ for r in store.records] == ["IncomeRecord", "GivingRecord"]

def test_run_import_raises_for_unreadable_workbook(env):
    (env / "broken.xlsx").write_bytes(b"garbage")
    with pytest.raises(WorkbookError):
        run_import(load_settings(), str(env / "broken.xlsx"))

def test_unreachable_database_exits_failed(env, monkeypatch):
    path = _write_workbook(env / "maaser.xlsx")
    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{env / 'no-such-dir' / 'x.db'}")
    assert main([path]) == EXIT_FAILED

@pytest.mark.parametrize("failing", ["parse_workbook_xlsx", "write_records"])
def test_engine_disposed_when_import_fails(env, monkeypatch, failing):
    disposed = []
    real_build_engine = cli.build_engine

    def build_engine(url, **kw):
        engine = real_build_engine(url, **kw)
        real_dispose = engine.dispose
        def dispose(*a, **k):
            disposed.append(url)
            return real_dispose(*a, **k)
        engine.dispose = dispose
        return engine

    def boom(*a, **k):
        raise RuntimeError("interrupted")

    monkeypatch.setattr(cli, "build_engine", build_engine)
    monkeypatch.setattr(cli, failing, boom)
    assert main([_write_workbook(env / "maaser.xlsx"), "--create-tables"]) == EXIT_FAILED
    assert len(disposed) == 1

def test_engine_disposed_after_success(env, monkeypatch):
    disposed = []
    real_build_engine = cli.build_engine

    def build_engine(url, **kw):
        engine = real_build_engine(url, **kw)
        real_dispose = engine.dispose
        def dispose(*a, **k):
            disposed.append(url)
            return real_dispose(*a, **k)
        engine.dispose = dispose
        return engine

    monkeypatch.setattr(cli, "build_engine", build_engine)
    assert main([_write_workbook(env / "maaser.xlsx"), "--create-tables"]) == EXIT_OK
    assert len(disposed) == 1
