from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Sequence

import structlog
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from maaser.db.base import Base
from maaser.db.session import make_session_factory, session_scope
from maaser.importers.workbook_importer import GivingRecord, IncomeRecord, Record
from maaser.models.enums import RecordKind
from maaser.models.giving import Giving
from maaser.models.income import Income

log = structlog.get_logger(__name__)

@dataclass(frozen=True)
class WriteResult:
    record: Record
    ok: bool
    id: int | None = None
    error: str = ""

    @property
    def kind(self) -> RecordKind:
        return RecordKind.income if isinstance(self.record, IncomeRecord) else RecordKind.giving

class RecordStore:
    """Inserts one record per session, so a failed insert never touches its siblings."""

    def __init__(self, factory: sessionmaker[Session]):
        self.factory = factory

    @classmethod
    def from_engine(cls, engine: Engine) -> "RecordStore":
        return cls(make_session_factory(engine))

    def create_income(self, record: IncomeRecord) -> int:
        with session_scope(self.factory) as session:
            row = Income(owner_id=record.owner_id, source=record.source, amount=record.amount, date=record.date)
            session.add(row)
            session.flush()
            return row.id

    def create_giving(self, record: GivingRecord) -> int:
        with session_scope(self.factory) as session:
            row = Giving(owner_id=record.owner_id, organization=record.organization, amount=record.amount, date=record.date)
            session.add(row)
            session.flush()
            return row.id

    def create(self, record: Record) -> int:
        if isinstance(record, IncomeRecord):
            return self.create_income(record)
        if isinstance(record, GivingRecord):
            return self.create_giving(record)
        raise TypeError(f"Unsupported record type: {type(record).__name__}")

def create_tables(engine: Engine) -> None:
    Base.metadata.create_all(engine, tables=[Income.__table__, Giving.__table__])

def _write_one(store, record: Record) -> WriteResult:
    try:
        new_id = store.create(record)
    except Exception as e:
        log.error("record_create_failed", kind=type(record).__name__, exc_type=type(e).__name__, exc=str(e))
        return WriteResult(record=record, ok=False, error=f"{type(e).__name__}: {e}")
    return WriteResult(record=record, ok=True, id=new_id)

def write_records(store, records: Sequence[Record], *, max_workers: int = 4) -> list[WriteResult]:
    """Submit every insert at once and wait for all of them to settle.

    Results come back in the order of ``records``. Failures are captured per
    record and never raised.
    """
    if not records:
        return []
    with ThreadPoolExecutor(max_workers=max(1, max_workers), thread_name_prefix="maaser-write") as pool:
        results = list(pool.map(lambda r: _write_one(store, r), records))
    failed = sum(1 for r in results if not r.ok)
    log.info("records_written", total=len(results), stored=len(results) - failed, failed=failed)
    return results
