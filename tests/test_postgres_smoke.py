from __future__ import annotations

import datetime
import os
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, text

from maaser.importers.workbook_importer import IncomeRecord
from maaser.services.records import RecordStore, create_tables


@pytest.mark.skipif(not os.getenv("TEST_DATABASE_URL"), reason="TEST_DATABASE_URL is not set")
def test_postgres_connection_smoke():
    engine = create_engine(os.environ["TEST_DATABASE_URL"], pool_pre_ping=True)
    with engine.connect() as conn:
        value = conn.execute(text("select 1")).scalar_one()
    assert value == 1
    create_tables(engine)
    store = RecordStore.from_engine(engine)
    new_id = store.create_income(IncomeRecord(owner_id="smoke", source="Smoke", amount=Decimal("1.00"), date=datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)))
    with engine.begin() as conn:
        conn.execute(text("delete from incomes where id = :id"), {"id": new_id})
    engine.dispose()
