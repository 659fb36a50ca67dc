from __future__ import annotations

import argparse
import sys

import structlog

from maaser.core.config import Settings, load_settings
from maaser.core.errors import ConfigurationError
from maaser.core.logging import configure_logging
from maaser.db.session import build_engine
from maaser.importers.workbook_importer import SheetResult, parse_workbook_xlsx
from maaser.schemas.summary import ImportSummary, SheetSummary
from maaser.services.records import RecordStore, create_tables, write_records

log = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2

def summarize(workbook: str, sheets: list[SheetResult], *, dry_run: bool) -> ImportSummary:
    summary = ImportSummary(workbook=workbook, dry_run=dry_run)
    for s in sheets:
        summary.sheets.append(SheetSummary(name=s.name, year=s.year, skipped=s.skipped, rows=s.rows, income=len(s.income), giving=len(s.giving)))
        summary.income_extracted += len(s.income)
        summary.giving_extracted += len(s.giving)
    return summary

def run_import(settings: Settings, workbook: str, *, dry_run: bool = False, create: bool = False, store=None) -> ImportSummary:
    """Parse the workbook, then hand every record to the store.

    The engine is created here and always disposed before returning or raising.
    Passing ``store`` skips engine creation entirely.
    """
    log.info("import_start", workbook=workbook, owner_id=settings.owner_id, dry_run=dry_run)
    if dry_run:
        sheets = parse_workbook_xlsx(workbook, owner_id=settings.owner_id)
        return summarize(workbook, sheets, dry_run=True)

    engine = None
    try:
        if store is None:
            engine = build_engine(settings.database_url, pool_size=settings.write_concurrency)
            # fail fast if the database is unreachable
            with engine.connect():
                pass
            log.info("db_connected")
            if create:
                create_tables(engine)
            store = RecordStore.from_engine(engine)

        sheets = parse_workbook_xlsx(workbook, owner_id=settings.owner_id)
        records = [r for s in sheets for r in s.records]
        results = write_records(store, records, max_workers=settings.write_concurrency)

        summary = summarize(workbook, sheets, dry_run=False)
        summary.stored = sum(1 for r in results if r.ok)
        summary.failed = len(results) - summary.stored
        log.info("import_done", income=summary.income_extracted, giving=summary.giving_extracted, stored=summary.stored, failed=summary.failed)
        return summary
    finally:
        if engine is not None:
            engine.dispose()
            log.info("db_connection_closed")

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Import income and giving rows from a maaser workbook.")
    p.add_argument("workbook", nargs="?", default=None, help="Path to the .xlsx file (default: WORKBOOK_PATH)")
    p.add_argument("--dry-run", action="store_true", help="Parse and report without touching the database")
    p.add_argument("--create-tables", action="store_true", help="Create the record tables if they do not exist")
    return p

def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings()
    except ConfigurationError as e:
        print(str(e), file=sys.stderr)
        return EXIT_CONFIG

    configure_logging(settings.log_level)
    workbook = args.workbook or settings.workbook_path
    try:
        summary = run_import(settings, workbook, dry_run=args.dry_run, create=args.create_tables)
    except Exception as e:
        log.error("import_failed", workbook=workbook, exc_type=type(e).__name__, exc=str(e))
        return EXIT_FAILED

    print(summary.model_dump_json(indent=2))
    return EXIT_OK

if __name__ == "__main__":
    sys.exit(main())
