from __future__ import annotations

import re
import zipfile
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from io import BytesIO
from pathlib import Path
from typing import Iterable, Sequence, Union

import structlog
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from maaser.core.errors import WorkbookError
from maaser.importers.cells import TextCell, cell_text, is_blank, unwrap
from maaser.importers.utils import is_month_name, parse_amount, resolve_date, sheet_year

log = structlog.get_logger(__name__)

# 1-based column positions fixed by the workbook layout
LABEL_COL = 1
INCOME_AMOUNT_COL, INCOME_SOURCE_COL, INCOME_DATE_COL = 2, 3, 4
GIVING_AMOUNT_COL, GIVING_ORG_COL, GIVING_DATE_COL = 7, 8, 9

SKIP_MARKERS = ("earnings", "total", "maaser", "prev month")
LEADING_WORD_RE = re.compile(r"[A-Za-z.]*")

class RowKind(str, Enum):
    empty = "empty"
    month_header = "month_header"
    skip = "skip"
    data = "data"

@dataclass(frozen=True)
class SheetContext:
    year: int
    month_label: str | None = None

@dataclass(frozen=True)
class IncomeRecord:
    owner_id: str
    source: str
    amount: Decimal
    date: datetime

@dataclass(frozen=True)
class GivingRecord:
    owner_id: str
    organization: str
    amount: Decimal
    date: datetime

Record = Union[IncomeRecord, GivingRecord]

@dataclass
class SheetResult:
    name: str
    year: int | None
    rows: int = 0
    records: list[Record] = field(default_factory=list)

    @property
    def skipped(self) -> bool:
        return self.year is None

    @property
    def income(self) -> list[IncomeRecord]:
        return [r for r in self.records if isinstance(r, IncomeRecord)]

    @property
    def giving(self) -> list[GivingRecord]:
        return [r for r in self.records if isinstance(r, GivingRecord)]

def col(row: Sequence[object], n: int):
    """Cell at 1-based column ``n``; short rows read as empty."""
    return row[n - 1] if 0 < n <= len(row) else None

def classify_row(row: Sequence[object]) -> tuple[RowKind, str | None]:
    """Decide what a row is from its label cell alone.

    Returns the kind and, for month headers, the trimmed label.
    """
    if not row or all(is_blank(c) for c in row):
        return RowKind.empty, None
    label = unwrap(col(row, LABEL_COL))
    if isinstance(label, TextCell):
        if "'" in label.value:
            return RowKind.month_header, label.value.strip()
        low = label.value.lower()
        if any(m in low for m in SKIP_MARKERS):
            return RowKind.skip, None
        if is_month_name(LEADING_WORD_RE.match(label.value.strip()).group(0)):
            # e.g. a typographic apostrophe; the month context is left unchanged
            log.debug("month_header_suspect", label=label.value.strip())
    return RowKind.data, None

def _slot(row: Sequence[object], amount_col: int, text_col: int, date_col: int, ctx: SheetContext):
    amount = parse_amount(col(row, amount_col))
    # zero counts as missing, same as an empty cell
    if not amount:
        return None
    text = cell_text(col(row, text_col))
    if not text:
        return None
    when = resolve_date(col(row, date_col), ctx.month_label, ctx.year)
    if when is None:
        return None
    return amount, text, when

def extract_records(row: Sequence[object], ctx: SheetContext, owner_id: str) -> list[Record]:
    out: list[Record] = []
    income = _slot(row, INCOME_AMOUNT_COL, INCOME_SOURCE_COL, INCOME_DATE_COL, ctx)
    if income is not None:
        amount, source, when = income
        out.append(IncomeRecord(owner_id=owner_id, source=source, amount=amount, date=when))
    giving = _slot(row, GIVING_AMOUNT_COL, GIVING_ORG_COL, GIVING_DATE_COL, ctx)
    if giving is not None:
        amount, org, when = giving
        out.append(GivingRecord(owner_id=owner_id, organization=org, amount=amount, date=when))
    return out

def step(ctx: SheetContext, row: Sequence[object], owner_id: str) -> tuple[SheetContext, list[Record]]:
    kind, label = classify_row(row)
    if kind == RowKind.month_header:
        return replace(ctx, month_label=label), []
    if kind == RowKind.data:
        return ctx, extract_records(row, ctx, owner_id)
    return ctx, []

def parse_sheet(name: str, rows: Iterable[Sequence[object]], owner_id: str) -> SheetResult:
    year = sheet_year(name)
    result = SheetResult(name=name, year=year)
    if year is None:
        log.warning("sheet_skipped", sheet=name, reason="no_year_in_name")
        return result
    ctx = SheetContext(year=year)
    for row in rows:
        result.rows += 1
        ctx, records = step(ctx, row, owner_id)
        result.records.extend(records)
    log.info("sheet_parsed", sheet=name, year=year, rows=result.rows, income=len(result.income), giving=len(result.giving))
    return result

def bytes_to_filelike(data: bytes):
    return BytesIO(data)

def parse_workbook_xlsx(source: Union[str, Path, bytes], *, owner_id: str) -> list[SheetResult]:
    """Parse every worksheet in file order."""
    filename = bytes_to_filelike(source) if isinstance(source, bytes) else source
    try:
        wb = load_workbook(filename=filename, data_only=True, read_only=True)
    except (OSError, InvalidFileException, zipfile.BadZipFile, KeyError) as e:
        raise WorkbookError(f"Cannot open workbook {source if not isinstance(source, bytes) else '<bytes>'}: {e}") from e
    try:
        return [parse_sheet(ws.title, ws.iter_rows(values_only=True), owner_id) for ws in wb.worksheets]
    finally:
        wb.close()
