from __future__ import annotations
from pydantic import BaseModel, Field

class SheetSummary(BaseModel):
    name: str
    year: int | None = None
    skipped: bool = False
    rows: int = 0
    income: int = 0
    giving: int = 0

class ImportSummary(BaseModel):
    workbook: str
    dry_run: bool = False
    sheets: list[SheetSummary] = Field(default_factory=list)
    income_extracted: int = 0
    giving_extracted: int = 0
    stored: int = 0
    failed: int = 0
