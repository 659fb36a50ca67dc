from __future__ import annotations

import math
import re
from datetime import date, datetime, timezone
from decimal import Decimal

import structlog

from maaser.importers.cells import DateCell, EmptyCell, NumberCell, TextCell, unwrap

log = structlog.get_logger(__name__)

MONTHS = {
    "january": 1, "february": 2, "march": 3, "april": 4, "may": 5, "june": 6,
    "july": 7, "august": 8, "september": 9, "october": 10, "november": 11, "december": 12,
}
MONTH_ABBR = {name[:3]: n for name, n in MONTHS.items()}
MONTH_ABBR["sept"] = 9

PLAIN_NUMBER_RE = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")

DAY_MONTH_RE = re.compile(r"^(\d{1,2})\s*-\s*([A-Za-z]+)\.?$")

DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%m/%d/%Y",
    "%m/%d/%y",
    "%d.%m.%Y",
    "%d-%b-%Y",
    "%d-%B-%Y",
    "%d-%b-%y",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d %Y",
    "%b %d, %Y",
    "%B %d %Y",
    "%B %d, %Y",
)

# parsed against a leap year so "Feb 29" survives until the sheet year is applied
YEARLESS_FORMATS = ("%b %d", "%B %d", "%d %b", "%d %B")

def is_month_name(token) -> bool:
    s = str(token or "").strip().lower().rstrip(".")
    return s in MONTHS or s in MONTH_ABBR

def month_number(token) -> int:
    """Month name or abbreviation to 1..12. Anything unrecognised is January."""
    s = str(token or "").strip().lower().rstrip(".")
    if s in MONTHS:
        return MONTHS[s]
    return MONTH_ABBR.get(s, 1)

def parse_amount(v) -> Decimal | None:
    c = unwrap(v)
    if isinstance(c, NumberCell):
        n = c.value
        if isinstance(n, float):
            if not math.isfinite(n):
                return None
            return Decimal(str(n))
        if isinstance(n, Decimal):
            return n if n.is_finite() else None
        return Decimal(n)
    if isinstance(c, TextCell):
        s = c.value.replace("$", "").replace(",", "").strip()
        if not PLAIN_NUMBER_RE.fullmatch(s):
            if s:
                log.debug("amount_unparseable", raw=c.value)
            return None
        return Decimal(s)
    return None

def month_from_label(label: str | None) -> int | None:
    """``"September '21"`` -> 9. The month token is whatever precedes the apostrophe."""
    if not label:
        return None
    token = label.split("'", 1)[0].strip()
    if not token:
        return None
    return month_number(token)

def utc_day(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)

def _parse_date_text(s: str) -> date | None:
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            pass
    for fmt in YEARLESS_FORMATS:
        try:
            return datetime.strptime(f"{s} 2000", f"{fmt} %Y").date()
        except ValueError:
            pass
    return None

def resolve_date(raw, month_label: str | None, year: int) -> datetime | None:
    """Resolve a row's date cell against the sheet's month context and year.

    Returns a timezone-aware datetime at UTC midnight, or None when the cell
    cannot be turned into a real calendar date. Only the month and day of an
    explicit date are kept; the year always comes from the sheet.
    """
    c = unwrap(raw)
    if isinstance(c, TextCell) and not c.value.strip():
        c = EmptyCell()
    try:
        if isinstance(c, EmptyCell):
            month = month_from_label(month_label)
            if month is None:
                log.debug("date_unresolvable", reason="no_month_context", year=year)
                return None
            return utc_day(year, month, 1)

        if isinstance(c, DateCell):
            return utc_day(year, c.value.month, c.value.day)

        if isinstance(c, TextCell):
            s = c.value.strip()
            if len(s) <= 3:
                if not is_month_name(s):
                    log.debug("month_defaulted", raw=s, month=1, year=year)
                return utc_day(year, month_number(s), 1)
            m = DAY_MONTH_RE.match(s)
            if m:
                return utc_day(year, month_number(m.group(2)), int(m.group(1)))
            parsed = _parse_date_text(s)
            if parsed is not None:
                return utc_day(year, parsed.month, parsed.day)
            log.debug("date_unresolvable", raw=s, month_label=month_label, year=year)
            return None
    except ValueError as e:
        # out-of-range day for the month, e.g. 31-Apr or 29-Feb on a common year
        log.debug("date_unresolvable", raw=str(raw), month_label=month_label, year=year, error=str(e))
        return None

    log.debug("date_unresolvable", raw=str(raw), kind=type(c).__name__, year=year)
    return None

def sheet_year(name: str) -> int | None:
    """Year encoded in a sheet name: ``"24"`` -> 2024, ``"Maaser 2023"`` -> 2023.

    Names whose digits are neither 2 nor 4 long yield None.
    """
    digits = re.sub(r"\D", "", name or "")
    if len(digits) == 2:
        return int("20" + digits)
    if len(digits) == 4:
        return int(digits)
    return None
