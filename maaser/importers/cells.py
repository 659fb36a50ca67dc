"""Raw spreadsheet cell shapes.

openpyxl hands back plain Python values (``None``, numbers, strings, datetimes),
and callers that iterate without ``values_only`` hand back ``Cell`` objects.
``to_cell`` folds all of these into one of the variants below so the parsers can
dispatch on an explicit, closed set of shapes.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Union

from openpyxl.cell.cell import Cell, MergedCell

@dataclass(frozen=True)
class EmptyCell:
    pass

@dataclass(frozen=True)
class NumberCell:
    value: int | float | Decimal

@dataclass(frozen=True)
class TextCell:
    value: str

@dataclass(frozen=True)
class DateCell:
    value: date

@dataclass(frozen=True)
class WrappedCell:
    inner: object

@dataclass(frozen=True)
class OtherCell:
    value: object

RawCell = Union[EmptyCell, NumberCell, TextCell, DateCell, WrappedCell, OtherCell]

EMPTY = EmptyCell()

def to_cell(v) -> RawCell:
    if v is None:
        return EMPTY
    if isinstance(v, bool):
        return OtherCell(v)
    if isinstance(v, (int, float, Decimal)):
        return NumberCell(v)
    if isinstance(v, str):
        return TextCell(v)
    # datetime is a subclass of date
    if isinstance(v, date):
        return DateCell(v)
    if isinstance(v, (Cell, MergedCell)):
        return WrappedCell(v.value)
    if isinstance(v, Mapping) and "value" in v:
        return WrappedCell(v["value"])
    return OtherCell(v)

def unwrap(v) -> RawCell:
    """Like ``to_cell`` but looks through one level of wrapping."""
    c = to_cell(v)
    if isinstance(c, WrappedCell):
        inner = to_cell(c.inner)
        return OtherCell(c.inner) if isinstance(inner, WrappedCell) else inner
    return c

def is_blank(v) -> bool:
    c = unwrap(v)
    if isinstance(c, EmptyCell):
        return True
    return isinstance(c, TextCell) and c.value.strip() == ""

def cell_text(v) -> str:
    """Trimmed text of a cell, ``""`` when the cell holds nothing."""
    c = unwrap(v)
    if isinstance(c, EmptyCell):
        return ""
    if isinstance(c, TextCell):
        return c.value.strip()
    if isinstance(c, NumberCell):
        n = c.value
        if isinstance(n, float) and n.is_integer():
            n = int(n)
        return str(n).strip()
    if isinstance(c, DateCell):
        return c.value.isoformat()
    return str(c.value).strip()
