from __future__ import annotations
from enum import Enum

class RecordKind(str, Enum):
    income = "income"
    giving = "giving"
