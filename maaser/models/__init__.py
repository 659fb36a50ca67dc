from maaser.models.enums import RecordKind

from maaser.models.income import Income
from maaser.models.giving import Giving
