"""Pure period calculations: numbering, naming and intervals."""

from period_reconciler.calculators.naming import NameCache, NameNormalizer
from period_reconciler.calculators.sequence import SequenceCalculator, SequenceResult
from period_reconciler.calculators.types import (
    DateRange,
    InvalidDateFormat,
    PayrollRecord,
    Period,
    PeriodState,
    Periodicity,
    RecordState,
    SuggestedRange,
)

__all__ = [
    "DateRange",
    "InvalidDateFormat",
    "NameCache",
    "NameNormalizer",
    "PayrollRecord",
    "Period",
    "PeriodState",
    "Periodicity",
    "RecordState",
    "SequenceCalculator",
    "SequenceResult",
    "SuggestedRange",
]
