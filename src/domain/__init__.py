"""Domain models for the dual-mode authorization comparator."""

from .comparison import (
    AlertRecord,
    ComparisonContext,
    ComparisonInput,
    Impact,
    MismatchClassification,
    MismatchRecord,
    MismatchType,
    Severity,
    StatsSnapshot,
    StoredRecord,
    classify_disagreement,
)

__all__ = [
    "AlertRecord",
    "ComparisonContext",
    "ComparisonInput",
    "Impact",
    "MismatchClassification",
    "MismatchRecord",
    "MismatchType",
    "Severity",
    "StatsSnapshot",
    "StoredRecord",
    "classify_disagreement",
]
