"""
app/domain package marker.
"""

from app.domain.keyword_import import (
    INTENT_CATEGORIES,
    ClassificationResult,
    ClassificationSource,
    ImportSummary,
    ImportType,
    IntentCategory,
    NormalizedFile,
    QueryType,
    RowRecord,
    TrafficRecord,
    normalize_keyword,
)

__all__ = [
    "INTENT_CATEGORIES",
    "ClassificationResult",
    "ClassificationSource",
    "ImportSummary",
    "ImportType",
    "IntentCategory",
    "NormalizedFile",
    "QueryType",
    "RowRecord",
    "TrafficRecord",
    "normalize_keyword",
]
