"""
app/schemas package marker.
"""

from app.schemas.keyword_import import (
    ImportJobAcceptedResponse,
    ImportJobListResponse,
    ImportJobStatusResponse,
    ImportResultResponse,
    IntentSummary,
)

__all__ = [
    "ImportJobAcceptedResponse",
    "ImportJobListResponse",
    "ImportJobStatusResponse",
    "ImportResultResponse",
    "IntentSummary",
]
