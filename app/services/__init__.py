"""
app/services package marker.
"""

from app.services.batch_upsert_coordinator import (
    BatchUpsertCoordinator,
    UpsertOutcome,
    UpsertTarget,
)
from app.services.import_orchestrator_service import (
    FastAPIBackgroundTaskExecutor,
    ImportOrchestratorService,
)
from app.services.keyword_import_service import ImportRequest, KeywordImportService

__all__ = [
    "BatchUpsertCoordinator",
    "UpsertOutcome",
    "UpsertTarget",
    "FastAPIBackgroundTaskExecutor",
    "ImportOrchestratorService",
    "ImportRequest",
    "KeywordImportService",
]
