"""
app/api/routers package marker.
"""

from app.api.routers.import_jobs import router as import_jobs_router
from app.api.routers.keyword_import import router as keyword_import_router

__all__ = [
    "import_jobs_router",
    "keyword_import_router",
]
