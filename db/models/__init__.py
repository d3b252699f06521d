"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.import_job import ImportJob, ImportJobStatus, ImportStep
from db.models.keyword import Keyword
from db.models.media import Media
from db.models.media_keyword import MediaKeyword
from db.models.traffic_data import TrafficData

__all__ = [
    "ImportJob",
    "ImportJobStatus",
    "ImportStep",
    "Keyword",
    "Media",
    "MediaKeyword",
    "TrafficData",
]
