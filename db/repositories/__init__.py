"""
Repository layer exports.
"""

from db.repositories.import_job_repository import ImportJobRepository, cap_errors

__all__ = [
    "ImportJobRepository",
    "cap_errors",
]
