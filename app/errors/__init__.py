"""
app/errors package marker.
"""

from app.errors.catalog import (
    ERROR_CATALOG,
    ErrorDefinition,
    get_default_error_code,
    get_error_definition,
)
from app.errors.exceptions import (
    AppError,
    DatastoreWriteError,
    FileTooLargeError,
    ImportCancelledError,
    ImportJobNotFoundError,
    InsufficientDataError,
    InvalidJobTransitionError,
    MissingRequiredColumnError,
    UnsupportedImportTypeError,
    UploadReadError,
)
from app.errors.handling import normalize_error, report_error

__all__ = [
    "AppError",
    "DatastoreWriteError",
    "ERROR_CATALOG",
    "ErrorDefinition",
    "FileTooLargeError",
    "ImportCancelledError",
    "ImportJobNotFoundError",
    "InsufficientDataError",
    "InvalidJobTransitionError",
    "MissingRequiredColumnError",
    "UnsupportedImportTypeError",
    "UploadReadError",
    "get_default_error_code",
    "get_error_definition",
    "normalize_error",
    "report_error",
]
