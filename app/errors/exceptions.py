"""
app/errors/exceptions.py

Application error type and the domain exceptions raised by the import
pipeline. Each carries a catalog code, so ``code`` and ``http_status`` can
never disagree.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from app.errors.catalog import ERROR_CATALOG
from resilience.errors import OperationCancelledError


class AppError(Exception):
    """
    Failure carrying a catalog code.

    ``message`` overrides the canonical catalog message when given.
    """

    def __init__(
        self,
        code: str,
        details: Any = None,
        message: str | None = None,
    ) -> None:
        definition = ERROR_CATALOG[code]
        self.code = code
        self.http_status = definition.http_status
        self.details = details
        self.message = message or definition.message
        super().__init__(self.message)

    def to_dict(self, *, timestamp: datetime | None = None) -> dict[str, Any]:
        body: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "timestamp": (timestamp or datetime.now(timezone.utc)).isoformat(),
        }
        if self.details is not None:
            body["details"] = self.details
        return {"error": body}


class _CatalogError(AppError):
    default_code = "E-SYS-001"

    def __init__(self, message: str | None = None, *, details: Any = None) -> None:
        super().__init__(self.default_code, details=details, message=message)


class InsufficientDataError(_CatalogError):
    """Raised when an uploaded file has fewer than two non-empty lines."""

    default_code = "E-DATA-013"


class MissingRequiredColumnError(_CatalogError):
    """Raised when the header row lacks a required column."""

    default_code = "E-DATA-014"

    def __init__(self, column: str, *, headers: list[str] | None = None) -> None:
        super().__init__(
            f"Required column '{column}' was not found",
            details={"column": column, "headers": list(headers or [])},
        )
        self.column = column


class UnsupportedImportTypeError(_CatalogError):
    """Raised for unknown import types or unsupported upload formats."""

    default_code = "E-VALID-007"


class FileTooLargeError(_CatalogError):
    """Raised when an upload exceeds the configured size limit."""

    default_code = "E-VALID-006"

    def __init__(self, size_bytes: int, limit_bytes: int) -> None:
        super().__init__(details={"size_bytes": size_bytes, "limit_bytes": limit_bytes})


class UploadReadError(_CatalogError):
    """Raised when an uploaded file cannot be read."""

    default_code = "E-DATA-017"


class ImportJobNotFoundError(_CatalogError):
    """Raised when an import job id does not exist."""

    default_code = "E-DATA-010"


class DatastoreWriteError(_CatalogError):
    """Raised when one datastore write (one chunk) fails."""

    default_code = "E-DATA-006"


class InvalidJobTransitionError(AppError):
    """
    Raised when an import job status change is not allowed.

    Cancellation uses E-DATA-011; every other rejected transition uses E-DATA-012.
    """

    def __init__(self, current_status: str, target_status: str) -> None:
        code = "E-DATA-011" if target_status == "cancelled" else "E-DATA-012"
        super().__init__(
            code,
            details={"current_status": current_status, "target_status": target_status},
        )
        self.current_status = current_status
        self.target_status = target_status


class ImportCancelledError(OperationCancelledError):
    """Raised inside a running import when its job has been cancelled."""
