"""
app/errors/handling.py

Normalization of arbitrary failures into catalog errors, and forwarding of
server-side failures to the error tracker.
"""

from __future__ import annotations

import logging

from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import NoResultFound
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.errors.catalog import get_default_error_code
from app.errors.exceptions import AppError
from monitoring.error_tracking import BaseErrorTracker
from monitoring.metrics import MetricsCollector
from resilience.errors import ExternalErrorKind, ExternalServiceError

logger = logging.getLogger(__name__)

_EXTERNAL_CODE_BY_KIND: dict[ExternalErrorKind, str] = {
    ExternalErrorKind.RATE_LIMIT: "E-EXT-003",
    ExternalErrorKind.OVERLOADED: "E-EXT-003",
    ExternalErrorKind.TIMEOUT: "E-EXT-002",
}


def normalize_error(error: BaseException) -> AppError:
    """
    Map any raised failure onto a catalog error.

    Catalog errors pass through unchanged. Well-known signatures map to their
    codes; everything else becomes E-SYS-001 with the original message kept
    in ``details``.
    """

    if isinstance(error, AppError):
        return error

    if isinstance(error, NoResultFound):
        return AppError("E-DATA-001")

    if isinstance(error, RequestValidationError):
        fields = [
            {
                "field": ".".join(str(part) for part in item.get("loc", ())),
                "message": item.get("msg", ""),
            }
            for item in error.errors()
        ]
        return AppError("E-VALID-001", details={"fields": fields})

    if isinstance(error, StarletteHTTPException):
        if error.status_code == 401:
            return AppError("E-AUTH-001")
        details = {"detail": error.detail} if error.detail else None
        return AppError(get_default_error_code(error.status_code), details=details)

    if isinstance(error, ExternalServiceError):
        code = _EXTERNAL_CODE_BY_KIND.get(error.kind, "E-EXT-001")
        return AppError(
            code,
            details={"kind": error.kind.value, "service": error.service, "original_error": error.message},
        )

    return AppError("E-SYS-001", details={"original_error": str(error)})


def report_error(
    error: BaseException,
    *,
    tracker: BaseErrorTracker,
    metrics: MetricsCollector | None = None,
) -> AppError:
    """
    Normalize ``error``, count it, and forward server-side failures
    (``http_status >= 500``) to the tracker tagged with the error code.
    """

    app_error = normalize_error(error)
    logger.log(
        logging.ERROR if app_error.http_status >= 500 else logging.INFO,
        "[%s] %s details=%s",
        app_error.code,
        app_error.message,
        app_error.details,
    )

    if metrics is not None:
        metrics.record_error(app_error.code)

    if app_error.http_status >= 500:
        tracker.capture_exception(
            error,
            tags={"error_code": app_error.code},
            extra={"details": app_error.details},
        )

    return app_error
