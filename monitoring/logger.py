"""
monitoring/logger.py

Structured application logger.

Every call emits one compact JSON record:
``{timestamp, level, message, context, error?, metadata{environment, version}}``.
Errors are forwarded to the error tracker, warnings become breadcrumbs and
debug records are only emitted in development.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from monitoring.error_tracking import BaseErrorTracker, LoggingErrorTracker

_LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


class StructuredLogger:
    """
    JSON-line logger with error-tracker forwarding.
    """

    def __init__(
        self,
        *,
        environment: str = "development",
        version: str | None = None,
        error_tracker: BaseErrorTracker | None = None,
        name: str = "monitoring.structured",
    ) -> None:
        self._environment = environment
        self._version = version
        self._tracker = error_tracker or LoggingErrorTracker()
        self._logger = logging.getLogger(name)

    @property
    def error_tracker(self) -> BaseErrorTracker:
        return self._tracker

    @property
    def debug_enabled(self) -> bool:
        return self._environment == "development"

    def format_record(
        self,
        level: str,
        message: str,
        context: dict[str, Any] | None = None,
        error: BaseException | None = None,
    ) -> dict[str, Any]:
        record: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level.upper(),
            "message": message,
            "context": dict(context) if context else None,
            "metadata": {
                "environment": self._environment,
                "version": self._version,
            },
        }
        if error is not None:
            record["error"] = {
                "code": getattr(error, "code", None),
                "name": type(error).__name__,
                "message": str(error),
            }
        return record

    def error(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        error: BaseException | None = None,
    ) -> None:
        self._emit("error", message, context, error)
        tags = {"action": str(context["action"])} if context and context.get("action") else None
        if error is not None:
            self._tracker.capture_exception(error, tags=tags, extra=context)
        else:
            self._tracker.capture_message(message, level="error", tags=tags, extra=context)

    def warn(self, message: str, context: dict[str, Any] | None = None) -> None:
        self._emit("warn", message, context)
        self._tracker.add_breadcrumb("warning", message, level="warning", data=context)

    def info(self, message: str, context: dict[str, Any] | None = None) -> None:
        self._emit("info", message, context)

    def debug(self, message: str, context: dict[str, Any] | None = None) -> None:
        if not self.debug_enabled:
            return
        self._emit("debug", message, context)

    def api_call(
        self,
        method: str,
        path: str,
        status_code: int,
        duration_ms: float,
        context: dict[str, Any] | None = None,
    ) -> None:
        """
        Log one HTTP request; level follows the status class.
        """

        message = f"{method} {path} {status_code}"
        log_context = {
            **(context or {}),
            "method": method,
            "path": path,
            "status_code": status_code,
            "duration_ms": duration_ms,
        }
        if status_code >= 500:
            self.error(message, log_context)
        elif status_code >= 400:
            self.warn(message, log_context)
        else:
            self.info(message, log_context)

    def external_call(
        self,
        service: str,
        operation: str,
        success: bool,
        duration_ms: float,
        context: dict[str, Any] | None = None,
    ) -> None:
        outcome = "succeeded" if success else "failed"
        message = f"External call: {service}.{operation} {outcome}"
        log_context = {
            **(context or {}),
            "service": service,
            "operation": operation,
            "success": success,
            "duration_ms": duration_ms,
        }
        if success:
            self.info(message, log_context)
        else:
            self.warn(message, log_context)

    def _emit(
        self,
        level: str,
        message: str,
        context: dict[str, Any] | None = None,
        error: BaseException | None = None,
    ) -> None:
        record = self.format_record(level, message, context, error)
        self._logger.log(_LEVELS[level], json.dumps(record, default=str, sort_keys=True, ensure_ascii=False))
