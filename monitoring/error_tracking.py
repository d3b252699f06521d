"""
monitoring/error_tracking.py

Error-tracking collaborators.

Provides a base interface plus a logging-backed default, a Sentry adapter
and an in-memory recorder for tests.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

_DEFAULT_BREADCRUMB_LIMIT = 100


@dataclass(frozen=True)
class Breadcrumb:
    category: str
    message: str
    level: str = "info"
    data: dict[str, Any] = field(default_factory=dict)


class BaseErrorTracker(ABC):
    """Abstract base for error-tracking collaborators."""

    @abstractmethod
    def capture_exception(
        self,
        error: BaseException,
        *,
        tags: dict[str, str] | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Report an exception."""

    @abstractmethod
    def capture_message(
        self,
        message: str,
        *,
        level: str = "error",
        tags: dict[str, str] | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Report a message without an exception object."""

    @abstractmethod
    def add_breadcrumb(
        self,
        category: str,
        message: str,
        *,
        level: str = "info",
        data: dict[str, Any] | None = None,
    ) -> None:
        """Record a lightweight breadcrumb attached to later reports."""


class LoggingErrorTracker(BaseErrorTracker):
    """
    Default tracker that writes reports to a dedicated logger.

    Keeps the most recent breadcrumbs in a bounded deque so they can be
    attached to the next report.
    """

    def __init__(self, *, breadcrumb_limit: int = _DEFAULT_BREADCRUMB_LIMIT) -> None:
        self._breadcrumbs: deque[Breadcrumb] = deque(maxlen=max(1, breadcrumb_limit))
        self._logger = logging.getLogger("monitoring.error_tracking.reports")

    @property
    def breadcrumbs(self) -> list[Breadcrumb]:
        return list(self._breadcrumbs)

    def capture_exception(
        self,
        error: BaseException,
        *,
        tags: dict[str, str] | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self._logger.error(
            "Captured exception type=%s message=%s tags=%s extra=%s breadcrumbs=%d",
            type(error).__name__,
            error,
            tags or {},
            extra or {},
            len(self._breadcrumbs),
        )

    def capture_message(
        self,
        message: str,
        *,
        level: str = "error",
        tags: dict[str, str] | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        log_level = logging.getLevelName(level.upper())
        if not isinstance(log_level, int):
            log_level = logging.ERROR
        self._logger.log(
            log_level,
            "Captured message=%s tags=%s extra=%s",
            message,
            tags or {},
            extra or {},
        )

    def add_breadcrumb(
        self,
        category: str,
        message: str,
        *,
        level: str = "info",
        data: dict[str, Any] | None = None,
    ) -> None:
        self._breadcrumbs.append(
            Breadcrumb(category=category, message=message, level=level, data=dict(data or {}))
        )


class SentryErrorTracker(BaseErrorTracker):
    """Adapter that forwards reports to Sentry."""

    def __init__(
        self,
        dsn: str,
        *,
        environment: str | None = None,
        release: str | None = None,
    ) -> None:
        try:
            import sentry_sdk  # type: ignore[import-untyped]
        except ImportError as exc:
            raise ImportError(
                "sentry-sdk package is required for SentryErrorTracker. "
                "Install it with: pip install sentry-sdk"
            ) from exc

        sentry_sdk.init(dsn=dsn, environment=environment, release=release)
        self._sdk = sentry_sdk

    def capture_exception(
        self,
        error: BaseException,
        *,
        tags: dict[str, str] | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        with self._sdk.new_scope() as scope:
            for key, value in (tags or {}).items():
                scope.set_tag(key, value)
            for key, value in (extra or {}).items():
                scope.set_extra(key, value)
            self._sdk.capture_exception(error)

    def capture_message(
        self,
        message: str,
        *,
        level: str = "error",
        tags: dict[str, str] | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        with self._sdk.new_scope() as scope:
            for key, value in (tags or {}).items():
                scope.set_tag(key, value)
            for key, value in (extra or {}).items():
                scope.set_extra(key, value)
            self._sdk.capture_message(message, level=level)

    def add_breadcrumb(
        self,
        category: str,
        message: str,
        *,
        level: str = "info",
        data: dict[str, Any] | None = None,
    ) -> None:
        self._sdk.add_breadcrumb(category=category, message=message, level=level, data=data or {})


@dataclass
class CapturedReport:
    kind: str
    payload: Any
    level: str = "error"
    tags: dict[str, str] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)


class RecordingErrorTracker(BaseErrorTracker):
    """In-memory tracker used by tests and local tooling."""

    def __init__(self) -> None:
        self.reports: list[CapturedReport] = []
        self.breadcrumbs: list[Breadcrumb] = []

    def capture_exception(
        self,
        error: BaseException,
        *,
        tags: dict[str, str] | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.reports.append(
            CapturedReport(kind="exception", payload=error, tags=dict(tags or {}), extra=dict(extra or {}))
        )

    def capture_message(
        self,
        message: str,
        *,
        level: str = "error",
        tags: dict[str, str] | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.reports.append(
            CapturedReport(
                kind="message",
                payload=message,
                level=level,
                tags=dict(tags or {}),
                extra=dict(extra or {}),
            )
        )

    def add_breadcrumb(
        self,
        category: str,
        message: str,
        *,
        level: str = "info",
        data: dict[str, Any] | None = None,
    ) -> None:
        self.breadcrumbs.append(
            Breadcrumb(category=category, message=message, level=level, data=dict(data or {}))
        )


def build_error_tracker(
    *,
    sentry_dsn: str | None,
    environment: str | None = None,
    release: str | None = None,
) -> BaseErrorTracker:
    """
    Build the process-wide tracker: Sentry when a DSN is configured, else logging.
    """

    if sentry_dsn:
        logger.info("Error tracking: Sentry enabled environment=%s", environment)
        return SentryErrorTracker(sentry_dsn, environment=environment, release=release)
    logger.info("Error tracking: logging tracker (no SENTRY_DSN configured)")
    return LoggingErrorTracker()
