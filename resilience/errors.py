"""
resilience/errors.py

Closed error type for external-dependency failures and the classifier that
maps arbitrary exceptions onto it.
"""

from __future__ import annotations

from enum import Enum

import requests


class ExternalErrorKind(str, Enum):
    RATE_LIMIT = "rate_limit"
    OVERLOADED = "overloaded"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    API_ERROR = "api_error"
    UNKNOWN = "unknown"


RETRYABLE_ERROR_KINDS: frozenset[ExternalErrorKind] = frozenset(
    {
        ExternalErrorKind.RATE_LIMIT,
        ExternalErrorKind.OVERLOADED,
        ExternalErrorKind.TIMEOUT,
        ExternalErrorKind.NETWORK_ERROR,
    }
)

_NETWORK_SIGNATURES = ("network", "econnrefused", "connection refused", "connection reset")


class ExternalServiceError(Exception):
    """
    Failure raised at an external boundary, already classified.

    Adapters translate their SDK's exception hierarchy into this type so that
    callers only ever match on ``kind``.
    """

    def __init__(
        self,
        kind: ExternalErrorKind,
        message: str,
        *,
        status: int | None = None,
        service: str | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.status = status
        self.message = message
        self.service = service

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_ERROR_KINDS


def kind_from_status(status: int | None, message: str = "") -> ExternalErrorKind:
    """
    Map an HTTP status (plus message text) to an error kind.
    """

    if status == 429:
        return ExternalErrorKind.RATE_LIMIT
    if status == 529:
        return ExternalErrorKind.OVERLOADED
    if status == 408 or "timeout" in message.lower():
        return ExternalErrorKind.TIMEOUT
    return ExternalErrorKind.API_ERROR


def classify_error(error: BaseException) -> ExternalErrorKind:
    """
    Classify any raised failure into one of the external error kinds.
    """

    if isinstance(error, ExternalServiceError):
        return error.kind

    if isinstance(error, (requests.Timeout, TimeoutError)):
        return ExternalErrorKind.TIMEOUT
    if isinstance(error, (requests.ConnectionError, ConnectionError)):
        return ExternalErrorKind.NETWORK_ERROR
    if isinstance(error, requests.HTTPError):
        status = error.response.status_code if error.response is not None else None
        return kind_from_status(status, str(error))

    message = str(error).lower()
    if "timeout" in message:
        return ExternalErrorKind.TIMEOUT
    if any(signature in message for signature in _NETWORK_SIGNATURES):
        return ExternalErrorKind.NETWORK_ERROR
    return ExternalErrorKind.UNKNOWN


def is_retryable_error(kind: ExternalErrorKind) -> bool:
    return kind in RETRYABLE_ERROR_KINDS


class OperationCancelledError(Exception):
    """
    Raised when a cooperative cancellation check reports the work was cancelled.
    """
