"""
tests/test_resilience_executor.py

Pytest unit tests for the retry/backoff/fallback executor and the external
error classifier. Sleeps are captured instead of slept.
"""

from __future__ import annotations

import pytest
import requests

from resilience.errors import (
    ExternalErrorKind,
    ExternalServiceError,
    OperationCancelledError,
    classify_error,
    is_retryable_error,
    kind_from_status,
)
from resilience.executor import (
    BOTH_FAILED_REASON,
    ResilienceExecutor,
    RetryConfig,
    calculate_backoff_delay,
    with_fallback,
    with_retry,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class FlakyOperation:
    """Raises the queued errors in order, then returns ``result``."""

    def __init__(self, errors: list[Exception], result: str = "ok") -> None:
        self._errors = list(errors)
        self.result = result
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self._errors:
            raise self._errors.pop(0)
        return self.result


def _timeout() -> ExternalServiceError:
    return ExternalServiceError(ExternalErrorKind.TIMEOUT, "request timed out")


@pytest.fixture()
def sleeps() -> list[float]:
    return []


@pytest.fixture()
def executor(sleeps: list[float]) -> ResilienceExecutor:
    return ResilienceExecutor(
        RetryConfig(max_retries=3, initial_delay_ms=1000, max_delay_ms=10000, backoff_multiplier=2),
        sleep=sleeps.append,
        rng=lambda: 0.5,
    )


# ---------------------------------------------------------------------------
# Backoff
# ---------------------------------------------------------------------------


class TestBackoffDelay:
    @pytest.mark.parametrize(
        ("retry_count", "low", "high"),
        [(0, 800, 1200), (1, 1600, 2400), (2, 3200, 4800)],
    )
    def test_jitter_stays_within_twenty_percent(self, retry_count: int, low: float, high: float) -> None:
        config = RetryConfig(initial_delay_ms=1000, max_delay_ms=10000, backoff_multiplier=2)
        for rng_value in (0.0, 0.25, 0.5, 0.75, 0.999):
            delay = calculate_backoff_delay(retry_count, config, rng=lambda: rng_value)
            assert low <= delay <= high

    def test_never_exceeds_max_delay(self) -> None:
        config = RetryConfig(initial_delay_ms=1000, max_delay_ms=10000, backoff_multiplier=2)
        for retry_count in range(10):
            assert calculate_backoff_delay(retry_count, config, rng=lambda: 0.999) <= 10000

    def test_monotonic_without_jitter(self) -> None:
        config = RetryConfig(initial_delay_ms=1000, max_delay_ms=10000, backoff_multiplier=2)
        delays = [calculate_backoff_delay(n, config, rng=lambda: 0.5) for n in range(8)]
        assert delays == sorted(delays)
        assert delays[0] == pytest.approx(1000)
        assert delays[-1] == pytest.approx(10000)


# ---------------------------------------------------------------------------
# with_retry
# ---------------------------------------------------------------------------


class TestWithRetry:
    def test_fails_twice_then_succeeds(self, sleeps: list[float]) -> None:
        operation = FlakyOperation([_timeout(), _timeout()])

        result = with_retry(operation, RetryConfig(max_retries=2), sleep=sleeps.append)

        assert result.success is True
        assert result.data == "ok"
        assert result.retry_count == 2
        assert operation.calls == 3
        assert len(sleeps) == 2

    def test_non_retryable_error_invokes_once(self, executor: ResilienceExecutor, sleeps: list[float]) -> None:
        operation = FlakyOperation([ExternalServiceError(ExternalErrorKind.API_ERROR, "bad request")])

        result = executor.with_retry(operation)

        assert result.success is False
        assert result.error_type is ExternalErrorKind.API_ERROR
        assert result.retry_count == 0
        assert operation.calls == 1
        assert sleeps == []

    def test_unknown_error_is_not_retried(self, executor: ResilienceExecutor) -> None:
        operation = FlakyOperation([ValueError("boom")])

        result = executor.with_retry(operation)

        assert result.success is False
        assert result.error_type is ExternalErrorKind.UNKNOWN
        assert operation.calls == 1

    def test_exhaustion_reports_retries_used(self, executor: ResilienceExecutor, sleeps: list[float]) -> None:
        operation = FlakyOperation([_timeout()] * 10)

        result = executor.with_retry(operation)

        assert result.success is False
        assert operation.calls == 4
        assert result.retry_count == 3
        assert result.error_type is ExternalErrorKind.TIMEOUT
        assert result.fallback_reason == "Failed after 3 retries: timeout"
        assert sleeps == pytest.approx([1.0, 2.0, 4.0])

    def test_cancellation_checked_between_attempts(self, executor: ResilienceExecutor) -> None:
        operation = FlakyOperation([_timeout()] * 5)

        with pytest.raises(OperationCancelledError):
            executor.with_retry(operation, should_cancel=lambda: True)

        assert operation.calls == 1


# ---------------------------------------------------------------------------
# with_fallback
# ---------------------------------------------------------------------------


class TestWithFallback:
    def test_success_does_not_use_fallback(self, executor: ResilienceExecutor) -> None:
        result = executor.with_fallback(lambda: "primary", lambda kind: "fallback")

        assert result.success is True
        assert result.data == "primary"
        assert result.used_fallback is False

    def test_fallback_receives_error_kind(self, executor: ResilienceExecutor) -> None:
        seen: list[ExternalErrorKind] = []

        def fallback(kind: ExternalErrorKind) -> str:
            seen.append(kind)
            return "fallback"

        operation = FlakyOperation([ExternalServiceError(ExternalErrorKind.API_ERROR, "invalid")])
        result = executor.with_fallback(operation, fallback)

        assert result.success is True
        assert result.data == "fallback"
        assert result.used_fallback is True
        assert seen == [ExternalErrorKind.API_ERROR]

    def test_double_failure_is_reported(self, sleeps: list[float]) -> None:
        def operation() -> str:
            raise ExternalServiceError(ExternalErrorKind.API_ERROR, "invalid")

        def fallback(kind: ExternalErrorKind) -> str:
            raise RuntimeError("fallback broke")

        result = with_fallback(operation, fallback, sleep=sleeps.append)

        assert result.success is False
        assert result.used_fallback is True
        assert result.fallback_reason == BOTH_FAILED_REASON

    def test_execute_without_fallback_is_plain_retry(self, executor: ResilienceExecutor) -> None:
        result = executor.execute(FlakyOperation([_timeout()]))

        assert result.success is True
        assert result.retry_count == 1
        assert result.used_fallback is False


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------


class TestClassifyError:
    @pytest.mark.parametrize(
        ("status", "message", "expected"),
        [
            (429, "", ExternalErrorKind.RATE_LIMIT),
            (529, "", ExternalErrorKind.OVERLOADED),
            (408, "", ExternalErrorKind.TIMEOUT),
            (500, "gateway timeout upstream", ExternalErrorKind.TIMEOUT),
            (400, "bad request", ExternalErrorKind.API_ERROR),
        ],
    )
    def test_kind_from_status(self, status: int, message: str, expected: ExternalErrorKind) -> None:
        assert kind_from_status(status, message) is expected

    def test_builtin_and_requests_errors(self) -> None:
        assert classify_error(TimeoutError()) is ExternalErrorKind.TIMEOUT
        assert classify_error(requests.Timeout()) is ExternalErrorKind.TIMEOUT
        assert classify_error(ConnectionRefusedError()) is ExternalErrorKind.NETWORK_ERROR
        assert classify_error(requests.ConnectionError()) is ExternalErrorKind.NETWORK_ERROR

    def test_message_signatures(self) -> None:
        assert classify_error(RuntimeError("socket timeout")) is ExternalErrorKind.TIMEOUT
        assert classify_error(RuntimeError("ECONNREFUSED 127.0.0.1")) is ExternalErrorKind.NETWORK_ERROR
        assert classify_error(RuntimeError("something else")) is ExternalErrorKind.UNKNOWN

    def test_retryable_kinds(self) -> None:
        retryable = {kind for kind in ExternalErrorKind if is_retryable_error(kind)}
        assert retryable == {
            ExternalErrorKind.RATE_LIMIT,
            ExternalErrorKind.OVERLOADED,
            ExternalErrorKind.TIMEOUT,
            ExternalErrorKind.NETWORK_ERROR,
        }
