"""
resilience/executor.py

Retry, backoff and fallback wrapper for calls to fallible external dependencies.

State per call: attempt n either succeeds, backs off and moves to attempt n+1,
or fails terminally. Only retryable error kinds consume retry budget.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Generic, TypeVar

from resilience.errors import (
    ExternalErrorKind,
    OperationCancelledError,
    classify_error,
    is_retryable_error,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

BOTH_FAILED_REASON = "Both operation and fallback failed"
_JITTER_RATIO = 0.2


@dataclass(frozen=True)
class RetryConfig:
    """
    Retry policy for one wrapped operation.
    """

    max_retries: int = 3
    initial_delay_ms: float = 1000.0
    max_delay_ms: float = 10000.0
    backoff_multiplier: float = 2.0


DEFAULT_RETRY_CONFIG = RetryConfig()


@dataclass(frozen=True)
class ExecutionResult(Generic[T]):
    """
    Outcome of a wrapped call.

    ``retry_count`` is the number of retries actually consumed, so a call that
    succeeds on the third attempt reports 2.
    """

    success: bool
    data: T | None = None
    used_fallback: bool = False
    fallback_reason: str | None = None
    retry_count: int = 0
    error_type: ExternalErrorKind | None = None


def calculate_backoff_delay(
    retry_count: int,
    config: RetryConfig = DEFAULT_RETRY_CONFIG,
    *,
    rng: Callable[[], float] = random.random,
) -> float:
    """
    Return the jittered delay in milliseconds before retry ``retry_count``.

    delay = initial * multiplier ** retry_count, jittered uniformly by +/-20%,
    then clamped to ``max_delay_ms``.
    """

    base = config.initial_delay_ms * (config.backoff_multiplier ** max(0, retry_count))
    jitter = base * _JITTER_RATIO * (rng() * 2 - 1)
    return min(max(0.0, base + jitter), config.max_delay_ms)


class ResilienceExecutor:
    """
    Runs operations under a retry policy with optional fallback.

    Backoff sleeps and the jitter source are injected so callers (and tests)
    control time.
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self._config = config or DEFAULT_RETRY_CONFIG
        self._sleep = sleep
        self._rng = rng

    @property
    def config(self) -> RetryConfig:
        return self._config

    def with_retry(
        self,
        operation: Callable[[], T],
        *,
        config: RetryConfig | None = None,
        should_cancel: Callable[[], bool] | None = None,
    ) -> ExecutionResult[T]:
        policy = config or self._config
        last_kind = ExternalErrorKind.UNKNOWN
        retries_used = 0

        for attempt in range(policy.max_retries + 1):
            if attempt > 0:
                self._raise_if_cancelled(should_cancel)
            try:
                data = operation()
            except OperationCancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                last_kind = classify_error(exc)
                retries_used = attempt

                if not is_retryable_error(last_kind):
                    logger.error(
                        "Non-retryable error kind=%s attempt=%d error=%s",
                        last_kind.value,
                        attempt + 1,
                        exc,
                    )
                    return ExecutionResult(
                        success=False,
                        retry_count=retries_used,
                        error_type=last_kind,
                        fallback_reason=f"Non-retryable error: {last_kind.value}",
                    )

                if attempt < policy.max_retries:
                    delay_ms = calculate_backoff_delay(attempt, policy, rng=self._rng)
                    logger.warning(
                        "Retry %d/%d after %dms kind=%s",
                        attempt + 1,
                        policy.max_retries,
                        round(delay_ms),
                        last_kind.value,
                    )
                    self._sleep(delay_ms / 1000.0)
                continue

            return ExecutionResult(success=True, data=data, retry_count=attempt)

        logger.error(
            "All retries exhausted retries=%d kind=%s",
            retries_used,
            last_kind.value,
        )
        return ExecutionResult(
            success=False,
            retry_count=retries_used,
            error_type=last_kind,
            fallback_reason=f"Failed after {retries_used} retries: {last_kind.value}",
        )

    def with_fallback(
        self,
        operation: Callable[[], T],
        fallback: Callable[[ExternalErrorKind], T],
        *,
        config: RetryConfig | None = None,
        should_cancel: Callable[[], bool] | None = None,
    ) -> ExecutionResult[T]:
        result = self.with_retry(operation, config=config, should_cancel=should_cancel)
        if result.success:
            return result

        error_type = result.error_type or ExternalErrorKind.UNKNOWN
        try:
            fallback_data = fallback(error_type)
        except Exception:  # noqa: BLE001
            logger.exception("Fallback also failed kind=%s", error_type.value)
            return replace(
                result,
                success=False,
                used_fallback=True,
                fallback_reason=BOTH_FAILED_REASON,
            )

        return replace(
            result,
            success=True,
            data=fallback_data,
            used_fallback=True,
        )

    def execute(
        self,
        operation: Callable[[], T],
        fallback: Callable[[ExternalErrorKind], T] | None = None,
        *,
        config: RetryConfig | None = None,
        should_cancel: Callable[[], bool] | None = None,
    ) -> ExecutionResult[T]:
        """
        Run ``operation`` with retries, falling back when a producer is given.
        """

        if fallback is None:
            return self.with_retry(operation, config=config, should_cancel=should_cancel)
        return self.with_fallback(operation, fallback, config=config, should_cancel=should_cancel)

    @staticmethod
    def _raise_if_cancelled(should_cancel: Callable[[], bool] | None) -> None:
        if should_cancel is not None and should_cancel():
            raise OperationCancelledError("Operation cancelled between retry attempts.")


def with_retry(
    operation: Callable[[], T],
    config: RetryConfig | None = None,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> ExecutionResult[T]:
    return ResilienceExecutor(config, sleep=sleep).with_retry(operation)


def with_fallback(
    operation: Callable[[], T],
    fallback: Callable[[ExternalErrorKind], T],
    config: RetryConfig | None = None,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> ExecutionResult[T]:
    return ResilienceExecutor(config, sleep=sleep).with_fallback(operation, fallback)
