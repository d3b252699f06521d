"""
monitoring/metrics.py

Buffered metrics collector.

Metrics are appended to an in-memory buffer guarded by a lock. The buffer is
flushed when it reaches ``max_buffer_size`` or when the periodic job in
``monitoring.scheduler`` fires; a flush aggregates ``{count, sum, avg}`` per
metric name, logs the summary and clears the buffer.
"""

from __future__ import annotations

import json
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TypeVar

from monitoring.logger import StructuredLogger

T = TypeVar("T")


@dataclass(frozen=True)
class Metric:
    name: str
    value: float
    tags: dict[str, str] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class MetricSummary:
    count: int
    sum: float
    avg: float

    def to_dict(self) -> dict[str, float]:
        return {"count": self.count, "sum": self.sum, "avg": self.avg}


def aggregate_metrics(metrics: list[Metric]) -> dict[str, MetricSummary]:
    totals: dict[str, list[float]] = {}
    for metric in metrics:
        bucket = totals.setdefault(metric.name, [0, 0.0])
        bucket[0] += 1
        bucket[1] += metric.value

    return {
        name: MetricSummary(count=int(count), sum=total, avg=total / count)
        for name, (count, total) in totals.items()
    }


class MetricsCollector:
    """
    Thread-safe metrics buffer with size-triggered and periodic flushing.
    """

    def __init__(
        self,
        logger: StructuredLogger,
        *,
        max_buffer_size: int = 1000,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._logger = logger
        self._max_buffer_size = max(1, max_buffer_size)
        self._clock = clock
        self._lock = threading.Lock()
        self._buffer: list[Metric] = []

    @property
    def buffer_size(self) -> int:
        with self._lock:
            return len(self._buffer)

    def snapshot(self) -> list[Metric]:
        with self._lock:
            return list(self._buffer)

    def record(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        metric = Metric(name=name, value=float(value), tags=dict(tags or {}))
        with self._lock:
            self._buffer.append(metric)
            should_flush = len(self._buffer) >= self._max_buffer_size
        if should_flush:
            self.flush()

    def measure_api_call(self, name: str, fn: Callable[[], T]) -> T:
        start = self._clock()
        try:
            result = fn()
        except Exception:
            duration_ms = self._elapsed_ms(start)
            self.record(f"api.{name}.duration", duration_ms, {"status": "error"})
            self.record(f"api.{name}.error", 1)
            raise
        duration_ms = self._elapsed_ms(start)
        self.record(f"api.{name}.duration", duration_ms, {"status": "success"})
        self.record(f"api.{name}.success", 1)
        return result

    def measure_external_call(self, service: str, operation: str, fn: Callable[[], T]) -> T:
        prefix = f"external.{service}.{operation}"
        start = self._clock()
        try:
            result = fn()
        except Exception:
            duration_ms = self._elapsed_ms(start)
            self.record(f"{prefix}.duration", duration_ms, {"status": "error"})
            self.record(f"{prefix}.error", 1)
            self._logger.external_call(service, operation, False, duration_ms)
            raise
        duration_ms = self._elapsed_ms(start)
        self.record(f"{prefix}.duration", duration_ms, {"status": "success"})
        self.record(f"{prefix}.success", 1)
        self._logger.external_call(service, operation, True, duration_ms)
        return result

    def record_usage(self, feature: str, user_id: str) -> None:
        self.record(f"usage.{feature}", 1, {"user_id": user_id})

    def record_error(self, error_code: str) -> None:
        self.record("error.count", 1, {"code": error_code})

    def record_http_request(
        self,
        method: str,
        path: str,
        status_code: int,
        duration_ms: float,
    ) -> None:
        status_tags = {
            "method": method,
            "path": path,
            "status": str(status_code),
            "status_category": str((status_code // 100) * 100),
        }
        self.record("http.request.duration", duration_ms, status_tags)
        self.record("http.request.count", 1, status_tags)

        error_tags = {"method": method, "path": path, "status": str(status_code)}
        if status_code >= 500:
            self.record("http.server_error", 1, error_tags)
        elif status_code >= 400:
            self.record("http.client_error", 1, error_tags)

    def flush(self) -> dict[str, MetricSummary]:
        """
        Aggregate and log the buffered metrics, then clear the buffer.
        """

        with self._lock:
            if not self._buffer:
                return {}
            drained = self._buffer
            self._buffer = []

        summary = aggregate_metrics(drained)
        self._logger.info(
            "Metrics flushed",
            {
                "action": "metrics.flush",
                "metrics_count": len(drained),
                "summary": json.dumps(
                    {name: item.to_dict() for name, item in summary.items()},
                    sort_keys=True,
                ),
            },
        )
        return summary

    def _elapsed_ms(self, start: float) -> float:
        return (self._clock() - start) * 1000.0
